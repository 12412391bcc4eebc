"""Decoding of the Biosemi ActiveTwo data stream and its channel metadata.

The ActiveTwo sends samples as little-endian 32-bit words. Each sample
starts with a synchronisation word, followed by a status/trigger word whose
upper byte tells the speed mode and the model. EEG and sensor channels
follow.
"""

from __future__ import annotations

import contextlib
import errno
import struct
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .types import (
    EEG,
    NUM_STYPE,
    SENSOR,
    TRIGGER,
    ChannelInfo,
    DataType,
    GroupConfig,
    OptionName,
    SelectedChannels,
    SystemCap,
)

SYNC_WORD = 0xFFFFFF00
"""Value of the first word of every sample."""

WORD_SIZE = 4

SUPPORTED_OPTIONS = (OptionName("numch", "64"),)

MODEL_TYPE_MK1 = "Biosemi ActiveTwo Mk1"
MODEL_TYPE_MK2 = "Biosemi ActiveTwo Mk2"
DEVICE_ID = "N/A"

_SAMPLERATES = (
    (2048, 4096, 8192, 16384, 2048, 4096, 8192, 16384, 2048),
    (2048, 2048, 2048, 2048, 2048, 4096, 8192, 16384, 2048),
)
_SAMPLE_ARRAY_SIZES = (
    (258, 130, 66, 34, 258, 130, 66, 34, 290),
    (610, 610, 610, 610, 282, 154, 90, 58, 314),
)
_NUM_EEG_CHANNELS = (
    (256, 128, 64, 32, 232, 104, 40, 8, 256),
    (512, 512, 512, 512, 256, 128, 64, 32, 280),
)

_SCALES = {
    DataType.INT32: 1,
    DataType.FLOAT: 1.0 / 8192.0,
    DataType.DOUBLE: 1.0 / 8192.0,
}

_EEG256_LABELS = tuple(f"{bank}{i}" for bank in "ABCDEFGH" for i in range(1, 33))

_EEG64_LABELS = (
    "Fp1", "AF7", "AF3", "F1", "F3", "F5", "F7", "FT7",
    "FC5", "FC3", "FC1", "C1", "C3", "C5", "T7", "TP7",
    "CP5", "CP3", "CP1", "P1", "P3", "P5", "P7", "P9",
    "PO7", "PO3", "O1", "Iz", "Oz", "POz", "Pz", "CPz",
    "Fpz", "Fp2", "AF8", "AF4", "AFz", "Fz", "F2", "F4",
    "F6", "F8", "FT8", "FC6", "FC4", "FC2", "FCz", "Cz",
    "C2", "C4", "C6", "T8", "TP8", "CP6", "CP4", "CP2",
    "P2", "P4", "P6", "P8", "P10", "PO8", "PO4", "O2",
)

_EEG32_LABELS = (
    "Fp1", "AF3", "F7", "F3", "FC1", "FC5", "T7", "C3",
    "CP1", "CP5", "P7", "P3", "Pz", "PO3", "O1", "Oz",
    "O2", "PO4", "P4", "P8", "CP6", "CP2", "C4", "T8",
    "FC6", "FC2", "F4", "F8", "AF4", "FP2", "Fz", "Cz",
)

SENSOR_LABELS = (
    "EXG1", "EXG2", "EXG3", "EXG4", "EXG5", "EXG6", "EXG7", "EXG8",
    "sens1", "sens2", "sens3", "sens4", "ERGO1", "sens6", "sens7",
    "sens8", "sens9", "sens10", "sens11", "sens12", "sens13", "sens14",
    "sens15", "sens16",
)

_TRIGGER_LABEL = "Status"
_ANALOG_UNIT = "uV"
_TRIGGER_UNIT = "Boolean"
_ANALOG_TRANSDUCTER = "Active Electrode"
_TRIGGER_TRANSDUCTER = "Triggers and Status"
_TRIGGER_PREFILTERING = "No filtering"


@dataclass(frozen=True)
class ActiveTwoSetup:
    """System configuration decoded from the first status word.

    ``offsets`` gives, per sensor type, the byte offset of its first channel
    in a sample; ``samplelen`` is the number of words in a sample.
    """

    mode: int
    model: int
    offsets: tuple[int, ...]
    samplelen: int
    cap: SystemCap
    prefiltering: str

    @property
    def samlen(self) -> int:
        """Size of one sample in bytes."""
        return self.samplelen * WORD_SIZE


def parse_triggers(tri: int, optnch: int) -> ActiveTwoSetup:
    """Decode speed mode and model from status word ``tri``.

    ``optnch`` caps the number of EEG channels reported. Raises ValueError
    for a speed mode the device tables do not cover.
    """
    tri &= 0xFFFFFFFF
    mode = (tri & 0x0E000000) >> 25
    if tri & 0x20000000:
        mode += 8
    model = 2 if tri & 0x80000000 else 1
    if mode >= len(_SAMPLERATES[0]):
        raise ValueError(f"unsupported speed mode {mode}")

    arr_size = _SAMPLE_ARRAY_SIZES[model - 1][mode]
    eeg_nmax = _NUM_EEG_CHANNELS[model - 1][mode]
    fs = _SAMPLERATES[model - 1][mode]

    offsets = [0] * NUM_STYPE
    offsets[EEG] = 2 * WORD_SIZE
    offsets[SENSOR] = (2 + eeg_nmax) * WORD_SIZE
    offsets[TRIGGER] = 4

    type_nch = [0] * NUM_STYPE
    type_nch[EEG] = min(eeg_nmax, optnch)
    type_nch[SENSOR] = arr_size - eeg_nmax - 2
    type_nch[TRIGGER] = 1

    cap = SystemCap(
        sampling_freq=fs,
        type_nch=tuple(type_nch),
        device_type=MODEL_TYPE_MK1 if model == 1 else MODEL_TYPE_MK2,
        device_id=DEVICE_ID,
    )
    prefiltering = f"HP: DC; LP: {fs / 4.9112:.1f} Hz"
    return ActiveTwoSetup(
        mode=mode,
        model=model,
        offsets=tuple(offsets),
        samplelen=arr_size,
        cap=cap,
        prefiltering=prefiltering,
    )


class ActiveTwoStream:
    """Checks and prepares chunks of words before they reach the ring buffer.

    Chunks need not start or end on a sample boundary. ``device`` must offer
    ``update_ringbuffer(data)`` and ``report_error(code)``.
    """

    def __init__(self, device, samplelen: int, inoffset: int = 0) -> None:
        if samplelen <= 0:
            raise ValueError("sample length must be positive")
        self.device = device
        self.samplelen = samplelen
        self.inoffset = inoffset % samplelen

    def process(self, words: Iterable[int]) -> bool:
        """Validate and forward one chunk of 32-bit words.

        The synchronisation word of each sample is checked and the trigger
        word following it is reduced to its 16 trigger bits. On a missing
        synchronisation word, EIO is reported to the device, nothing is
        forwarded and False is returned.
        """
        buf = [int(w) & 0xFFFFFFFF for w in words]
        slen = self.samplelen
        start = (slen - self.inoffset) % slen
        for i in range(start, len(buf), slen):
            if buf[i] != SYNC_WORD:
                self.device.report_error(errno.EIO)
                return False
            if i + 1 < len(buf):
                buf[i + 1] = (buf[i + 1] >> 8) & 0x0000FFFF
        self.inoffset = (self.inoffset + len(buf)) % slen

        # A full ring buffer is already reported to the device by the core.
        with contextlib.suppress(OSError):
            self.device.update_ringbuffer(struct.pack(f"={len(buf)}I", *buf))
        return True

    def process_bytes(self, data: bytes) -> bool:
        """Forward a chunk of raw little-endian bytes as received from USB."""
        if len(data) % WORD_SIZE:
            raise ValueError("chunk length is not a multiple of 4 bytes")
        return self.process(w for (w,) in struct.iter_unpack("<I", data))


def eeg_labels(nch: int) -> tuple[str, ...]:
    """Return the EEG electrode labels used for a cap of ``nch`` channels."""
    if nch == 32:
        return _EEG32_LABELS
    if nch == 64:
        return _EEG64_LABELS
    return _EEG256_LABELS


def channel_info(
    stype: int, ich: int, labels: Sequence[str], prefiltering: str
) -> ChannelInfo:
    """Return the metadata of channel ``ich`` of sensor type ``stype``."""
    if stype != TRIGGER:
        label = labels[ich] if stype == EEG else SENSOR_LABELS[ich]
        return ChannelInfo(
            label=label,
            unit=_ANALOG_UNIT,
            transducter=_ANALOG_TRANSDUCTER,
            prefiltering=prefiltering,
            isint=False,
            dtype=DataType.DOUBLE,
            min=-262144.0,
            max=262143.96875,
        )
    return ChannelInfo(
        label=_TRIGGER_LABEL,
        unit=_TRIGGER_UNIT,
        transducter=_TRIGGER_TRANSDUCTER,
        prefiltering=_TRIGGER_PREFILTERING,
        isint=True,
        dtype=DataType.INT32,
        min=-8388608,
        max=8388607,
    )


def selected_channels(
    offsets: Sequence[int] | Mapping[int, int], groups: Sequence[GroupConfig]
) -> list[SelectedChannels]:
    """Describe where each channel group lies in a sample.

    Analog channels are scaled to microvolts; trigger channels are not.
    """
    result = []
    for grp in groups:
        stype = grp.sensortype
        result.append(
            SelectedChannels(
                in_offset=offsets[stype] + grp.index * WORD_SIZE,
                inlen=grp.nch * WORD_SIZE,
                typein=DataType.INT32,
                typeout=grp.datatype,
                iarray=grp.iarray,
                arr_offset=grp.arr_offset,
                bsc=stype != TRIGGER,
                sc=_SCALES[DataType(grp.datatype)],
            )
        )
    return result