import errno
import struct

import pytest

from eegacq.biosemi import (
    SENSOR_LABELS,
    SYNC_WORD,
    ActiveTwoSetup,
    ActiveTwoStream,
    channel_info,
    eeg_labels,
    parse_triggers,
    selected_channels,
)
from eegacq.core import DevicePlugin, EEGDevice
from eegacq.types import EEG, SENSOR, TRIGGER, DataType, Field, GroupConfig


class FakeDevice:
    def __init__(self):
        self.updates = []
        self.errors = []

    def update_ringbuffer(self, data):
        self.updates.append(bytes(data))

    def report_error(self, code):
        self.errors.append(code)


def words_of(data):
    return [w for (w,) in struct.iter_unpack("=I", data)]


def test_parse_triggers_mk1_mode0():
    setup = parse_triggers(0, 64)
    assert isinstance(setup, ActiveTwoSetup)
    assert setup.model == 1
    assert setup.mode == 0
    assert setup.cap.sampling_freq == 2048
    assert setup.samplelen == 258
    assert setup.samlen == 258 * 4
    assert setup.cap.device_type == "Biosemi ActiveTwo Mk1"
    assert setup.cap.type_nch[EEG] == 64
    assert setup.cap.type_nch[TRIGGER] == 1
    assert setup.cap.type_nch[SENSOR] == 0


def test_parse_triggers_mk2_mode4():
    setup = parse_triggers(0x80000000 | (4 << 25), 512)
    assert setup.model == 2
    assert setup.cap.device_type == "Biosemi ActiveTwo Mk2"
    assert setup.samplelen == 282
    assert setup.cap.type_nch[EEG] == 256
    assert setup.cap.type_nch[SENSOR] == 282 - 256 - 2
    assert setup.offsets[SENSOR] == (2 + 256) * 4
    assert setup.offsets[EEG] == 8
    assert setup.offsets[TRIGGER] == 4


def test_parse_triggers_high_bit_mode():
    setup = parse_triggers(0x20000000, 512)
    assert setup.mode == 8
    assert setup.samplelen == 290


def test_parse_triggers_out_of_range_mode():
    with pytest.raises(ValueError):
        parse_triggers(0x20000000 | (1 << 25), 64)


def test_prefiltering_format():
    setup = parse_triggers(0, 64)
    assert setup.prefiltering.startswith("HP: DC; LP: ")
    assert setup.prefiltering.endswith(" Hz")


def test_stream_shifts_triggers():
    dev = FakeDevice()
    stream = ActiveTwoStream(dev, 4)
    data = [SYNC_WORD, 0x00123400, 5, 6, SYNC_WORD, 0xABCDEF00, 7, 8]
    assert stream.process(data) is True
    out = words_of(dev.updates[0])
    assert out == [SYNC_WORD, 0x1234, 5, 6, SYNC_WORD, 0xCDEF, 7, 8]
    assert stream.inoffset == 0
    assert dev.errors == []


def test_stream_split_chunks():
    dev = FakeDevice()
    stream = ActiveTwoStream(dev, 4)
    assert stream.process([SYNC_WORD, 0x00000100, 1])
    assert stream.inoffset == 3
    assert stream.process([2, SYNC_WORD, 0x00000200, 3, 4])
    assert words_of(dev.updates[0]) == [SYNC_WORD, 1, 1]
    assert words_of(dev.updates[1]) == [2, SYNC_WORD, 2, 3, 4]
    assert stream.inoffset == 0


def test_stream_bad_sync_reports_eio():
    dev = FakeDevice()
    stream = ActiveTwoStream(dev, 4)
    assert stream.process([0, 1, 2, 3]) is False
    assert dev.errors == [errno.EIO]
    assert dev.updates == []
    assert stream.inoffset == 0


def test_stream_bytes_little_endian():
    dev = FakeDevice()
    stream = ActiveTwoStream(dev, 2)
    raw = struct.pack("<2I", SYNC_WORD, 0x00000500)
    assert stream.process_bytes(raw)
    assert words_of(dev.updates[0]) == [SYNC_WORD, 5]
    with pytest.raises(ValueError):
        stream.process_bytes(b"\x00\x01\x02")


def test_eeg_labels():
    assert len(eeg_labels(32)) == 32
    assert len(eeg_labels(64)) == 64
    labels256 = eeg_labels(256)
    assert len(labels256) == 256
    assert labels256[0] == "A1"
    assert labels256[-1] == "H32"
    assert eeg_labels(128) == labels256
    assert eeg_labels(64)[0] == "Fp1"


def test_channel_info_analog_and_trigger():
    labels = eeg_labels(64)
    info = channel_info(EEG, 3, labels, "pre")
    assert info.label == labels[3]
    assert info.dtype == DataType.DOUBLE
    assert info.isint is False
    assert info.prefiltering == "pre"
    assert (info.min, info.max) == (-262144.0, 262143.96875)

    sens = channel_info(SENSOR, 0, labels, "pre")
    assert sens.label == SENSOR_LABELS[0]

    tri = channel_info(TRIGGER, 0, labels, "pre")
    assert tri.label == "Status"
    assert tri.isint is True
    assert tri.dtype == DataType.INT32
    assert (tri.min, tri.max) == (-8388608, 8388607)
    assert tri.prefiltering == "No filtering"


def test_selected_channels():
    setup = parse_triggers(0, 64)
    groups = [
        GroupConfig(sensortype=EEG, index=2, nch=3, datatype=DataType.FLOAT),
        GroupConfig(sensortype=TRIGGER, index=0, nch=1, iarray=1,
                    datatype=DataType.INT32),
    ]
    sel = selected_channels(setup.offsets, groups)
    assert sel[0].in_offset == setup.offsets[EEG] + 2 * 4
    assert sel[0].inlen == 12
    assert sel[0].bsc is True
    assert sel[0].sc == pytest.approx(1.0 / 8192.0)
    assert sel[0].typein == DataType.INT32
    assert sel[1].bsc is False
    assert sel[1].in_offset == setup.offsets[TRIGGER]
    assert sel[1].iarray == 1


class _ReplayPlugin(DevicePlugin):
    def __init__(self):
        super().__init__()
        self.setup = None

    def open_device(self, options):
        self.setup = parse_triggers(0, 32)
        self.device.set_cap(self.setup.cap)
        self.device.set_input_samlen(self.setup.samlen)

    def close_device(self):
        pass

    def set_channel_groups(self, groups):
        sel = self.device.alloc_input_groups(len(groups))
        for dst, src in zip(sel, selected_channels(self.setup.offsets, groups)):
            dst.__dict__.update(src.__dict__)

    def fill_chinfo(self, stype, ich):
        return channel_info(stype, ich, eeg_labels(32), self.setup.prefiltering)


def test_end_to_end_through_device():
    plugin = _ReplayPlugin()
    with EEGDevice(plugin) as dev:
        assert dev.channel_info(EEG, 0, Field.LABEL) == ("Fp1",)
        groups = [
            GroupConfig(sensortype=EEG, index=0, nch=2, iarray=0,
                        datatype=DataType.DOUBLE),
            GroupConfig(sensortype=TRIGGER, index=0, nch=1, iarray=1,
                        datatype=DataType.INT32),
        ]
        dev.acq_setup([16, 4], groups)
        dev.start()

        slen = plugin.setup.samplelen
        words = []
        for tri, e0, e1 in ((7, 8192 * 3, 0xFFFFE000), (9, 0, 8192)):
            sample = [0] * slen
            sample[0] = SYNC_WORD
            sample[1] = tri << 8
            sample[2] = e0
            sample[3] = e1
            words.extend(sample)
        stream = ActiveTwoStream(dev, slen)
        assert stream.process(words)

        eeg = bytearray(32)
        tri = bytearray(8)
        assert dev.get_data(2, eeg, tri) == 2
        assert list(struct.unpack("=2i", tri)) == [7, 9]
        assert list(struct.unpack("=4d", eeg)) == [3.0, -1.0, 0.0, 1.0]
        dev.stop()