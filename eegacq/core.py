"""Acquisition core: ring buffer, device state and the plugin interface."""

from __future__ import annotations

import errno
import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import IntEnum

from .typecast import CastFunction, cast, get_cast_fn
from .types import (
    LABEL_LEN,
    NUM_STYPE,
    PREFILTERING_LEN,
    TRANSDUCTER_LEN,
    UNIT_LEN,
    Capability,
    ChannelInfo,
    DataType,
    Field,
    GroupConfig,
    OptionName,
    SelectedChannels,
    SystemCap,
    data_size,
)

PACKAGE_STRING = "eegacq 0.1.0"

BUFF_SIZE = 10
"""Capacity of the ring buffer, in seconds of signal."""


class _Order(IntEnum):
    NONE = 0
    START = 1
    STOP = 2


def _oserror(code: int) -> OSError:
    return OSError(code, os.strerror(code))


class DevicePlugin(ABC):
    """Base class of device implementations driven by an :class:`EEGDevice`.

    When the device is opened, ``device`` is set to the :class:`EEGDevice`
    that owns the plugin; the plugin reports its capabilities and pushes its
    data through it.
    """

    supported_opts: Sequence[OptionName] = ()

    def __init__(self) -> None:
        self.device: EEGDevice | None = None

    @abstractmethod
    def open_device(self, options: Sequence[str | None]) -> None:
        """Open the device with option values ordered as ``supported_opts``.

        Must call ``device.set_cap`` and ``device.set_input_samlen``.
        Raises on failure.
        """

    @abstractmethod
    def close_device(self) -> None:
        """Close the device and release its resources."""

    @abstractmethod
    def set_channel_groups(self, groups: Sequence[GroupConfig]) -> None:
        """Describe, through ``device.alloc_input_groups``, how the groups map
        onto the input samples. Never called during acquisition."""

    def start_acq(self) -> None:
        """Called when the acquisition is about to start."""

    def stop_acq(self) -> None:
        """Called when the acquisition is about to stop."""

    @abstractmethod
    def fill_chinfo(self, stype: int, ich: int) -> ChannelInfo:
        """Return the metadata of channel ``ich`` of sensor type ``stype``."""


@dataclass
class _InputGroup:
    in_offset: int
    inlen: int
    buff_offset: int
    in_tsize: int
    buff_tsize: int
    sc: float
    cast_key: tuple
    cast_fn: CastFunction


@dataclass(frozen=True)
class _ArrayConfig:
    iarray: int
    arr_offset: int
    buff_offset: int
    length: int


def _cast_key(intype: int, outtype: int, scaled: bool) -> tuple:
    if not scaled and intype == outtype:
        return ("identity",)
    return (intype, outtype, scaled)


def _optimize(groups: list[_InputGroup]) -> list[_InputGroup]:
    """Merge input groups that are contiguous in input and buffer alike."""
    merged: list[_InputGroup] = []
    pending = list(groups)
    while pending:
        current = pending.pop(0)
        rest = []
        for other in pending:
            if (
                other.in_offset == current.in_offset + current.inlen
                and other.buff_offset == current.buff_offset + current.inlen
                and other.sc == current.sc
                and other.cast_key == current.cast_key
            ):
                current.inlen += other.inlen
            else:
                rest.append(other)
        merged.append(current)
        pending = rest
    return merged


def _truncate(text: str | None, size: int) -> str:
    return "" if text is None else text[: size - 1]


def _typed_pair(info: ChannelInfo, outtype: DataType) -> tuple:
    stored = cast([info.min, info.max], DataType.DOUBLE, info.dtype)
    return tuple(cast(stored, info.dtype, outtype))


class EEGDevice:
    """An opened acquisition device and the ring buffer fed by its plugin."""

    def __init__(self, plugin: DevicePlugin, options: Iterable[str | None] = ()) -> None:
        self.plugin = plugin
        self._synclock = threading.Lock()
        self._available = threading.Condition(self._synclock)
        self._apilock = threading.RLock()

        self._cap = SystemCap()
        self._provided_stypes: tuple[int, ...] = ()

        self._buffer = bytearray()
        self._buffsize = 0
        self._in_samlen = 0
        self._buff_samlen = 0
        self._in_offset = 0
        self._buff_ns = 0
        self._ind = 0
        self._last_read = 0
        self._nreadwait = 0
        self._ns_written = 0
        self._ns_read = 0
        self._acq_order = _Order.NONE
        self._acquiring = False
        self._error = 0

        self._strides: list[int] = []
        self._selch: list[SelectedChannels] = []
        self._inbuffgrp: list[_InputGroup] = []
        self._arrconf: list[_ArrayConfig] = []
        self._closed = False

        plugin.device = self
        plugin.open_device(list(options))
        self._update_capabilities()

    # ------------------------------------------------------------------
    # Interface used by plugins
    # ------------------------------------------------------------------
    def update_ringbuffer(self, data) -> None:
        """Append raw input bytes, which need not start or end on a sample.

        Raises OSError(ENOMEM) when the ring buffer would overflow.
        """
        view = memoryview(data).cast("B")
        length = len(view)
        if not self._in_samlen:
            raise ValueError("input sample length has not been set")

        with self._available:
            nsread = self._ns_read
            acquiring = self._acquiring
            if self._acq_order == _Order.START:
                rest = (self._in_samlen - self._in_offset) % self._in_samlen
                if rest <= length:
                    self._acq_order = _Order.NONE
                    view = view[rest:]
                    length -= rest
                    self._in_offset = 0
            elif self._acq_order == _Order.STOP:
                self._acq_order = _Order.NONE
                acquiring = self._acquiring = False

        if acquiring:
            ns_be_written = length // self._in_samlen + 2 + self._ns_written
            if ns_be_written - nsread >= self._buff_ns:
                self.report_error(errno.ENOMEM)
                raise _oserror(errno.ENOMEM)

            ns = self._cast_data(view, length)

            with self._available:
                self._ns_written += ns
                if self._nreadwait and (
                    self._nreadwait + self._ns_read <= self._ns_written
                ):
                    self._available.notify()

        self._in_offset = (length + self._in_offset) % self._in_samlen

    def report_error(self, error: int) -> None:
        """Record an acquisition error; only the first one is kept."""
        with self._available:
            if not self._error:
                self._error = error
            if self._nreadwait:
                self._available.notify()

    def alloc_input_groups(self, ngrp: int) -> list[SelectedChannels]:
        """Allocate ``ngrp`` input group descriptions for the plugin to fill."""
        self._selch = [SelectedChannels() for _ in range(ngrp)]
        self._inbuffgrp = []
        self._arrconf = []
        return self._selch

    def set_input_samlen(self, samlen: int) -> None:
        """Set the size in bytes of one sample as pushed by the plugin."""
        self._in_samlen = samlen

    def set_cap(self, cap: SystemCap) -> None:
        """Record the capabilities declared by the plugin."""
        self._cap = SystemCap(
            sampling_freq=cap.sampling_freq,
            type_nch=tuple(cap.type_nch)[:NUM_STYPE],
            device_type=str(cap.device_type),
            device_id=str(cap.device_id),
        )

    # ------------------------------------------------------------------
    # User interface
    # ------------------------------------------------------------------
    def get_cap(self, cap: int):
        """Return the value of capability ``cap``."""
        try:
            which = Capability(cap)
        except ValueError as exc:
            raise ValueError(f"unknown capability {cap!r}") from exc
        if which == Capability.FS:
            return self._cap.sampling_freq
        if which == Capability.TYPELIST:
            return self._provided_stypes
        if which == Capability.DEVTYPE:
            return self._cap.device_type
        return self._cap.device_id

    def get_numch(self, stype: int) -> int:
        """Return the number of channels of sensor type ``stype``."""
        if not isinstance(stype, int) or not 0 <= stype < NUM_STYPE:
            raise ValueError(f"invalid sensor type {stype!r}")
        return self._cap.type_nch[stype]

    def channel_info(self, stype: int, index: int, *args: int) -> tuple:
        """Return the requested fields of a channel, one value per field.

        Fields are read until the end or until ``Field.EOL``.
        """
        if not isinstance(stype, int) or not 0 <= stype < NUM_STYPE:
            raise ValueError(f"invalid sensor type {stype!r}")
        if not 0 <= index < self._cap.type_nch[stype]:
            raise ValueError(f"invalid channel index {index!r}")

        with self._apilock:
            info = self.plugin.fill_chinfo(stype, index)
            values = []
            for fieldtype in args:
                try:
                    fld = Field(fieldtype)
                except ValueError as exc:
                    raise ValueError(f"unknown field {fieldtype!r}") from exc
                if fld == Field.EOL:
                    break
                values.append(self._field_value(info, fld))
        return tuple(values)

    @staticmethod
    def _field_value(info: ChannelInfo, fld: Field):
        if fld == Field.LABEL:
            return _truncate(info.label, LABEL_LEN)
        if fld == Field.ISINT:
            return bool(info.isint)
        if fld == Field.MM_I:
            return _typed_pair(info, DataType.INT32)
        if fld == Field.MM_F:
            return _typed_pair(info, DataType.FLOAT)
        if fld == Field.MM_D:
            return _typed_pair(info, DataType.DOUBLE)
        if fld == Field.UNIT:
            return _truncate(info.unit, UNIT_LEN)
        if fld == Field.TRANSDUCTER:
            return _truncate(info.transducter, TRANSDUCTER_LEN)
        return _truncate(info.prefiltering, PREFILTERING_LEN)

    def acq_setup(self, strides: Sequence[int], groups: Sequence[GroupConfig]) -> None:
        """Configure how channel groups are delivered into the user arrays."""
        with self._available:
            if self._acquiring:
                raise PermissionError(errno.EPERM, "acquisition is running")

        with self._apilock:
            groups = list(groups)
            self._validate_groups(groups)
            self._strides = [int(s) for s in strides]
            self.plugin.set_channel_groups(groups)
            self._setup_ringbuffer_mapping()

            self._buff_ns = BUFF_SIZE * self._cap.sampling_freq
            self._buffsize = self._buff_ns * self._buff_samlen
            self._buffer = bytearray(self._buffsize)
            self._ind = 0
            self._last_read = 0

    def _validate_groups(self, groups: Sequence[GroupConfig]) -> None:
        for grp in groups:
            stype = grp.sensortype
            if (
                not 0 <= stype < NUM_STYPE
                or grp.index + grp.nch > self._cap.type_nch[stype]
                or not 0 <= grp.datatype < len(DataType)
            ):
                raise ValueError(f"invalid channel group {grp!r}")

    def _setup_ringbuffer_mapping(self) -> None:
        offset = 0
        groups: list[_InputGroup] = []
        arrconf: list[_ArrayConfig] = []
        for sel in self._selch:
            isiz = data_size(sel.typein)
            bsiz = data_size(sel.typeout)
            scaled = bool(sel.bsc)
            groups.append(
                _InputGroup(
                    in_offset=sel.in_offset,
                    inlen=sel.inlen,
                    buff_offset=offset,
                    in_tsize=isiz,
                    buff_tsize=bsiz,
                    sc=sel.sc,
                    cast_key=_cast_key(sel.typein, sel.typeout, scaled),
                    cast_fn=get_cast_fn(sel.typein, sel.typeout, scaled),
                )
            )
            length = bsiz * sel.inlen // isiz
            arrconf.append(_ArrayConfig(sel.iarray, sel.arr_offset, offset, length))
            offset += length
        self._buff_samlen = offset
        self._arrconf = arrconf
        self._inbuffgrp = _optimize(groups)

    def _cast_data(self, data: memoryview, length: int) -> int:
        ns = 0
        pos = 0
        offset = self._in_offset
        ind = self._ind
        inlen = length
        ring = self._buffer

        while inlen:
            for grp in self._inbuffgrp:
                glen = grp.inlen
                inoff = grp.in_offset - offset
                buffoff = grp.buff_offset
                if inoff < 0:
                    glen += inoff
                    if glen <= 0:
                        continue
                    buffoff += grp.buff_tsize * (-inoff) // grp.in_tsize
                    inoff = 0
                rest = inlen - inoff
                if rest <= 0:
                    continue
                glen = min(glen, rest)
                start = pos + inoff
                out = grp.cast_fn(data[start : start + glen], grp.sc)
                dst = ind + buffoff
                ring[dst : dst + len(out)] = out
            rest = self._in_samlen - offset
            if inlen < rest:
                break
            inlen -= rest
            pos += rest
            offset = 0
            ns += 1
            ind = (ind + self._buff_samlen) % self._buffsize
        self._ind = ind
        return ns

    def start(self) -> None:
        """Start the acquisition."""
        with self._available:
            if self._acquiring:
                raise PermissionError(errno.EPERM, "acquisition already running")
            self._ns_read = self._ns_written = 0
            self.plugin.start_acq()
            self._acq_order = _Order.START
            self._acquiring = True

    def stop(self) -> None:
        """Ask the acquisition to stop at the next data update."""
        with self._available:
            if not self._acquiring:
                raise PermissionError(errno.EPERM, "acquisition not running")
            self._acq_order = _Order.STOP
        self.plugin.stop_acq()

    def _wait_for_data(self, ns: int) -> tuple[int, int]:
        with self._available:
            self._nreadwait = ns
            while (
                not self._error
                and self._acquiring
                and self._ns_read + ns > self._ns_written
            ):
                self._available.wait()
            error = self._error
            if (error or not self._acquiring) and self._ns_read + ns > self._ns_written:
                ns = self._ns_written - self._ns_read
            self._nreadwait = 0
        return ns, error

    def get_data(self, ns: int, *args) -> int:
        """Copy up to ``ns`` samples into the writable buffers, one per array.

        Blocks until ``ns`` samples are available or the acquisition stops;
        returns the number of samples copied.
        """
        if ns < 0:
            raise ValueError("number of samples must not be negative")
        narr = len(self._strides)
        if len(args) < narr:
            raise ValueError(f"expected {narr} output buffers, got {len(args)}")
        outputs = [memoryview(buf).cast("B") for buf in args[:narr]]
        if any(out.readonly for out in outputs):
            raise ValueError("output buffers must be writable")

        ns, error = self._wait_for_data(ns)
        if ns == 0 and error:
            raise _oserror(error)

        ring = self._buffer
        curr = self._last_read
        positions = [0] * narr
        for _ in range(ns):
            for ac in self._arrconf:
                dst = positions[ac.iarray] + ac.arr_offset
                src = curr + ac.buff_offset
                outputs[ac.iarray][dst : dst + ac.length] = ring[src : src + ac.length]
            curr = (curr + self._buff_samlen) % self._buffsize
            positions = [p + s for p, s in zip(positions, self._strides)]

        with self._available:
            self._ns_read += ns
        self._last_read = curr
        return ns

    def get_available(self) -> int:
        """Return the number of samples that can be read without blocking."""
        with self._available:
            ns = self._ns_written - self._ns_read
            error = self._error
        if not ns and error:
            raise _oserror(error)
        return ns

    def close(self) -> None:
        """Stop any running acquisition and close the device."""
        if self._closed:
            return
        with self._available:
            acquiring = self._acquiring
        if acquiring:
            self.stop()
        self.plugin.close_device()
        self._closed = True

    def __enter__(self) -> "EEGDevice":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _update_capabilities(self) -> None:
        self._provided_stypes = tuple(
            stype for stype, nch in enumerate(self._cap.type_nch) if nch > 0
        )


def get_string() -> str:
    """Return the name and version of the package."""
    return PACKAGE_STRING