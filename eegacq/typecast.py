"""Conversion and scaling of packed sample values between data types."""

from __future__ import annotations

import math
import struct
from collections.abc import Callable, Iterable

from .types import DataType, data_size

CastFunction = Callable[[bytes, float], bytes]
"""Takes packed input values and a scale, returns packed output values."""

_FORMATS = {
    DataType.INT32: "i",
    DataType.FLOAT: "f",
    DataType.DOUBLE: "d",
}


def _to_int32(value: float) -> int:
    wrapped = int(value) & 0xFFFFFFFF
    return wrapped - 0x100000000 if wrapped & 0x80000000 else wrapped


def _to_float32(value: float) -> float:
    try:
        return struct.unpack("=f", struct.pack("=f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


_CONVERTERS: dict[DataType, Callable[[float], float]] = {
    DataType.INT32: _to_int32,
    DataType.FLOAT: _to_float32,
    DataType.DOUBLE: float,
}


def _identity(src: bytes, scale: float) -> bytes:
    return bytes(src)


def _make_cast(intype: DataType, outtype: DataType, scaled: bool) -> CastFunction:
    infmt = "=" + _FORMATS[intype]
    outfmt = _FORMATS[outtype]
    insize = data_size(intype)
    convert = _CONVERTERS[outtype]

    def cast_fn(src: bytes, scale: float) -> bytes:
        if len(src) % insize:
            raise ValueError(
                f"input length {len(src)} is not a multiple of {insize} bytes"
            )
        values = (convert(v) for (v,) in struct.iter_unpack(infmt, src))
        if scaled:
            factor = convert(scale)
            values = (convert(factor * v) for v in values)
        result = list(values)
        return struct.pack(f"={len(result)}{outfmt}", *result)

    return cast_fn


def get_cast_fn(intype: int, outtype: int, scaling: bool) -> CastFunction:
    """Return the function converting packed ``intype`` data to ``outtype``.

    With ``scaling`` set, each converted value is multiplied by the scale,
    itself expressed in the output type. Raises ValueError for unknown types.
    """
    try:
        itype = DataType(intype)
        otype = DataType(outtype)
    except ValueError as exc:
        raise ValueError(f"unsupported data type conversion {intype} -> {outtype}") from exc
    if not scaling and itype == otype:
        return _identity
    return _make_cast(itype, otype, bool(scaling))


def cast(
    data: Iterable[float], intype: int, outtype: int, scale: float | None = None
) -> list[float]:
    """Convert values of ``intype`` to ``outtype``, scaling them unless ``scale`` is None."""
    itype = DataType(intype)
    values = list(data)
    packed = struct.pack(f"={len(values)}{_FORMATS[itype]}", *values)
    fn = get_cast_fn(itype, outtype, scale is not None)
    out = fn(packed, 0 if scale is None else scale)
    return [v for (v,) in struct.iter_unpack("=" + _FORMATS[DataType(outtype)], out)]