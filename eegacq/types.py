"""Data types, constants and records shared by the acquisition core and plugins."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

NUM_STYPE = 3
"""Number of sensor types a device reports channel counts for."""

EEG = 0
TRIGGER = 1
SENSOR = 2

PLUGIN_ABI_VERSION = 5

LABEL_LEN = 32
UNIT_LEN = 16
TRANSDUCTER_LEN = 128
PREFILTERING_LEN = 128


class DataType(IntEnum):
    """Sample data types a channel can be delivered in."""

    INT32 = 0
    FLOAT = 1
    DOUBLE = 2


NUM_DTYPE = len(DataType)


class Field(IntEnum):
    """Channel information fields that can be queried."""

    EOL = 0
    LABEL = 1
    MM_I = 2
    MM_F = 3
    MM_D = 4
    ISINT = 5
    UNIT = 6
    TRANSDUCTER = 7
    PREFILTERING = 8


NUM_FIELDS = len(Field)


class Capability(IntEnum):
    """Device capability fields that can be queried."""

    FS = 0
    TYPELIST = 1
    DEVTYPE = 2
    DEVID = 3


NUM_CAP = len(Capability)


@dataclass
class GroupConfig:
    """A group of consecutive channels of one sensor type sent to one array."""

    sensortype: int
    index: int = 0
    nch: int = 0
    iarray: int = 0
    arr_offset: int = 0
    datatype: int = DataType.FLOAT


@dataclass
class SelectedChannels:
    """How a block of the device input maps onto the ring buffer.

    Offsets and lengths are in bytes of the input sample. ``sc`` is the
    scale applied when ``bsc`` is true.
    """

    in_offset: int = 0
    inlen: int = 0
    typein: int = DataType.INT32
    typeout: int = DataType.INT32
    iarray: int = 0
    arr_offset: int = 0
    bsc: bool = False
    sc: float = 1


@dataclass
class ChannelInfo:
    """Metadata describing a single channel."""

    label: str | None = None
    unit: str | None = None
    transducter: str | None = None
    prefiltering: str | None = None
    isint: bool = False
    dtype: int = DataType.DOUBLE
    min: float = 0
    max: float = 0


@dataclass
class SystemCap:
    """Capabilities a device declares when it is opened."""

    sampling_freq: int = 0
    type_nch: tuple[int, ...] = field(default_factory=lambda: (0,) * NUM_STYPE)
    device_type: str = ""
    device_id: str = ""

    def __post_init__(self) -> None:
        counts = tuple(self.type_nch)
        if len(counts) < NUM_STYPE:
            counts = counts + (0,) * (NUM_STYPE - len(counts))
        self.type_nch = counts


@dataclass(frozen=True)
class OptionName:
    """A setting a plugin accepts, with its default value."""

    name: str
    defvalue: str | None = None


_DATA_SIZES = {
    DataType.INT32: 4,
    DataType.FLOAT: 4,
    DataType.DOUBLE: 8,
}


def data_size(dtype: int) -> int:
    """Return the size in bytes of one value of ``dtype``, or 0 if unknown."""
    try:
        return _DATA_SIZES[DataType(dtype)]
    except ValueError:
        return 0