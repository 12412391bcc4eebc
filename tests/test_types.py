import pytest

from eegacq.types import (
    NUM_STYPE,
    DataType,
    GroupConfig,
    OptionName,
    SystemCap,
    data_size,
)


@pytest.mark.parametrize(
    "dtype, size",
    [(DataType.INT32, 4), (DataType.FLOAT, 4), (DataType.DOUBLE, 8)],
)
def test_data_size_known_types(dtype, size):
    assert data_size(dtype) == size


def test_data_size_accepts_plain_ints():
    assert data_size(int(DataType.DOUBLE)) == data_size(DataType.DOUBLE)


@pytest.mark.parametrize("dtype", [-1, 3, 42])
def test_data_size_unknown_type_is_zero(dtype):
    assert data_size(dtype) == 0


def test_systemcap_default_counts_cover_every_sensor_type():
    cap = SystemCap()
    assert cap.type_nch == (0,) * NUM_STYPE


def test_systemcap_pads_and_freezes_counts():
    cap = SystemCap(sampling_freq=256, type_nch=[8, 1])
    assert cap.type_nch == (8, 1, 0)
    assert isinstance(cap.type_nch, tuple)


def test_group_config_defaults():
    grp = GroupConfig(sensortype=0)
    assert (grp.index, grp.nch, grp.iarray, grp.arr_offset) == (0, 0, 0, 0)
    assert grp.datatype == DataType.FLOAT


def test_option_name_default_value_absent():
    opt = OptionName("host")
    assert opt.defvalue is None
    assert opt.name == "host"