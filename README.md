# eegacq

`eegacq` is a small acquisition core for EEG and other biosignal
amplifiers. A device plugin pushes raw sample bytes into the core. The
core stores them in a ring buffer, converts them to the data types the
caller asked for, and copies the samples out in channel groups.

## Modules

- `eegacq.types`: the shared vocabulary. It holds `DataType` (int32,
  float, double), `Field` (channel information fields), `Capability`
  (device capability fields), the records `GroupConfig`,
  `SelectedChannels`, `ChannelInfo`, `SystemCap` and `OptionName`,
  `data_size`, and the sensor type constants `EEG`, `TRIGGER` and
  `SENSOR`.
- `eegacq.typecast`: `get_cast_fn(intype, outtype, scaling)` returns a
  function that converts packed values, with optional scaling.
  `cast(data, intype, outtype, scale)` does the same on a list of
  numbers.
- `eegacq.sensortypes`: `SensorTypeRegistry`, with the module-level
  `sensor_type` and `sensor_name` backed by a shared registry. The names
  `"eeg"`, `"trigger"` and `"undefined"` are always 0, 1 and 2. Any other
  name gets the next free identifier the first time it is asked for.
- `eegacq.configuration`: `Configuration` is an ordered list of settings.
  A name may be set more than once, and `get` returns the most recent
  value.
- `eegacq.core`: `DevicePlugin` is the abstract interface a device
  backend implements. `EEGDevice` owns a plugin and holds the ring buffer
  and the acquisition state. `get_string` returns the package name and
  version.
- `eegacq.biosemi`: the stream decoding and channel metadata for the
  BioSemi ActiveTwo.
  - `parse_triggers` decodes the speed mode and model from the first
    status word and returns an `ActiveTwoSetup`.
  - `ActiveTwoStream` checks the synchronisation word of each sample,
    reduces the trigger word to 16 bits, and forwards the chunk to a
    device.
  - `eeg_labels`, `channel_info` and `selected_channels` describe the
    channels.

## Installing

```
pip install .
```

To install the test dependencies as well:

```
pip install .[test]
```

## Quick look

```python
from eegacq.sensortypes import sensor_type, sensor_name
from eegacq.typecast import cast
from eegacq.types import DataType
from eegacq.configuration import Configuration

sensor_type("eeg")        # 0
sensor_name(2)            # "undefined"

cast([1, 2], DataType.INT32, DataType.FLOAT, 0.5)   # [0.5, 1.0]

conf = Configuration()
conf.add_setting("device", "first")
conf.add_setting("device", "second")
conf.get("device")        # "second"
```

## Writing a plugin

A plugin declares the device's capabilities when it is opened. When the
channel groups are set, it describes where each group lies in the input
sample. It then pushes raw bytes with `EEGDevice.update_ringbuffer`.

```python
import struct

from eegacq.core import DevicePlugin, EEGDevice
from eegacq.types import EEG, ChannelInfo, DataType, GroupConfig, SystemCap


class Constant(DevicePlugin):
    """Two EEG channels and one trigger, as three int32 per sample."""

    def open_device(self, options):
        self.device.set_cap(SystemCap(sampling_freq=100, type_nch=(2, 1, 0),
                                      device_type="constant", device_id="none"))
        self.device.set_input_samlen(12)

    def close_device(self):
        pass

    def set_channel_groups(self, groups):
        for sel, grp in zip(self.device.alloc_input_groups(len(groups)), groups):
            base = 0 if grp.sensortype == EEG else 8
            sel.in_offset = base + grp.index * 4
            sel.inlen = grp.nch * 4
            sel.typein = DataType.INT32
            sel.typeout = grp.datatype
            sel.iarray = grp.iarray
            sel.arr_offset = grp.arr_offset

    def fill_chinfo(self, stype, ich):
        return ChannelInfo(label=f"ch{ich}")


dev = EEGDevice(Constant())
dev.acq_setup([8], [GroupConfig(EEG, nch=2, datatype=DataType.INT32)])
dev.start()
dev.update_ringbuffer(struct.pack("=3i", 1, 2, 3) * 4)
out = bytearray(8 * 4)
dev.get_data(4, out)                  # 4
struct.unpack("=8i", out)             # (1, 2, 1, 2, 1, 2, 1, 2)
dev.stop()
dev.close()
```

## The order of calls on a device

1. Construct an `EEGDevice` around a plugin. This opens the plugin.
2. Query the device with `get_cap`, `get_numch` and `channel_info`.
3. Describe the output arrays and channel groups with `acq_setup`.
4. Call `start`.
5. Read samples with `get_data`, which blocks until enough samples are
   there or the acquisition stops. `get_available` tells how many
   samples can be read at once.
6. Call `stop`, then `close`. The device also works as a context
   manager, and leaving the `with` block closes it.

Errors are raised as exceptions:

- `ValueError` for invalid arguments.
- `PermissionError` when starting, stopping or setting up at the wrong
  time.
- `OSError` with the recorded error code when the acquisition has
  failed and no data is left to read.

## What this package does not do

- It has no command-line program.
- It does not find or load device plugins by name, and it does not read
  configuration files. You construct the plugin and the `EEGDevice`
  yourself.
- It does not talk to hardware. `eegacq.biosemi` only decodes and
  describes an ActiveTwo data stream. The USB transfer is left to the
  caller.
- It ships no ready-to-run plugin or signal generator.

## Running the tests

```
pytest
```