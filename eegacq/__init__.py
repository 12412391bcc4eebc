"""Acquisition core for EEG and biosignal devices: data types, type casting,
sensor types, settings, the ring-buffered device core and ActiveTwo decoding."""

__version__ = "0.1.0"