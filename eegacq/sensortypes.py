"""Registry mapping sensor type names to numeric identifiers."""

from __future__ import annotations

import threading

_BUILTIN_TYPES = ("eeg", "trigger", "undefined")


class SensorTypeRegistry:
    """Thread-safe, append-only table of sensor type names.

    A new registry knows "eeg", "trigger" and "undefined" as 0, 1 and 2;
    any other name gets the next free identifier the first time it is asked.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._names: list[str] = []
        self._ids: dict[str, int] = {}
        for name in _BUILTIN_TYPES:
            self._add(name)

    def _add(self, name: str) -> int:
        stype = self._ids.get(name)
        if stype is None:
            stype = len(self._names)
            self._names.append(name)
            self._ids[name] = stype
        return stype

    def sensor_type(self, name: str) -> int:
        """Return the identifier of ``name``, registering it if new."""
        if name is None:
            raise ValueError("sensor type name is required")
        stype = self._ids.get(name)
        if stype is not None:
            return stype
        if not name:
            raise ValueError("sensor type name must not be empty")
        with self._lock:
            return self._add(name)

    def sensor_name(self, stype: int) -> str:
        """Return the name registered for ``stype``."""
        if isinstance(stype, int) and 0 <= stype < len(self._names):
            return self._names[stype]
        raise ValueError(f"unknown sensor type {stype!r}")


_registry = SensorTypeRegistry()


def sensor_type(name: str) -> int:
    """Return the identifier of sensor type ``name`` in the shared registry."""
    return _registry.sensor_type(name)


def sensor_name(stype: int) -> str:
    """Return the name of sensor type ``stype`` in the shared registry."""
    return _registry.sensor_name(stype)