"""Ordered store of name/value settings where later definitions win."""

from __future__ import annotations

from collections.abc import Iterator


class Configuration:
    """A list of settings in the order they were defined.

    The same name may be set several times; a lookup returns the value of
    the most recent definition.
    """

    def __init__(self) -> None:
        self._settings: list[tuple[str, str]] = []

    def add_setting(self, name: str, value: str) -> None:
        """Append a definition of ``name``, overriding any earlier one."""
        if name is None or value is None:
            raise ValueError("setting name and value are required")
        self._settings.append((str(name), str(value)))

    def get(self, name: str) -> str | None:
        """Return the latest value defined for ``name``, or None if unset."""
        for setname, value in reversed(self._settings):
            if setname == name:
                return value
        return None

    def reinit(self) -> None:
        """Forget every setting defined so far."""
        self._settings.clear()

    def __contains__(self, name: object) -> bool:
        return any(setname == name for setname, _ in self._settings)

    def __len__(self) -> int:
        return len(self._settings)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._settings)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._settings!r})"