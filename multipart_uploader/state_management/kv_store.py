"""Protocol for the persisted key-value medium behind resume records."""

from __future__ import annotations

from typing import Protocol


class KeyValueStore(Protocol):
    """Persistence interface mapping textual keys to textual values."""

    async def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    async def delete(self, key: str) -> None:
        """Delete ``key``; a no-op if it does not exist."""
        ...


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store. Records do not survive a restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        """Initialise the store, optionally pre-populated."""
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""
        self._data[key] = value

    async def delete(self, key: str) -> None:
        """Delete ``key`` if present."""
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """Return the stored keys."""
        return list(self._data)
