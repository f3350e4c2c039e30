"""
In-memory dictionary store.

Ephemeral; used for tests and for runs that should not touch disk.
"""

from __future__ import annotations

from sensorwatch.storage.base import KeyValueStore


class DictStore(KeyValueStore):
    """Dictionary-backed KeyValueStore."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        """Snapshot of stored keys."""
        return list(self._data)
