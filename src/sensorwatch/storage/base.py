"""
Base interface for the persistent key-value store.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any


class KeyValueStore(ABC):
    """
    Durable local storage keyed by string.

    Read/write/delete only. No transactions: the last write to a key wins.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (create tables, directories, etc.)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""
        pass

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""
        pass

    # JSON helpers
    async def get_json(self, key: str, default: Any = None) -> Any:
        """Read a JSON-encoded value. Undecodable values yield default."""
        raw = await self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return default

    async def set_json(self, key: str, value: Any) -> None:
        """Write a value as JSON."""
        await self.set(key, json.dumps(value))

    async def delete_many(self, keys: list[str]) -> int:
        """Delete several keys. Returns count of keys that existed."""
        count = 0
        for key in keys:
            if await self.delete(key):
                count += 1
        return count
