"""Persistent key-value storage backends."""

from sensorwatch.storage import keys
from sensorwatch.storage.base import KeyValueStore
from sensorwatch.storage.dict_store import DictStore
from sensorwatch.storage.sqlite_store import SQLiteStore

__all__ = [
    "KeyValueStore",
    "DictStore",
    "SQLiteStore",
    "keys",
]
