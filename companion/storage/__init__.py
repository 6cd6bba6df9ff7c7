"""
Local persistence for the companion.

Stores keep their state in memory and persist it through a KeyValueStore
backend with fire-and-forget writes.
"""

from .kv import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .preferences import PreferenceStore
from .records import LocalRecordStore

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "LocalRecordStore",
    "PreferenceStore",
]
