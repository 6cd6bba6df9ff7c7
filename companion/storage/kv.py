"""
Key-value backends for the local stores.

The stores only depend on the KeyValueStore protocol: string values under
string keys, read, written and removed asynchronously. Two implementations
ship with the core, an in-memory dict and a directory of JSON files.
"""

import asyncio
import os
import re
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import structlog

from companion.domain.errors import PersistenceError
from companion.domain.result import Result

logger = structlog.get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    """
    Protocol for the host persistence mechanism.

    Writes report failure through a Result rather than raising; reads raise
    PersistenceError when the backend itself fails and return None for a
    missing key.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> Result[str, PersistenceError]: ...

    async def remove_many(self, keys: Sequence[str]) -> Result[list[str], PersistenceError]: ...


class MemoryKeyValueStore:
    """Dict-backed store, used for tests and for ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> Result[str, PersistenceError]:
        self._data[key] = value
        return Result.ok(key)

    async def remove_many(self, keys: Sequence[str]) -> Result[list[str], PersistenceError]:
        removed = [key for key in keys if self._data.pop(key, None) is not None]
        return Result.ok(removed)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class JsonFileKeyValueStore:
    """
    One file per key inside a data directory.

    Writes go to a temporary file that is atomically moved into place, so a
    crash mid-write leaves the previous value intact. File I/O runs in a worker
    thread to keep the event loop responsive.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.logger = logger.bind(component="json_file_store", directory=str(self.directory))

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def _read(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(key, str(e)) from e

    def _write(self, key: str, value: str) -> None:
        path = self._path_for(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _remove(self, keys: Sequence[str]) -> list[str]:
        removed = []
        for key in keys:
            path = self._path_for(key)
            if path.exists():
                path.unlink()
                removed.append(key)
        return removed

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: str) -> Result[str, PersistenceError]:
        try:
            await asyncio.to_thread(self._write, key, value)
        except OSError as e:
            self.logger.debug("file_write_failed", key=key, error=str(e))
            return Result.err(PersistenceError(key, str(e)))
        return Result.ok(key)

    async def remove_many(self, keys: Sequence[str]) -> Result[list[str], PersistenceError]:
        try:
            removed = await asyncio.to_thread(self._remove, keys)
        except OSError as e:
            return Result.err(PersistenceError(",".join(keys), str(e)))
        return Result.ok(removed)
