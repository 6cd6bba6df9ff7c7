"""
Shared persistence plumbing for the local stores.

Stores update their in-memory state synchronously and hand the serialized
result to a BackgroundWriter. The writer runs each durable write as a task on
the running event loop; callers never wait for it and a failed write is only
logged. Writes from one store reach the backend in submission order.
"""

import asyncio
import json
from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from companion.domain.errors import PersistenceError
from companion.storage.kv import KeyValueStore

logger = structlog.get_logger(__name__)


def encode_json(payload: Any) -> str:
    """Compact JSON used for every persisted value."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class BackgroundWriter:
    """Fire-and-forget durable writes against a key-value backend."""

    def __init__(self, backend: KeyValueStore, component: str) -> None:
        self.backend = backend
        self.logger = logger.bind(component=component)
        self._pending: set[asyncio.Task[None]] = set()
        self._tail: asyncio.Task[None] | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def write(self, values: Mapping[str, str]) -> None:
        """Schedule ``values`` to be written; returns immediately."""
        self._submit(self._write_values(dict(values)))

    def remove(self, keys: Sequence[str]) -> None:
        """Schedule removal of ``keys``; returns immediately."""
        self._submit(self._remove_keys(list(keys)))

    async def flush(self) -> None:
        """Wait until every scheduled write has finished (successfully or not)."""
        while self._pending:
            await asyncio.wait(list(self._pending))

    def _submit(self, operation: Any) -> None:
        previous = self._tail
        task = asyncio.get_running_loop().create_task(self._after(previous, operation))
        self._tail = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _after(self, previous: asyncio.Task[None] | None, operation: Any) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        await operation

    async def _write_values(self, values: dict[str, str]) -> None:
        for key, value in values.items():
            try:
                result = await self.backend.set(key, value)
            except Exception as e:
                self.logger.exception("unexpected_persistence_error", key=key, error=str(e))
                continue

            if result.is_err():
                self.logger.warning(
                    "persistence_write_failed", key=key, error=str(result.unwrap_err())
                )
            else:
                self.logger.debug("persistence_write_completed", key=key, size=len(value))

    async def _remove_keys(self, keys: list[str]) -> None:
        try:
            result = await self.backend.remove_many(keys)
        except Exception as e:
            self.logger.exception("unexpected_persistence_error", keys=keys, error=str(e))
            return

        if result.is_err():
            self.logger.warning(
                "persistence_remove_failed", keys=keys, error=str(result.unwrap_err())
            )
        else:
            self.logger.debug("persistence_remove_completed", removed=result.unwrap())


async def read_json(backend: KeyValueStore, key: str, log: Any) -> Any | None:
    """
    Read and decode one persisted JSON value.

    Missing keys, backend failures and malformed JSON all come back as None,
    the last two after being logged.
    """
    try:
        raw = await backend.get(key)
    except PersistenceError as e:
        log.warning("persistence_read_failed", key=key, error=str(e))
        return None

    if raw is None:
        return None

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        log.warning("stored_data_malformed", key=key, error=str(e))
        return None
