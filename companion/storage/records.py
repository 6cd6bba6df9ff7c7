"""
Local persistent record store for health metrics and symptom-check history.

Every mutation updates the in-memory collections in one step, which is the
authoritative result for the running session, and then schedules a durable
write. A crash between the two loses at most that one update.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, TypeVar

import structlog
from pydantic import TypeAdapter, ValidationError

from companion.domain.errors import PersistenceError, StoredDataParseError
from companion.domain.models import (
    ExportSnapshot,
    HealthMetric,
    MetricType,
    SymptomRecord,
    format_timestamp,
    utc_now,
)
from companion.storage.base import BackgroundWriter, encode_json, read_json
from companion.storage.kv import KeyValueStore

logger = structlog.get_logger(__name__)

HEALTH_METRICS_KEY = "health_metrics"
RECENT_SYMPTOMS_KEY = "recent_symptoms"
LAST_CHECKUP_KEY = "last_checkup"
DEFAULT_HISTORY_LIMIT = 50

ItemT = TypeVar("ItemT")

_metric_list = TypeAdapter(list[HealthMetric])
_record_list = TypeAdapter(list[SymptomRecord])


def _decode_list(adapter: TypeAdapter[list[ItemT]], key: str, payload: Any) -> list[ItemT]:
    try:
        return adapter.validate_python(payload)
    except ValidationError as e:
        raise StoredDataParseError(key, f"{e.error_count()} validation errors") from e


class LocalRecordStore:
    """
    Health metrics (append-only) and symptom-check records (newest first, capped).

    Construct it, then call ``load()`` once before use. Mutating methods must be
    called from inside a running event loop because they schedule their writes
    on it.
    """

    def __init__(self, backend: KeyValueStore, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if history_limit <= 0:
            raise ValueError("history_limit must be positive")
        self.history_limit = history_limit
        self.logger = logger.bind(component="record_store")
        self._writer = BackgroundWriter(backend, component="record_store_writer")
        self._backend = backend
        self._metrics: list[HealthMetric] = []
        self._symptom_records: list[SymptomRecord] = []
        self._last_checkup: str | None = None
        self._loaded = False

    @property
    def metrics(self) -> tuple[HealthMetric, ...]:
        return tuple(self._metrics)

    @property
    def symptom_records(self) -> tuple[SymptomRecord, ...]:
        return tuple(self._symptom_records)

    @property
    def last_checkup(self) -> str | None:
        return self._last_checkup

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """
        Replace in-memory state with what the backend holds.

        Absent or unreadable data falls back to empty collections and no
        checkup date; nothing is raised to the caller.
        """
        metrics: list[HealthMetric] = []
        records: list[SymptomRecord] = []

        raw_metrics = await read_json(self._backend, HEALTH_METRICS_KEY, self.logger)
        if raw_metrics is not None:
            try:
                metrics = _decode_list(_metric_list, HEALTH_METRICS_KEY, raw_metrics)
            except StoredDataParseError as e:
                self.logger.warning("stored_data_invalid", key=e.key, error=str(e))

        raw_records = await read_json(self._backend, RECENT_SYMPTOMS_KEY, self.logger)
        if raw_records is not None:
            try:
                records = _decode_list(_record_list, RECENT_SYMPTOMS_KEY, raw_records)
            except StoredDataParseError as e:
                self.logger.warning("stored_data_invalid", key=e.key, error=str(e))

        try:
            last_checkup = await self._backend.get(LAST_CHECKUP_KEY)
        except PersistenceError as e:
            self.logger.warning("persistence_read_failed", key=LAST_CHECKUP_KEY, error=str(e))
            last_checkup = None

        self._metrics = metrics
        self._symptom_records = records[: self.history_limit]
        self._last_checkup = last_checkup or None
        self._loaded = True

        self.logger.info(
            "records_loaded",
            metric_count=len(self._metrics),
            symptom_record_count=len(self._symptom_records),
            has_last_checkup=self._last_checkup is not None,
        )

    def add_metric(self, metric: HealthMetric) -> HealthMetric:
        """Append a pre-validated metric and persist both collections."""
        self._metrics = [*self._metrics, metric]
        self.logger.info("metric_added", metric_type=metric.type, metric_count=len(self._metrics))
        self._persist_collections()
        return metric

    def add_symptom_record(self, record: SymptomRecord) -> SymptomRecord:
        """Prepend a record, evict beyond the history limit, persist both collections."""
        updated = [record, *self._symptom_records]
        evicted = len(updated) - self.history_limit
        self._symptom_records = updated[: self.history_limit]
        self.logger.info(
            "symptom_record_added",
            record_id=record.id,
            symptom_record_count=len(self._symptom_records),
            evicted=max(evicted, 0),
        )
        self._persist_collections()
        return record

    def record_checkup(self, when: datetime | None = None) -> str:
        """Set the last-checkup date and persist it."""
        self._last_checkup = format_timestamp(when or utc_now())
        self._writer.write({LAST_CHECKUP_KEY: self._last_checkup})
        self.logger.info("checkup_recorded", last_checkup=self._last_checkup)
        return self._last_checkup

    def clear_all(self) -> None:
        """Drop everything in memory and remove the persisted keys entirely."""
        self._metrics = []
        self._symptom_records = []
        self._last_checkup = None
        self._writer.remove([HEALTH_METRICS_KEY, RECENT_SYMPTOMS_KEY, LAST_CHECKUP_KEY])
        self.logger.info("records_cleared")

    def latest_metric(self, metric_type: str | MetricType) -> HealthMetric | None:
        """The most recently added metric of ``metric_type``, if any."""
        wanted = metric_type.value if isinstance(metric_type, MetricType) else metric_type
        for metric in reversed(self._metrics):
            if metric.type == wanted:
                return metric
        return None

    def metrics_of_type(self, metric_type: str | MetricType) -> list[HealthMetric]:
        wanted = metric_type.value if isinstance(metric_type, MetricType) else metric_type
        return [metric for metric in self._metrics if metric.type == wanted]

    def export_snapshot(self) -> ExportSnapshot:
        """Versioned copy of the current state; does not write anything."""
        return ExportSnapshot(
            metrics=tuple(self._metrics),
            symptom_records=tuple(self._symptom_records),
            last_checkup=self._last_checkup,
            export_timestamp=utc_now(),
        )

    def export_json(self) -> str:
        return self.export_snapshot().to_json()

    async def flush(self) -> None:
        await self._writer.flush()

    def _persist_collections(self) -> None:
        self._writer.write(
            {
                HEALTH_METRICS_KEY: self._encode(_metric_list, self._metrics),
                RECENT_SYMPTOMS_KEY: self._encode(_record_list, self._symptom_records),
            }
        )

    @staticmethod
    def _encode(adapter: TypeAdapter[Any], items: Sequence[Any]) -> str:
        return encode_json(adapter.dump_python(list(items), mode="json", by_alias=True))
