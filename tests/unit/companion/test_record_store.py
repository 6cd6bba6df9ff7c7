"""
Tests for the local record store.

Covers loading (including absent and malformed data), the newest-first history
cap, background persistence and its failure handling, clearing, and export.
"""

import asyncio
import json
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from companion.domain.errors import PersistenceError
from companion.domain.models import (
    ExportSnapshot,
    HealthMetric,
    MetricType,
    Severity,
    SymptomRecord,
    TriageResult,
    UnrecognizedResult,
)
from companion.domain.result import Result
from companion.storage.kv import JsonFileKeyValueStore, MemoryKeyValueStore
from companion.storage.records import (
    HEALTH_METRICS_KEY,
    LAST_CHECKUP_KEY,
    RECENT_SYMPTOMS_KEY,
    LocalRecordStore,
)


class FailingWriteStore(MemoryKeyValueStore):
    """Backend whose writes always report failure."""

    async def set(self, key: str, value: str) -> Result[str, PersistenceError]:
        return Result.err(PersistenceError(key, "disk full"))


class CrashingWriteStore(MemoryKeyValueStore):
    """Backend whose writes raise instead of returning a Result."""

    async def set(self, key: str, value: str) -> Result[str, PersistenceError]:
        raise RuntimeError("backend crashed")


class FailingReadStore(MemoryKeyValueStore):
    async def get(self, key: str) -> str | None:
        raise PersistenceError(key, "permission denied")


class SlowFirstWriteStore(MemoryKeyValueStore):
    """Delays the first write so later operations would overtake it if unordered."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    async def set(self, key: str, value: str) -> Result[str, PersistenceError]:
        if not self.calls:
            await asyncio.sleep(0.02)
        self.calls.append(f"set:{key}")
        return await super().set(key, value)

    async def remove_many(self, keys: Sequence[str]) -> Result[list[str], PersistenceError]:
        self.calls.append("remove")
        return await super().remove_many(keys)


def _metric(metric_id: str, metric_type: str = "heartRate", value: float = 72) -> HealthMetric:
    return HealthMetric(
        id=metric_id,
        type=metric_type,
        value=value,
        date=datetime(2026, 6, 1, 12, 0, tzinfo=UTC),
        unit="bpm",
    )


def _record(record_id: str) -> SymptomRecord:
    result = TriageResult(
        severity=Severity.MILD,
        summary="Your symptoms appear to be mild.",
        recommendations=["Rest"],
        causes=["stress"],
    )
    return SymptomRecord(
        id=record_id,
        name="Symptom Check",
        date="2026-06-01T12:00:00.000Z",
        symptom_ids=["headache"],
        result=result,
        description=result.summary,
    )


@pytest.fixture
def backend() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
async def store(backend: MemoryKeyValueStore) -> LocalRecordStore:
    record_store = LocalRecordStore(backend)
    await record_store.load()
    return record_store


class TestLoad:
    async def test_empty_backend_loads_empty_state(self, store: LocalRecordStore) -> None:
        assert store.is_loaded
        assert store.metrics == ()
        assert store.symptom_records == ()
        assert store.last_checkup is None

    async def test_loads_persisted_values(self) -> None:
        backend = MemoryKeyValueStore(
            {
                HEALTH_METRICS_KEY: json.dumps(
                    [
                        {
                            "id": "1",
                            "type": "weight",
                            "value": 70.5,
                            "date": "2026-01-01T08:00:00.000Z",
                            "unit": "kg",
                        }
                    ]
                ),
                RECENT_SYMPTOMS_KEY: json.dumps(
                    [
                        {
                            "id": "r1",
                            "name": "Symptom Check",
                            "date": "1/2/2024",
                            "symptoms": ["cough"],
                            "results": {"severity": "critical"},
                            "description": "legacy",
                        },
                        {"id": "r2", "name": "Note", "date": "1/1/2024", "description": "x"},
                    ]
                ),
                LAST_CHECKUP_KEY: "2026-01-01T09:00:00.000Z",
            }
        )
        store = LocalRecordStore(backend)

        await store.load()

        assert store.metrics[0].value == 70.5
        assert store.metrics[0].unit == "kg"
        assert isinstance(store.symptom_records[0].result, UnrecognizedResult)
        assert store.symptom_records[1].result is None
        assert store.symptom_records[1].symptom_ids is None
        assert store.last_checkup == "2026-01-01T09:00:00.000Z"

    async def test_malformed_json_falls_back_to_empty(self) -> None:
        records = [_record("r1").model_dump(mode="json", by_alias=True)]
        backend = MemoryKeyValueStore(
            {HEALTH_METRICS_KEY: "{not json", RECENT_SYMPTOMS_KEY: json.dumps(records)}
        )

        with capture_logs() as logs:
            store = LocalRecordStore(backend)
            await store.load()

        assert store.metrics == ()
        assert len(store.symptom_records) == 1
        assert any(log["event"] == "stored_data_malformed" for log in logs)

    async def test_invalid_shape_falls_back_to_empty(self) -> None:
        backend = MemoryKeyValueStore({HEALTH_METRICS_KEY: json.dumps({"not": "a list"})})

        with capture_logs() as logs:
            store = LocalRecordStore(backend)
            await store.load()

        assert store.metrics == ()
        invalid = [log for log in logs if log["event"] == "stored_data_invalid"]
        assert invalid and invalid[0]["key"] == HEALTH_METRICS_KEY

    async def test_read_failures_fall_back_to_defaults(self) -> None:
        store = LocalRecordStore(FailingReadStore())

        await store.load()

        assert store.is_loaded
        assert store.metrics == ()
        assert store.last_checkup is None

    async def test_undecodable_files_fall_back_to_defaults(self, tmp_path: Path) -> None:
        (tmp_path / f"{HEALTH_METRICS_KEY}.json").write_bytes(b"[\xff\xfe]")
        (tmp_path / f"{LAST_CHECKUP_KEY}.json").write_bytes(b"\xc3\x28")

        with capture_logs() as logs:
            store = LocalRecordStore(JsonFileKeyValueStore(tmp_path))
            await store.load()

        assert store.is_loaded
        assert store.metrics == ()
        assert store.last_checkup is None
        failed = {log["key"] for log in logs if log["event"] == "persistence_read_failed"}
        assert failed == {HEALTH_METRICS_KEY, LAST_CHECKUP_KEY}

    async def test_overlong_history_is_truncated_on_load(self) -> None:
        records = [_record(f"r{i}").model_dump(mode="json", by_alias=True) for i in range(60)]
        store = LocalRecordStore(MemoryKeyValueStore({RECENT_SYMPTOMS_KEY: json.dumps(records)}))

        await store.load()

        assert len(store.symptom_records) == 50
        assert store.symptom_records[0].id == "r0"


class TestMutations:
    async def test_add_metric_appends_and_persists(
        self, store: LocalRecordStore, backend: MemoryKeyValueStore
    ) -> None:
        store.add_metric(_metric("1"))
        store.add_metric(_metric("2", value=80))

        assert [m.id for m in store.metrics] == ["1", "2"]

        await store.flush()
        persisted = json.loads(backend.snapshot()[HEALTH_METRICS_KEY])
        assert [m["id"] for m in persisted] == ["1", "2"]
        assert persisted[0]["value"] == 72
        assert json.loads(backend.snapshot()[RECENT_SYMPTOMS_KEY]) == []

    async def test_persisted_values_are_compact(
        self, store: LocalRecordStore, backend: MemoryKeyValueStore
    ) -> None:
        store.add_metric(_metric("1"))
        await store.flush()

        assert backend.snapshot()[HEALTH_METRICS_KEY] == (
            '[{"id":"1","type":"heartRate","value":72,'
            '"date":"2026-06-01T12:00:00.000Z","unit":"bpm"}]'
        )

    async def test_symptom_records_are_newest_first(self, store: LocalRecordStore) -> None:
        store.add_symptom_record(_record("old"))
        store.add_symptom_record(_record("new"))

        assert [r.id for r in store.symptom_records] == ["new", "old"]

    async def test_history_is_capped_at_fifty(
        self, store: LocalRecordStore, backend: MemoryKeyValueStore
    ) -> None:
        for i in range(51):
            store.add_symptom_record(_record(f"r{i}"))

        assert len(store.symptom_records) == 50
        assert store.symptom_records[0].id == "r50"
        assert "r0" not in {r.id for r in store.symptom_records}

        await store.flush()
        assert len(json.loads(backend.snapshot()[RECENT_SYMPTOMS_KEY])) == 50

    async def test_custom_history_limit(self, backend: MemoryKeyValueStore) -> None:
        store = LocalRecordStore(backend, history_limit=2)
        for i in range(3):
            store.add_symptom_record(_record(f"r{i}"))

        assert [r.id for r in store.symptom_records] == ["r2", "r1"]

    def test_history_limit_must_be_positive(self, backend: MemoryKeyValueStore) -> None:
        with pytest.raises(ValueError):
            LocalRecordStore(backend, history_limit=0)

    async def test_record_checkup_persists_raw_timestamp(
        self, store: LocalRecordStore, backend: MemoryKeyValueStore
    ) -> None:
        stamp = store.record_checkup(datetime(2026, 2, 3, 4, 5, 6, tzinfo=UTC))

        assert stamp == "2026-02-03T04:05:06.000Z"
        assert store.last_checkup == stamp
        await store.flush()
        assert backend.snapshot()[LAST_CHECKUP_KEY] == stamp

    async def test_returned_collections_are_snapshots(self, store: LocalRecordStore) -> None:
        before = store.metrics
        store.add_metric(_metric("1"))

        assert before == ()
        assert len(store.metrics) == 1


class TestQueries:
    async def test_latest_metric_by_type(self, store: LocalRecordStore) -> None:
        store.add_metric(_metric("1", "heartRate", 70))
        store.add_metric(_metric("2", "temperature", 37))
        store.add_metric(_metric("3", "heartRate", 75))

        latest = store.latest_metric(MetricType.HEART_RATE)

        assert latest is not None
        assert latest.id == "3"
        assert store.latest_metric("weight") is None
        assert [m.id for m in store.metrics_of_type("heartRate")] == ["1", "3"]


class TestClearAll:
    async def test_clear_then_reload_is_empty(
        self, store: LocalRecordStore, backend: MemoryKeyValueStore
    ) -> None:
        store.add_metric(_metric("1"))
        store.add_symptom_record(_record("r1"))
        store.record_checkup()
        await store.flush()

        store.clear_all()
        assert store.metrics == ()
        assert store.last_checkup is None

        await store.flush()
        assert backend.snapshot() == {}

        reloaded = LocalRecordStore(backend)
        await reloaded.load()
        assert reloaded.metrics == ()
        assert reloaded.symptom_records == ()
        assert reloaded.last_checkup is None

    async def test_metric_added_after_clear_is_exported(
        self, store: LocalRecordStore, backend: MemoryKeyValueStore
    ) -> None:
        store.add_metric(_metric("old"))
        store.clear_all()
        await store.flush()

        reloaded = LocalRecordStore(backend)
        await reloaded.load()
        reloaded.add_metric(_metric("new"))

        document = json.loads(reloaded.export_json())
        assert [m["id"] for m in document["healthMetrics"]] == ["new"]

    async def test_clear_waits_for_earlier_writes(self) -> None:
        backend = SlowFirstWriteStore()
        store = LocalRecordStore(backend)
        await store.load()

        store.add_metric(_metric("1"))
        store.clear_all()
        await store.flush()

        assert backend.calls[-1] == "remove"
        assert backend.snapshot() == {}


class TestPersistenceFailures:
    async def test_failed_write_keeps_memory_state(self) -> None:
        backend = FailingWriteStore()

        with capture_logs() as logs:
            store = LocalRecordStore(backend)
            await store.load()
            store.add_metric(_metric("1"))
            await store.flush()

        assert [m.id for m in store.metrics] == ["1"]
        assert backend.snapshot() == {}
        failures = [log for log in logs if log["event"] == "persistence_write_failed"]
        assert {log["key"] for log in failures} == {HEALTH_METRICS_KEY, RECENT_SYMPTOMS_KEY}
        assert all(log["log_level"] == "warning" for log in failures)

    async def test_crashing_backend_is_logged_not_raised(self) -> None:
        with capture_logs() as logs:
            store = LocalRecordStore(CrashingWriteStore())
            await store.load()
            store.add_symptom_record(_record("r1"))
            await store.flush()

        assert len(store.symptom_records) == 1
        assert any(log["event"] == "unexpected_persistence_error" for log in logs)

    async def test_failed_write_is_not_retried(self) -> None:
        attempts: list[str] = []

        class CountingFailStore(MemoryKeyValueStore):
            async def set(self, key: str, value: str) -> Result[str, PersistenceError]:
                attempts.append(key)
                return Result.err(PersistenceError(key, "read-only"))

        store = LocalRecordStore(CountingFailStore())
        await store.load()
        store.add_metric(_metric("1"))
        await store.flush()

        assert attempts == [HEALTH_METRICS_KEY, RECENT_SYMPTOMS_KEY]


class TestExport:
    async def test_export_contains_current_state(self, store: LocalRecordStore) -> None:
        store.add_metric(_metric("1"))
        store.add_symptom_record(_record("r1"))
        store.record_checkup(datetime(2026, 6, 2, tzinfo=UTC))

        document = json.loads(store.export_json())

        assert document["version"] == "1.0.0"
        assert [m["id"] for m in document["healthMetrics"]] == ["1"]
        assert document["recentSymptoms"][0]["results"]["possibleCauses"] == ["stress"]
        assert document["lastCheckup"] == "2026-06-02T00:00:00.000Z"
        assert document["exportDate"].endswith("Z")

    async def test_export_is_byte_identical_after_reparse(self, store: LocalRecordStore) -> None:
        store.add_metric(_metric("1", value=72))
        store.add_metric(_metric("2", "temperature", 36.6))
        store.add_symptom_record(_record("r1"))

        exported = store.export_json()

        assert json.dumps(json.loads(exported), indent=2, ensure_ascii=False) == exported
        assert ExportSnapshot.from_json(exported).to_json() == exported

    async def test_legacy_records_export_verbatim(self) -> None:
        legacy = {"severity": "critical", "notes": "see doctor"}
        backend = MemoryKeyValueStore(
            {
                RECENT_SYMPTOMS_KEY: json.dumps(
                    [
                        {
                            "id": "r1",
                            "name": "Old",
                            "date": "1/2/2024",
                            "results": legacy,
                            "description": "",
                        }
                    ]
                )
            }
        )
        store = LocalRecordStore(backend)
        await store.load()

        record = json.loads(store.export_json())["recentSymptoms"][0]

        assert record["results"] == legacy
        assert "symptoms" not in record

    async def test_partial_results_export_unchanged(self) -> None:
        stored = [
            {
                "id": "r1",
                "name": "Symptom Check",
                "date": "1/2/2024",
                "symptoms": None,
                "results": {"severity": "moderate", "summary": "s"},
                "description": "s",
            }
        ]
        backend = MemoryKeyValueStore({RECENT_SYMPTOMS_KEY: json.dumps(stored)})
        store = LocalRecordStore(backend)
        await store.load()

        assert json.loads(store.export_json())["recentSymptoms"] == stored

        store.add_metric(_metric("1"))
        await store.flush()
        assert json.loads(backend.snapshot()[RECENT_SYMPTOMS_KEY]) == stored

    async def test_export_does_not_write(
        self, store: LocalRecordStore, backend: MemoryKeyValueStore
    ) -> None:
        store.export_json()
        await store.flush()

        assert backend.snapshot() == {}
