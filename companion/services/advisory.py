"""
Health advisory service.

Ties the advisory engine to the record store: symptom checks become history
records, raw metric input is validated before it reaches the store, and voice
utterances are scanned for symptom mentions.
"""

import math
import uuid
from collections.abc import Sequence
from datetime import datetime
from numbers import Real

import structlog

from companion.domain.errors import MetricValidationError
from companion.domain.models import (
    HealthMetric,
    MetricType,
    SymptomRecord,
    TriageResult,
    format_timestamp,
    unit_for_metric,
    utc_now,
)
from companion.services.intent_router import IntentRouter, RoutedReply
from companion.services.knowledge_base import SymptomKnowledgeBase
from companion.services.triage import TriageAggregator
from companion.storage.records import LocalRecordStore

logger = structlog.get_logger(__name__)

SYMPTOM_CHECK_NAME = "Symptom Check"
SYMPTOM_CHECK_FALLBACK_DESCRIPTION = "Symptom check completed"


def new_record_id() -> str:
    return uuid.uuid4().hex


def parse_metric_value(raw: object) -> float:
    """
    Turn user input into a metric value.

    Accepts real numbers and numeric strings. Booleans, blanks, NaN and
    infinities are rejected with MetricValidationError.
    """
    if isinstance(raw, bool):
        raise MetricValidationError(raw, "booleans are not metric values")

    if isinstance(raw, Real):
        value = float(raw)
    elif isinstance(raw, str):
        if not raw.strip():
            raise MetricValidationError(raw, "value is empty")
        try:
            value = float(raw.strip())
        except ValueError as e:
            raise MetricValidationError(raw) from e
    else:
        raise MetricValidationError(raw)

    if not math.isfinite(value):
        raise MetricValidationError(raw, "value must be finite")
    return value


def build_symptom_record(
    symptom_ids: Sequence[str],
    result: TriageResult,
    when: datetime | None = None,
    name: str = SYMPTOM_CHECK_NAME,
) -> SymptomRecord:
    """Wrap a triage verdict into a history record."""
    return SymptomRecord(
        id=new_record_id(),
        name=name,
        date=format_timestamp(when or utc_now()),
        symptom_ids=tuple(symptom_ids),
        result=result,
        description=result.summary or SYMPTOM_CHECK_FALLBACK_DESCRIPTION,
    )


class HealthAdvisoryService:
    """Caller-facing operations of the advisory feature."""

    def __init__(
        self,
        knowledge_base: SymptomKnowledgeBase,
        aggregator: TriageAggregator,
        router: IntentRouter,
        records: LocalRecordStore,
    ) -> None:
        self.knowledge_base = knowledge_base
        self.aggregator = aggregator
        self.router = router
        self.records = records
        self.logger = logger.bind(component="health_advisory_service")

    async def run_symptom_check(self, symptom_ids: Sequence[str]) -> SymptomRecord:
        """Analyze a selection and store the outcome as a new history record."""
        result = await self.aggregator.analyze(symptom_ids)
        record = build_symptom_record(symptom_ids, result)
        self.records.add_symptom_record(record)
        self.logger.info(
            "symptom_check_recorded", record_id=record.id, severity=result.severity.value
        )
        return record

    def record_metric(
        self, metric_type: str | MetricType, raw_value: object, when: datetime | None = None
    ) -> HealthMetric:
        """Validate user input and append it as a new health metric."""
        type_name = metric_type.value if isinstance(metric_type, MetricType) else metric_type
        try:
            value = parse_metric_value(raw_value)
        except MetricValidationError:
            self.logger.info("metric_input_rejected", metric_type=type_name)
            raise

        metric = HealthMetric(
            id=new_record_id(),
            type=type_name,
            value=value,
            date=when or utc_now(),
            unit=unit_for_metric(type_name),
        )
        return self.records.add_metric(metric)

    def handle_utterance(self, utterance: str) -> list[str]:
        """Symptom ids mentioned in one finalized voice utterance."""
        mentioned = self.knowledge_base.find_mentions(utterance)
        self.logger.info("utterance_processed", mentioned_count=len(mentioned))
        return mentioned

    async def chat(self, text: str) -> str:
        return await self.router.classify(text)

    def route(self, text: str) -> RoutedReply:
        return self.router.route(text)
