"""
Rule-based symptom triage.

The aggregator turns a selection of symptom ids into one severity verdict with
a short, deduplicated list of likely causes and recommendations. Analysis is
exposed as a coroutine with a nominal delay so a heavier or remote engine can
replace it without changing callers.
"""

import asyncio
import time
from collections.abc import Iterable, Sequence

import structlog
from pydantic import BaseModel, Field

from companion.domain.errors import TriageInProgressError
from companion.domain.models import TRIAGE_DISCLAIMER, Severity, TriageResult
from companion.services.knowledge_base import SymptomKnowledgeBase

logger = structlog.get_logger(__name__)

MAX_RECOMMENDATIONS = 5
MAX_CAUSES = 3

SUMMARY_TEMPLATES: dict[Severity, str] = {
    Severity.MILD: (
        "Your symptoms appear to be mild. Following the recommendations below "
        "should help you feel better."
    ),
    Severity.MODERATE: (
        "Your symptoms are moderate and should be monitored. Consider consulting "
        "a healthcare provider if they persist."
    ),
    Severity.SEVERE: (
        "Your symptoms may be serious. Please seek immediate medical attention."
    ),
}


class TriageConfig(BaseModel):
    """Tuning for the triage aggregator."""

    delay_seconds: float = Field(
        default=2.0, ge=0.0, description="Nominal analysis time before a verdict is returned"
    )
    max_recommendations: int = Field(default=MAX_RECOMMENDATIONS, ge=0, le=MAX_RECOMMENDATIONS)
    max_causes: int = Field(default=MAX_CAUSES, ge=0, le=MAX_CAUSES)


def _first_occurrences(items: Iterable[str], limit: int) -> list[str]:
    return list(dict.fromkeys(items))[:limit]


class TriageAggregator:
    """
    Severity aggregation over the symptom knowledge base.

    One aggregator serves one session: starting a second analysis while the
    first is still suspended raises TriageInProgressError instead of queuing.
    """

    def __init__(
        self, knowledge_base: SymptomKnowledgeBase, config: TriageConfig | None = None
    ) -> None:
        self.knowledge_base = knowledge_base
        self.config = config or TriageConfig()
        self.logger = logger.bind(component="triage_aggregator")
        self._in_flight = False

    @property
    def is_analyzing(self) -> bool:
        return self._in_flight

    def aggregate(self, symptom_ids: Sequence[str]) -> TriageResult:
        """Compute the verdict for ``symptom_ids`` without any delay."""
        severity = Severity.MILD
        causes: list[str] = []
        recommendations: list[str] = []
        unmatched: list[str] = []

        for symptom_id in symptom_ids:
            entry = self.knowledge_base.lookup(symptom_id)
            if entry is None:
                unmatched.append(symptom_id)
                continue
            if entry.severity.rank > severity.rank:
                severity = entry.severity
            causes.extend(entry.causes)
            recommendations.extend(entry.recommendations)

        if unmatched:
            # TODO: product review to decide whether unknown ids should be reported
            # to the caller instead of being skipped.
            self.logger.debug("triage_unmatched_symptoms_skipped", symptom_ids=unmatched)

        return TriageResult(
            severity=severity,
            summary=SUMMARY_TEMPLATES[severity],
            recommendations=_first_occurrences(recommendations, self.config.max_recommendations),
            causes=_first_occurrences(causes, self.config.max_causes),
            disclaimer=TRIAGE_DISCLAIMER,
        )

    async def analyze(self, symptom_ids: Sequence[str]) -> TriageResult:
        """
        Analyze a symptom selection.

        Suspends for the configured delay, during which other store and
        preference operations may run.
        """
        if self._in_flight:
            raise TriageInProgressError("A symptom analysis is already in progress")

        self._in_flight = True
        start_time = time.perf_counter()
        try:
            await asyncio.sleep(self.config.delay_seconds)
            result = self.aggregate(symptom_ids)
        finally:
            self._in_flight = False

        self.logger.info(
            "triage_completed",
            severity=result.severity.value,
            symptom_count=len(symptom_ids),
            recommendation_count=len(result.recommendations),
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )
        return result
