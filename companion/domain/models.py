"""
Domain models for the care companion.

These models represent the core concepts (symptoms, triage verdicts, health
metrics, symptom-check history and user preferences) and are framework-agnostic.
They use Pydantic for validation and for the camelCase JSON shapes the records
are persisted in.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    model_serializer,
)
from pydantic.alias_generators import to_camel

EXPORT_SCHEMA_VERSION = "1.0.0"
TRIAGE_DISCLAIMER = (
    "This analysis is for informational purposes only and should not replace "
    "professional medical advice."
)


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class Severity(str, Enum):
    """Severity tiers, ordered mild < moderate < severe."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"

    @property
    def rank(self) -> int:
        return list(Severity).index(self)


class MetricType(str, Enum):
    """Health metrics the companion knows a unit for."""

    HEART_RATE = "heartRate"
    BLOOD_PRESSURE = "bloodPressure"
    TEMPERATURE = "temperature"
    WEIGHT = "weight"
    BLOOD_SUGAR = "bloodSugar"


METRIC_UNITS: dict[str, str] = {
    MetricType.BLOOD_PRESSURE.value: "mmHg",
    MetricType.HEART_RATE.value: "bpm",
    MetricType.TEMPERATURE.value: "°C",
    MetricType.WEIGHT.value: "kg",
    MetricType.BLOOD_SUGAR.value: "mg/dL",
}


def unit_for_metric(metric_type: str | MetricType) -> str:
    """Display unit for a metric type; unknown types have no unit."""
    key = metric_type.value if isinstance(metric_type, MetricType) else metric_type
    return METRIC_UNITS.get(key, "")


class Intent(str, Enum):
    """Conversation intents recognised in free text."""

    HEALTH_COMPLAINT = "health_complaint"
    WELLNESS_INFO = "wellness_info"
    EMERGENCY = "emergency"
    UNKNOWN = "unknown"


class FontSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class CamelModel(BaseModel):
    """Immutable model persisted with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SymptomEntry(BaseModel):
    """One row of the symptom knowledge base."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    severity: Severity
    causes: tuple[str, ...]
    recommendations: tuple[str, ...]


class TriageResult(CamelModel):
    """Verdict produced by one symptom analysis."""

    model_config = ConfigDict(extra="forbid")

    kind: ClassVar[Literal["triage"]] = "triage"

    severity: Severity
    summary: str = Field(min_length=1)
    recommendations: tuple[str, ...] = Field(default=(), max_length=5)
    causes: tuple[str, ...] = Field(default=(), max_length=3, alias="possibleCauses")
    disclaimer: str = TRIAGE_DISCLAIMER


class UnrecognizedResult(BaseModel):
    """
    A stored result payload that is not a TriageResult.

    Older or foreign history entries keep their payload verbatim so that a
    load/save cycle never rewrites them.
    """

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[Literal["unrecognized"]] = "unrecognized"

    payload: Any

    @model_serializer
    def _dump_payload(self) -> Any:
        return self.payload


TRIAGE_RESULT_KEYS = frozenset(
    {"severity", "summary", "recommendations", "possibleCauses", "disclaimer"}
)


def _coerce_result(value: Any) -> Any:
    if value is None or isinstance(value, TriageResult | UnrecognizedResult):
        return value
    # Partial payloads would gain default keys when dumped again
    if not isinstance(value, dict) or set(value) != TRIAGE_RESULT_KEYS:
        return UnrecognizedResult(payload=value)
    try:
        return TriageResult.model_validate(value)
    except ValidationError:
        return UnrecognizedResult(payload=value)


SymptomCheckResult = Annotated[
    TriageResult | UnrecognizedResult | None, BeforeValidator(_coerce_result)
]


class HealthMetric(CamelModel):
    """Individual health reading entered by the user."""

    id: str
    type: str
    value: float = Field(allow_inf_nan=False)
    date: datetime = Field(default_factory=utc_now)
    unit: str = ""

    @field_serializer("value")
    def _serialize_value(self, value: float) -> int | float:
        # Whole numbers are written without a fractional part
        return int(value) if float(value).is_integer() else value

    @field_serializer("date")
    def _serialize_date(self, value: datetime) -> str:
        return format_timestamp(value)


class SymptomRecord(CamelModel):
    """One completed symptom check in the history."""

    id: str
    name: str
    date: str
    symptom_ids: tuple[str, ...] | None = Field(default=None, alias="symptoms")
    result: SymptomCheckResult = Field(default=None, alias="results")
    description: str = ""

    @model_serializer(mode="wrap")
    def _omit_missing(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        # Keys that were never given are left out; an explicit null is kept
        for field_name, alias in (("symptom_ids", "symptoms"), ("result", "results")):
            if field_name in self.model_fields_set:
                continue
            for key in (field_name, alias):
                if key in data and data[key] is None:
                    del data[key]
        return data

    @property
    def triage(self) -> TriageResult | None:
        """The triage verdict if this record carries a recognised one."""
        return self.result if isinstance(self.result, TriageResult) else None


class PreferenceSet(CamelModel):
    """Display, contrast, voice and language settings."""

    font_size: FontSize = FontSize.MEDIUM
    high_contrast: bool = False
    screen_reader: bool = False
    language: str = Field(default="en", min_length=1)
    voice_enabled: bool = True

    def accessibility_payload(self) -> dict[str, Any]:
        return {
            "fontSize": self.font_size.value,
            "highContrast": self.high_contrast,
            "screenReader": self.screen_reader,
        }

    def language_payload(self) -> dict[str, Any]:
        return {"language": self.language, "voiceEnabled": self.voice_enabled}


class ExportSnapshot(CamelModel):
    """Versioned, point-in-time copy of everything in the record store."""

    metrics: tuple[HealthMetric, ...] = Field(default=(), alias="healthMetrics")
    symptom_records: tuple[SymptomRecord, ...] = Field(default=(), alias="recentSymptoms")
    last_checkup: str | None = None
    export_timestamp: datetime = Field(default_factory=utc_now, alias="exportDate")
    schema_version: str = Field(default=EXPORT_SCHEMA_VERSION, alias="version")

    @field_serializer("export_timestamp")
    def _serialize_export_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)

    def to_json(self) -> str:
        """Pretty-printed export document with 2-space indentation."""
        return json.dumps(
            self.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False
        )

    @classmethod
    def from_json(cls, text: str) -> "ExportSnapshot":
        return cls.model_validate(json.loads(text))
