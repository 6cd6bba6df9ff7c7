"""
Static symptom knowledge base.

The table is built once at import time and exposed through a read-only
mapping, so lookups are safe from any number of concurrent readers.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from companion.domain.models import Severity, SymptomEntry

_SYMPTOM_TABLE: tuple[SymptomEntry, ...] = (
    SymptomEntry(
        id="headache",
        name="Headache",
        severity=Severity.MILD,
        causes=("tension", "dehydration", "stress", "eye strain"),
        recommendations=("Rest in a quiet, dark room", "Stay hydrated", "Apply cold compress"),
    ),
    SymptomEntry(
        id="fever",
        name="Fever",
        severity=Severity.MODERATE,
        causes=("infection", "inflammation", "immune response"),
        recommendations=(
            "Monitor temperature regularly",
            "Stay hydrated",
            "Rest",
            "Consider fever reducer",
        ),
    ),
    SymptomEntry(
        id="cough",
        name="Cough",
        severity=Severity.MILD,
        causes=("cold", "allergies", "irritation"),
        recommendations=("Stay hydrated", "Use honey for throat relief", "Avoid irritants"),
    ),
    SymptomEntry(
        id="fatigue",
        name="Fatigue",
        severity=Severity.MILD,
        causes=("lack of sleep", "stress", "poor nutrition"),
        recommendations=("Ensure adequate sleep", "Eat balanced meals", "Light exercise"),
    ),
    SymptomEntry(
        id="nausea",
        name="Nausea",
        severity=Severity.MODERATE,
        causes=("food poisoning", "motion sickness", "medication"),
        recommendations=("Stay hydrated with small sips", "Eat bland foods", "Rest"),
    ),
    SymptomEntry(
        id="dizziness",
        name="Dizziness",
        severity=Severity.MODERATE,
        causes=("dehydration", "low blood sugar", "inner ear issues"),
        recommendations=(
            "Sit or lie down immediately",
            "Stay hydrated",
            "Avoid sudden movements",
        ),
    ),
    SymptomEntry(
        id="chest_pain",
        name="Chest Pain",
        severity=Severity.SEVERE,
        causes=("heart issues", "lung problems", "muscle strain"),
        recommendations=(
            "Seek immediate medical attention",
            "Do not ignore chest pain",
            "Call emergency services",
        ),
    ),
    SymptomEntry(
        id="breathing",
        name="Breathing Difficulty",
        severity=Severity.SEVERE,
        causes=("asthma", "pneumonia", "heart problems"),
        recommendations=(
            "Seek immediate medical attention",
            "Use prescribed inhaler if available",
            "Call emergency services",
        ),
    ),
)


class SymptomKnowledgeBase:
    """Read-only lookup of symptom entries by identifier."""

    def __init__(self, entries: Iterable[SymptomEntry] = _SYMPTOM_TABLE) -> None:
        table: dict[str, SymptomEntry] = {}
        for entry in entries:
            if entry.id in table:
                raise ValueError(f"Duplicate symptom id in knowledge base: {entry.id}")
            table[entry.id] = entry
        self._entries: Mapping[str, SymptomEntry] = MappingProxyType(table)

    def lookup(self, symptom_id: str) -> SymptomEntry | None:
        """Return the entry for ``symptom_id``, or None when it is unknown."""
        return self._entries.get(symptom_id)

    def ids(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> list[SymptomEntry]:
        return list(self._entries.values())

    def find_mentions(self, text: str) -> list[str]:
        """
        Symptom ids mentioned in a free-text utterance.

        An entry matches when its id or display name appears anywhere in the
        text, ignoring case. Results follow table order.
        """
        lowered = text.lower()
        return [
            entry.id
            for entry in self._entries.values()
            if entry.id.lower() in lowered or entry.name.lower() in lowered
        ]

    def __contains__(self, symptom_id: object) -> bool:
        return symptom_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
