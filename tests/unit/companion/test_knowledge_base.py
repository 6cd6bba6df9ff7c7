"""Tests for the static symptom knowledge base."""

import pytest

from companion.domain.models import Severity, SymptomEntry
from companion.services.knowledge_base import SymptomKnowledgeBase


@pytest.fixture
def knowledge_base() -> SymptomKnowledgeBase:
    return SymptomKnowledgeBase()


def test_contains_reference_table(knowledge_base: SymptomKnowledgeBase) -> None:
    assert knowledge_base.ids() == [
        "headache",
        "fever",
        "cough",
        "fatigue",
        "nausea",
        "dizziness",
        "chest_pain",
        "breathing",
    ]


@pytest.mark.parametrize(
    "symptom_id,severity",
    [
        ("headache", Severity.MILD),
        ("fever", Severity.MODERATE),
        ("dizziness", Severity.MODERATE),
        ("chest_pain", Severity.SEVERE),
        ("breathing", Severity.SEVERE),
    ],
)
def test_lookup_returns_entry_with_severity(
    knowledge_base: SymptomKnowledgeBase, symptom_id: str, severity: Severity
) -> None:
    entry = knowledge_base.lookup(symptom_id)

    assert entry is not None
    assert entry.id == symptom_id
    assert entry.severity is severity
    assert entry.causes and entry.recommendations


def test_unknown_id_is_absent_not_an_error(knowledge_base: SymptomKnowledgeBase) -> None:
    assert knowledge_base.lookup("sore_elbow") is None
    assert "sore_elbow" not in knowledge_base


def test_table_cannot_be_modified(knowledge_base: SymptomKnowledgeBase) -> None:
    with pytest.raises(TypeError):
        knowledge_base._entries["new"] = knowledge_base.lookup("cough")  # type: ignore[index]

    entry = knowledge_base.lookup("cough")
    assert entry is not None
    with pytest.raises(ValueError, match="frozen"):
        entry.severity = Severity.SEVERE  # type: ignore[misc]


def test_duplicate_ids_are_rejected() -> None:
    entry = SymptomEntry(
        id="x", name="X", severity=Severity.MILD, causes=("a",), recommendations=("b",)
    )

    with pytest.raises(ValueError, match="Duplicate symptom id"):
        SymptomKnowledgeBase([entry, entry])


class TestFindMentions:
    def test_matches_display_names_and_ids(self, knowledge_base: SymptomKnowledgeBase) -> None:
        mentioned = knowledge_base.find_mentions("I have a HEADACHE and some chest pain")

        assert mentioned == ["headache", "chest_pain"]

    def test_results_follow_table_order(self, knowledge_base: SymptomKnowledgeBase) -> None:
        assert knowledge_base.find_mentions("nausea, then a fever") == ["fever", "nausea"]

    def test_no_mentions(self, knowledge_base: SymptomKnowledgeBase) -> None:
        assert knowledge_base.find_mentions("please check my symptoms") == []
