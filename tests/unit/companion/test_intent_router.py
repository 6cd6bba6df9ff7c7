"""Tests for keyword intent routing."""

import random
from collections.abc import Sequence

import pytest

from companion.domain.models import Intent
from companion.services.intent_router import (
    EMERGENCY_RESPONSE,
    FALLBACK_RESPONSE,
    HEALTH_ACKNOWLEDGEMENTS,
    WELLNESS_RESPONSE,
    IntentRouter,
)


class LastChoice(random.Random):
    """Deterministic random source that always picks the last option."""

    def choice(self, seq: Sequence[str]) -> str:  # type: ignore[override]
        return seq[-1]


@pytest.fixture
def router() -> IntentRouter:
    return IntentRouter(random.Random(42))


@pytest.mark.parametrize(
    "text,intent",
    [
        ("my head hurts", Intent.HEALTH_COMPLAINT),
        ("I have a FEVER", Intent.HEALTH_COMPLAINT),
        ("what is a healthy diet", Intent.WELLNESS_INFO),
        ("Tips for WELLNESS please", Intent.WELLNESS_INFO),
        ("this is an emergency", Intent.EMERGENCY),
        ("URGENT question", Intent.EMERGENCY),
        ("xyz123", Intent.UNKNOWN),
        ("", Intent.UNKNOWN),
    ],
)
def test_detect_intent(router: IntentRouter, text: str, intent: Intent) -> None:
    assert router.detect_intent(text) is intent


def test_health_keywords_take_precedence(router: IntentRouter) -> None:
    assert router.detect_intent("I feel healthy") is Intent.HEALTH_COMPLAINT
    assert router.detect_intent("urgent pain") is Intent.HEALTH_COMPLAINT


def test_wellness_takes_precedence_over_emergency(router: IntentRouter) -> None:
    assert router.detect_intent("urgent wellness advice") is Intent.WELLNESS_INFO


def test_fixed_replies(router: IntentRouter) -> None:
    assert router.route("healthy habits").text == WELLNESS_RESPONSE
    assert router.route("emergency").text == EMERGENCY_RESPONSE
    assert router.route("xyz123").text == FALLBACK_RESPONSE


def test_health_complaint_uses_injected_random_source() -> None:
    router = IntentRouter(LastChoice())

    reply = router.route("my head hurts")

    assert reply.intent is Intent.HEALTH_COMPLAINT
    assert reply.text == HEALTH_ACKNOWLEDGEMENTS[-1]


def test_same_seed_gives_same_replies() -> None:
    first = IntentRouter(random.Random(7))
    second = IntentRouter(random.Random(7))
    messages = ["it hurts", "I feel sick", "bad cough", "a headache today"]

    assert [first.route(m).text for m in messages] == [second.route(m).text for m in messages]
    assert all(first.route(m).text in HEALTH_ACKNOWLEDGEMENTS for m in messages)


async def test_classify_returns_reply_text(router: IntentRouter) -> None:
    assert await router.classify("emergency!") == EMERGENCY_RESPONSE
