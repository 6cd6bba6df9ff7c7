"""
Keyword intent routing for the health assistant chat.

Free text is matched case-insensitively against fixed keyword groups; the first
group that matches wins. The only non-deterministic branch picks one of the
canned health-complaint acknowledgements from an injectable random source.
"""

import random
from typing import NamedTuple

import structlog

from companion.domain.models import Intent

logger = structlog.get_logger(__name__)

# Checked in order, first match wins
INTENT_KEYWORDS: tuple[tuple[Intent, tuple[str, ...]], ...] = (
    (
        Intent.HEALTH_COMPLAINT,
        ("pain", "hurt", "ache", "sick", "feel", "symptom", "temperature", "fever", "cough"),
    ),
    (Intent.WELLNESS_INFO, ("healthy", "wellness")),
    (Intent.EMERGENCY, ("emergency", "urgent")),
)

HEALTH_ACKNOWLEDGEMENTS: tuple[str, ...] = (
    "I understand you're concerned about your health. Can you describe your symptoms "
    "in more detail?",
    "Thank you for sharing that with me. While I can provide general information, it's "
    "important to consult with a healthcare professional for proper diagnosis and treatment.",
    "I'm here to help with general health information. Based on what you've shared, I "
    "recommend staying hydrated, getting rest, and monitoring your symptoms.",
    "Health concerns can be worrying. If your symptoms persist or worsen, please consider "
    "contacting a healthcare provider.",
)

WELLNESS_RESPONSE = (
    "Maintaining good health involves regular exercise, balanced nutrition, adequate sleep, "
    "and regular check-ups with healthcare providers. Is there a specific aspect of health "
    "you'd like to know more about?"
)

EMERGENCY_RESPONSE = (
    "If you're experiencing a medical emergency, please call emergency services immediately "
    "(911 in the US). For non-emergency health concerns, I'm here to provide general "
    "information and guidance."
)

FALLBACK_RESPONSE = (
    "I'm here to help with general health information and guidance. You can ask me about "
    "symptoms, general health advice, or describe how you're feeling. Remember, I provide "
    "general information only - always consult healthcare professionals for medical advice."
)


class RoutedReply(NamedTuple):
    intent: Intent
    text: str


class IntentRouter:
    """Classifies chat input and picks the canned reply for it."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self.logger = logger.bind(component="intent_router")

    def detect_intent(self, text: str) -> Intent:
        lowered = text.lower()
        for intent, keywords in INTENT_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return intent
        return Intent.UNKNOWN

    def route(self, text: str) -> RoutedReply:
        intent = self.detect_intent(text)
        if intent is Intent.HEALTH_COMPLAINT:
            reply = self._rng.choice(HEALTH_ACKNOWLEDGEMENTS)
        elif intent is Intent.WELLNESS_INFO:
            reply = WELLNESS_RESPONSE
        elif intent is Intent.EMERGENCY:
            reply = EMERGENCY_RESPONSE
        else:
            reply = FALLBACK_RESPONSE

        self.logger.debug("intent_routed", intent=intent.value)
        return RoutedReply(intent, reply)

    async def classify(self, text: str) -> str:
        """Reply text for a chat message; completes without suspending on I/O."""
        return self.route(text).text
