"""
Core services for the companion.

This package contains the advisory engine (knowledge base, triage aggregator,
intent router), the advisory service that connects it to the record store, and
the startup wiring that builds everything once.
"""

from .advisory import HealthAdvisoryService, build_symptom_record, parse_metric_value
from .companion_context import CompanionContext, create_context
from .intent_router import IntentRouter, RoutedReply
from .knowledge_base import SymptomKnowledgeBase
from .triage import TriageAggregator, TriageConfig

__all__ = [
    "SymptomKnowledgeBase",
    "TriageAggregator",
    "TriageConfig",
    "IntentRouter",
    "RoutedReply",
    "HealthAdvisoryService",
    "build_symptom_record",
    "parse_metric_value",
    "CompanionContext",
    "create_context",
]
