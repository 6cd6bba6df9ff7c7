"""
Startup wiring for the companion core.

Instead of process-wide singletons, everything the screens need is built once
into a CompanionContext and passed to them. Building the context runs the
explicit ``load()`` step of both stores.
"""

import random
from dataclasses import dataclass

import structlog

from companion.config import AppConfig, get_config
from companion.domain.models import PreferenceSet
from companion.logging_setup import configure_logging
from companion.services.advisory import HealthAdvisoryService
from companion.services.intent_router import IntentRouter
from companion.services.knowledge_base import SymptomKnowledgeBase
from companion.services.triage import TriageAggregator, TriageConfig
from companion.storage.kv import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from companion.storage.preferences import PreferenceStore
from companion.storage.records import LocalRecordStore

logger = structlog.get_logger(__name__)


@dataclass
class CompanionContext:
    """The object graph shared by all consumers of the core."""

    config: AppConfig
    backend: KeyValueStore
    knowledge_base: SymptomKnowledgeBase
    aggregator: TriageAggregator
    router: IntentRouter
    records: LocalRecordStore
    preferences: PreferenceStore
    advisory: HealthAdvisoryService

    async def aclose(self) -> None:
        """Wait for outstanding durable writes."""
        await self.records.flush()
        await self.preferences.flush()


def build_backend(config: AppConfig) -> KeyValueStore:
    if config.storage.backend == "memory":
        return MemoryKeyValueStore()
    return JsonFileKeyValueStore(config.storage.data_dir)


async def create_context(
    config: AppConfig | None = None,
    *,
    backend: KeyValueStore | None = None,
    rng: random.Random | None = None,
    setup_logging: bool = True,
) -> CompanionContext:
    """Build and load every component of the core."""
    config = config or get_config()
    if setup_logging:
        configure_logging(config.logging)

    if backend is None:
        backend = build_backend(config)
    knowledge_base = SymptomKnowledgeBase()
    aggregator = TriageAggregator(
        knowledge_base,
        TriageConfig(
            delay_seconds=config.advisory.triage_delay_seconds,
            max_recommendations=config.advisory.max_recommendations,
            max_causes=config.advisory.max_causes,
        ),
    )
    router = IntentRouter(rng)
    records = LocalRecordStore(backend, history_limit=config.storage.symptom_history_limit)
    preferences = PreferenceStore(
        backend,
        defaults=PreferenceSet(
            language=config.preferences.default_language,
            voice_enabled=config.preferences.default_voice_enabled,
        ),
    )

    await records.load()
    await preferences.load()

    logger.info(
        "companion_context_ready",
        environment=config.environment,
        storage_backend=config.storage.backend,
        symptom_count=len(knowledge_base),
    )

    return CompanionContext(
        config=config,
        backend=backend,
        knowledge_base=knowledge_base,
        aggregator=aggregator,
        router=router,
        records=records,
        preferences=preferences,
        advisory=HealthAdvisoryService(knowledge_base, aggregator, router, records),
    )
