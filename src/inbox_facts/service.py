"""
Application context.

Built once per process: owns the stores, the provider registry, the
pipeline and the scheduler, and is the only place that rebuilds the AI
provider when its configuration changes.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import create_engine

from inbox_facts.ai.factory import ProviderConfig, build_provider, load_provider_config
from inbox_facts.ai.protocol import AiProvider
from inbox_facts.ai.registry import AiProviderRegistry
from inbox_facts.config import AI_CONFIG_KEYS, HISTORY_DAYS_KEY, SYNC_INTERVAL_KEY, Settings
from inbox_facts.errors import ProviderError
from inbox_facts.extraction.extractor import FactExtractor
from inbox_facts.extraction.repair import SchemaRepair
from inbox_facts.models import (
    Message,
    MessageWithFacts,
    ProcessOutcome,
    SearchResult,
    VectorQueryFilter,
)
from inbox_facts.pipeline import ExtractionPipeline
from inbox_facts.sources.protocol import MailSource
from inbox_facts.storage.protocols import RelationalStore, VectorStore
from inbox_facts.storage.relational.sqlalchemy import SQLAlchemyRelationalStore
from inbox_facts.storage.vector.qdrant import QdrantVectorStore
from inbox_facts.sync import ScanReport, SyncManager, SyncSettings

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[ProviderConfig], AiProvider]


def embedding_dimension(provider: AiProvider, default: Optional[int] = None) -> Optional[int]:
    """Vector size the provider embeds to, or default when the model is not known."""
    dimension = getattr(provider, "embedding_dimension", None)
    return dimension if isinstance(dimension, int) else default


class InboxFactsService:
    def __init__(
        self,
        relational_store: RelationalStore,
        vector_store: VectorStore,
        registry: AiProviderRegistry,
        source: MailSource,
        settings: Optional[Settings] = None,
        provider_builder: ProviderBuilder = build_provider,
    ):
        """
        Args:
            relational_store: Messages, facts and runtime config
            vector_store: Message embeddings
            registry: Handle to the active AI provider
            source: Mailbox the scheduler polls
            settings: Process settings (defaults read from the environment)
            provider_builder: Builds a provider from config on AI config changes
        """
        self.settings = settings or Settings()
        self.relational_store = relational_store
        self.vector_store = vector_store
        self.registry = registry
        self.provider_builder = provider_builder

        self.extractor = FactExtractor(SchemaRepair(registry))
        self.pipeline = ExtractionPipeline(relational_store, vector_store, registry, self.extractor)
        self.sync_manager = SyncManager(
            source,
            self.pipeline,
            SyncSettings.resolve(self.settings, relational_store),
            relational_store,
        )
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls, source: MailSource, settings: Optional[Settings] = None
    ) -> "InboxFactsService":
        """Wire up SQLAlchemy, Qdrant and the configured AI provider."""
        settings = settings or Settings()

        relational_store = SQLAlchemyRelationalStore(create_engine(settings.database_url))
        relational_store.create_tables()

        provider = build_provider(load_provider_config(relational_store, settings))
        registry = AiProviderRegistry(provider)

        vector_store = QdrantVectorStore(
            host=settings.qdrant_host,
            port=settings.qdrant_port,
            collection_name=settings.qdrant_collection,
            vector_dimension=embedding_dimension(provider, settings.vector_dimension),
        )

        return cls(relational_store, vector_store, registry, source, settings)

    async def process_message(self, message: Message) -> ProcessOutcome:
        return await self.pipeline.process(message)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the background scheduler (idempotent) and return its task."""
        if self.running:
            return self._task

        self._task = asyncio.create_task(self.sync_manager.run_forever(), name="inbox-facts-sync")
        logger.info("Background sync started")
        return self._task

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the scheduler after its current tick; cancel it after timeout seconds."""
        if self._task is None:
            return

        self.sync_manager.stop()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Sync task did not stop in time, cancelled")
        finally:
            self._task = None

        logger.info("Background sync stopped")

    async def force_resync(self, window_days: Optional[float] = None) -> ScanReport:
        return await self.sync_manager.force_resync(window_days)

    async def reprocess_unextracted(self, limit: Optional[int] = None) -> ScanReport:
        return await self.sync_manager.reprocess_unextracted(limit)

    async def search(
        self,
        query: str,
        filters: Optional[VectorQueryFilter] = None,
        limit: int = 10,
        min_score: float = 0.0,
    ) -> List[SearchResult]:
        """
        Semantic search over indexed messages.

        Hits are hydrated from the relational store by the message id in
        their payload; hits whose row has disappeared are dropped.
        """
        with self.registry.read() as ai:
            query_vector = await ai.generate_embedding(query)

        matches = self.vector_store.search(
            query_vector, limit=limit, min_score=min_score, filters=filters
        )
        if not matches:
            return []

        rows = self.relational_store.get_messages_by_ids([m.payload.message_id for m in matches])
        by_id = {row.message.id: row for row in rows}

        results = []
        for match in matches:
            row = by_id.get(match.payload.message_id)
            if row is None:
                logger.warning(
                    f"Vector point {match.id} references missing message {match.payload.message_id}"
                )
                continue
            results.append(SearchResult(score=match.score, message=row.message, facts=row.facts))

        logger.info(f"{len(results)} messages found for query")
        return results

    def get_recent_messages(self, limit: int = 50) -> List[MessageWithFacts]:
        return self.relational_store.get_recent_messages(limit)

    def get_stats(self) -> Dict[str, Any]:
        return self.relational_store.get_stats()

    def get_config(self, key: str) -> Optional[str]:
        return self.relational_store.get_config(key)

    def set_config(self, key: str, value: str) -> None:
        """
        Persist a runtime config value and apply it.

        AI keys rebuild the provider and swap it in. If the build fails, or the
        new embedding model does not match the vector index dimension, the
        previous provider stays active and ProviderError is raised. Scheduler
        keys take effect from the next tick.
        """
        self.relational_store.set_config(key, value)

        if key in AI_CONFIG_KEYS:
            config = load_provider_config(self.relational_store, self.settings)
            try:
                provider = self.provider_builder(config)
            except Exception as e:
                logger.error(f"Failed to rebuild AI provider after {key} change: {e}")
                raise ProviderError(f"Could not build {config.provider_type} provider: {e}") from e

            indexed = getattr(self.vector_store, "vector_dimension", None)
            dimension = embedding_dimension(provider)
            if indexed is not None and dimension is not None and dimension != indexed:
                logger.error(
                    f"Refusing {config.embedding_model_name}: {dimension}-dimensional embeddings, "
                    f"vector index holds {indexed}"
                )
                raise ProviderError(
                    f"Embedding model {config.embedding_model_name} produces "
                    f"{dimension}-dimensional vectors but the vector index holds {indexed}"
                )
            self.registry.swap(provider)

        elif key in (HISTORY_DAYS_KEY, SYNC_INTERVAL_KEY):
            self.sync_manager.settings = SyncSettings.resolve(self.settings, self.relational_store)

    async def list_models(self) -> List[str]:
        with self.registry.read() as ai:
            return await ai.list_models()
