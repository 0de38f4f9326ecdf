"""
Per-message ingestion pipeline.

Each message goes through six ordered steps: fingerprint, relational
upsert, fact extraction, facts upsert, embedding, vector upsert. The
relational row is written first so its id can key the facts; it is not
rolled back if a later step fails, and a re-run of the same message
converges on the same rows and the same vector point.
"""

import logging

from inbox_facts.ai.registry import AiProviderRegistry
from inbox_facts.errors import PipelineError
from inbox_facts.extraction.extractor import FactExtractor
from inbox_facts.hashing import content_fingerprint, stable_vector_id
from inbox_facts.models import ExtractedFact, Message, ProcessOutcome, utcnow
from inbox_facts.storage.protocols import RelationalStore, VectorStore
from inbox_facts.storage.vector.models import VectorPayload

logger = logging.getLogger(__name__)


EMPTY_MESSAGE_TEXT = "(empty message)"


def embedding_text(message: Message) -> str:
    """
    Text that represents the message in the vector index.

    Body, else subject, else sender and folder, so every message can be
    embedded.
    """
    if message.body_text.strip():
        return message.body_text
    if message.subject.strip():
        return message.subject
    fallback = " ".join(part for part in (message.sender, message.folder) if part.strip())
    return fallback or EMPTY_MESSAGE_TEXT


def build_payload(message: Message, facts: ExtractedFact) -> VectorPayload:
    return VectorPayload(
        message_id=message.id,
        store_id=message.store_id,
        entry_id=message.entry_id,
        folder=message.folder,
        subject=message.subject,
        sender=message.sender,
        received_at=message.received_at.isoformat(),
        content_hash=message.content_hash,
        primary_type=facts.primary_type.value,
        urgency=facts.urgency.value,
        needs_response=facts.needs_response,
        summary=facts.summary,
    )


class ExtractionPipeline:
    def __init__(
        self,
        relational_store: RelationalStore,
        vector_store: VectorStore,
        registry: AiProviderRegistry,
        extractor: FactExtractor,
    ):
        self.relational_store = relational_store
        self.vector_store = vector_store
        self.registry = registry
        self.extractor = extractor

    def _fail(self, stage: str, message: Message, cause: Exception) -> PipelineError:
        return PipelineError(
            stage=stage,
            subject=message.subject,
            folder=message.folder,
            message_id=message.id,
            cause=cause,
        )

    async def process(self, message: Message) -> ProcessOutcome:
        """
        Run one message through the pipeline.

        The caller's message is not mutated; the returned outcome carries
        the relational id, vector id and fingerprint that were written.

        Raises:
            PipelineError: Tagged with the failing stage
        """
        logger.info(f"Processing message: {message.subject}")

        message = message.model_copy(
            update={
                "content_hash": content_fingerprint(
                    message.subject, message.sender, message.body_text
                ),
                "last_indexed_at": utcnow(),
            }
        )

        try:
            message.id = self.relational_store.save_message(message)
        except Exception as e:
            raise self._fail("persist_message", message, e) from e

        try:
            facts = await self.extractor.extract(message)
        except Exception as e:
            raise self._fail("extract", message, e) from e
        facts.message_id = message.id

        try:
            self.relational_store.save_facts(facts)
        except Exception as e:
            raise self._fail("save_facts", message, e) from e

        try:
            with self.registry.read() as ai:
                vector = await ai.generate_embedding(embedding_text(message))
        except Exception as e:
            raise self._fail("embed", message, e) from e

        vector_id = stable_vector_id(message.store_id, message.entry_id)
        try:
            self.vector_store.upsert(vector_id, vector, build_payload(message, facts).model_dump())
        except Exception as e:
            raise self._fail("upsert_vector", message, e) from e

        logger.info(f"Successfully processed message {message.id} (vector_id={vector_id})")

        return ProcessOutcome(
            message_id=message.id,
            vector_id=vector_id,
            content_hash=message.content_hash,
            facts=facts,
        )
