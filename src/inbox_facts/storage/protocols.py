"""
Storage protocols for messages, extracted facts and embeddings.

The relational store is the source of truth for message metadata and
facts; the vector store holds one embedding per message, keyed by the
message's stable vector id.
"""

from typing import Any, Dict, List, Optional

from typing_extensions import Protocol, runtime_checkable

from inbox_facts.models import ExtractedFact, Message, MessageWithFacts, VectorQueryFilter
from inbox_facts.storage.vector.models import VectorMatch, VectorPoint


@runtime_checkable
class RelationalStore(Protocol):
    """
    Protocol for message, fact and runtime-config persistence.

    Implementations must treat (store_id, entry_id) as a natural key:
    saving the same message twice updates the existing row and returns
    the same id.
    """

    def save_message(self, message: Message) -> int:
        """
        Insert or update a message keyed by (store_id, entry_id).

        On conflict only the mutable fields are refreshed: folder, subject,
        received_at, body, last_indexed_at and content_hash.

        Returns:
            The relational id of the stored row
        """
        ...

    def save_facts(self, facts: ExtractedFact) -> None:
        """Insert or replace the facts for facts.message_id."""
        ...

    def get_config(self, key: str) -> Optional[str]:
        ...

    def set_config(self, key: str, value: str) -> None:
        ...

    def get_message(self, message_id: int) -> Optional[Message]:
        ...

    def get_facts(self, message_id: int) -> Optional[ExtractedFact]:
        ...

    def get_messages_by_ids(self, message_ids: List[int]) -> List[MessageWithFacts]:
        """
        Fetch messages joined with their facts.

        Results follow the order of message_ids; unknown ids are skipped.
        """
        ...

    def get_recent_messages(self, limit: int = 50) -> List[MessageWithFacts]:
        """Most recently received messages first."""
        ...

    def get_messages_without_facts(self, limit: Optional[int] = None) -> List[Message]:
        """Messages whose extraction never completed, newest first."""
        ...

    def get_stats(self) -> Dict[str, Any]:
        """
        Dashboard counters.

        Returns:
            {"total": int, "with_facts": int, "needs_response": int,
             "sentiment": {sentiment: count}}
        """
        ...

    def count_messages(self) -> int:
        ...


@runtime_checkable
class VectorStore(Protocol):
    """
    Protocol for embedding storage and similarity search.

    Point ids are unsigned 64-bit integers derived from the message's
    source identity, so re-indexing a message overwrites its point.
    """

    def upsert(self, point_id: int, vector: List[float], payload: Dict[str, Any]) -> None:
        """
        Insert or overwrite a point.

        Args:
            point_id: Stable vector id (see hashing.stable_vector_id)
            vector: The embedding
            payload: Dictionary of message fields (from VectorPayload.model_dump())
        """
        ...

    def search(
        self,
        query_embedding: List[float],
        limit: int = 10,
        min_score: float = 0.0,
        filters: Optional[VectorQueryFilter] = None,
    ) -> List[VectorMatch]:
        """
        Similarity search.

        Returns:
            Matches scoring at least min_score, best first
        """
        ...

    def get(self, point_id: int) -> Optional[VectorPoint]:
        ...

    def delete(self, point_ids: List[int]) -> int:
        """
        Delete points by id.

        Returns:
            Number of points that existed and were removed
        """
        ...

    def count(self) -> int:
        ...
