import logging
from typing import Any, Dict, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchAny,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from inbox_facts.errors import StorageError
from inbox_facts.models import VectorQueryFilter
from inbox_facts.storage.vector.models import VectorMatch, VectorPayload, VectorPoint

logger = logging.getLogger(__name__)

DEFAULT_VECTOR_DIMENSION = 1536


def build_filter(filters: Optional[VectorQueryFilter]) -> Optional[Filter]:
    if filters is None:
        return None

    conditions = []

    if filters.folder is not None:
        conditions.append(FieldCondition(key="folder", match=MatchValue(value=filters.folder)))

    if filters.sender is not None:
        conditions.append(FieldCondition(key="sender", match=MatchValue(value=filters.sender)))

    # Handle primary_type filter (list of types)
    if filters.primary_type is not None:
        conditions.append(
            FieldCondition(key="primary_type", match=MatchAny(any=filters.primary_type))
        )

    if filters.needs_response is not None:
        conditions.append(
            FieldCondition(key="needs_response", match=MatchValue(value=filters.needs_response))
        )

    return Filter(must=conditions) if conditions else None


class QdrantVectorStore:
    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        collection_name: str = "emails",
        vector_dimension: int = DEFAULT_VECTOR_DIMENSION,
        client: Optional[QdrantClient] = None,
    ):
        """
        Initialize Qdrant vector store.

        Args:
            host: Qdrant host (default: localhost)
            port: Qdrant port (default: 6333)
            collection_name: Collection name (default: emails)
            vector_dimension: Embedding size used when the collection is created
            client: Pre-built client (e.g. QdrantClient(":memory:")); host/port are ignored
        """
        self.client = client or QdrantClient(host=host, port=port)
        self.collection_name = collection_name
        self.vector_dimension = vector_dimension
        self._init_collection()

    def _init_collection(self):
        try:
            if not self.client.collection_exists(self.collection_name):
                self.client.create_collection(
                    collection_name=self.collection_name,
                    vectors_config=VectorParams(
                        size=self.vector_dimension, distance=Distance.COSINE
                    ),
                )
                logger.info(
                    f"Created collection {self.collection_name} "
                    f"(size={self.vector_dimension}, distance=cosine)"
                )
                return

            vectors = self.client.get_collection(self.collection_name).config.params.vectors
        except (UnexpectedResponse, ConnectionError, OSError) as e:
            raise StorageError(f"Failed to initialise collection {self.collection_name}: {e}") from e

        # Existing collections keep the size they were created with
        if isinstance(vectors, VectorParams) and vectors.size != self.vector_dimension:
            raise StorageError(
                f"Collection {self.collection_name} holds {vectors.size}-dimensional vectors, "
                f"embedding model produces {self.vector_dimension}"
            )

    def upsert(self, point_id: int, vector: List[float], payload: Dict[str, Any]) -> None:
        """
        Insert or overwrite a point.

        Args:
            point_id: Stable unsigned 64-bit id of the message
            vector: The embedding vector
            payload: Dictionary of message fields (from VectorPayload.model_dump())
        """
        try:
            self.client.upsert(
                collection_name=self.collection_name,
                points=[PointStruct(id=point_id, vector=vector, payload=payload)],
                wait=True,
            )
        except Exception as e:
            logger.error(f"Failed to upsert point {point_id}: {e}")
            raise StorageError(f"Vector upsert failed for point {point_id}: {e}") from e

        logger.debug(f"Upserted point {point_id}: '{payload.get('subject', '')[:50]}'")

    def search(
        self,
        query_embedding: List[float],
        limit: int = 10,
        min_score: float = 0.0,
        filters: Optional[VectorQueryFilter] = None,
    ) -> List[VectorMatch]:
        try:
            response = self.client.query_points(
                collection_name=self.collection_name,
                query=query_embedding,
                query_filter=build_filter(filters),
                limit=limit,
                score_threshold=min_score,
                with_payload=True,
            )
        except Exception as e:
            logger.error(f"Vector search failed: {e}")
            raise StorageError(f"Vector search failed: {e}") from e

        results = [
            VectorMatch(id=int(hit.id), score=hit.score, payload=VectorPayload(**hit.payload))
            for hit in response.points
        ]
        logger.debug(f"{len(results)} hits found (min_score={min_score})")
        return results

    def get(self, point_id: int) -> Optional[VectorPoint]:
        try:
            records = self.client.retrieve(
                collection_name=self.collection_name,
                ids=[point_id],
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            raise StorageError(f"Failed to retrieve point {point_id}: {e}") from e

        if not records:
            return None

        record = records[0]
        return VectorPoint(
            id=int(record.id), vector=record.vector, payload=VectorPayload(**record.payload)
        )

    def delete(self, point_ids: List[int]) -> int:
        if not point_ids:
            return 0

        try:
            existing = self.client.retrieve(
                collection_name=self.collection_name,
                ids=point_ids,
                with_payload=False,
                with_vectors=False,
            )
            if existing:
                self.client.delete(
                    collection_name=self.collection_name,
                    points_selector=PointIdsList(points=[record.id for record in existing]),
                    wait=True,
                )
        except Exception as e:
            logger.error(f"Failed to delete points {point_ids}: {e}")
            raise StorageError(f"Vector delete failed: {e}") from e

        logger.info(f"Deleted {len(existing)} points")
        return len(existing)

    def count(self) -> int:
        try:
            return self.client.count(collection_name=self.collection_name, exact=True).count
        except Exception as e:
            raise StorageError(f"Vector count failed: {e}") from e
