"""
In-memory vector storage implementation.

Brute-force cosine similarity over a dictionary of points. Suitable for
tests and development; use QdrantVectorStore in production.
"""

import logging
from typing import Any, Dict, List, Optional

from inbox_facts.models import VectorQueryFilter
from inbox_facts.storage.vector.models import VectorMatch, VectorPayload, VectorPoint

logger = logging.getLogger(__name__)


def cosine_similarity(vec1: List[float], vec2: List[float]) -> float:
    if len(vec1) != len(vec2):
        raise ValueError("Vectors must have the same length")

    dot_product = sum(a * b for a, b in zip(vec1, vec2))
    magnitude1 = sum(a * a for a in vec1) ** 0.5
    magnitude2 = sum(b * b for b in vec2) ** 0.5

    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0

    return dot_product / (magnitude1 * magnitude2)


def matches_filters(payload: Dict[str, Any], filters: Optional[VectorQueryFilter]) -> bool:
    if filters is None:
        return True
    if filters.folder is not None and payload.get("folder") != filters.folder:
        return False
    if filters.sender is not None and payload.get("sender") != filters.sender:
        return False
    if filters.primary_type is not None and payload.get("primary_type") not in filters.primary_type:
        return False
    if (
        filters.needs_response is not None
        and payload.get("needs_response") != filters.needs_response
    ):
        return False
    return True


class InMemoryVectorStore:
    """In-memory implementation of the VectorStore protocol."""

    def __init__(self):
        self._points: Dict[int, Dict[str, Any]] = {}  # id -> {vector, payload}

        logger.info("InMemoryVectorStore initialized")

    def upsert(self, point_id: int, vector: List[float], payload: Dict[str, Any]) -> None:
        self._points[point_id] = {"vector": list(vector), "payload": dict(payload)}
        logger.debug(f"Upserted point {point_id}: '{payload.get('subject', '')[:50]}'")

    def search(
        self,
        query_embedding: List[float],
        limit: int = 10,
        min_score: float = 0.0,
        filters: Optional[VectorQueryFilter] = None,
    ) -> List[VectorMatch]:
        results = []

        for point_id, point in self._points.items():
            if not matches_filters(point["payload"], filters):
                continue

            score = cosine_similarity(query_embedding, point["vector"])
            if score >= min_score:
                results.append(
                    VectorMatch(id=point_id, score=score, payload=VectorPayload(**point["payload"]))
                )

        results.sort(key=lambda match: match.score, reverse=True)
        results = results[:limit]

        logger.debug(f"{len(results)} results found (min_score={min_score})")
        return results

    def get(self, point_id: int) -> Optional[VectorPoint]:
        point = self._points.get(point_id)
        if point is None:
            return None
        return VectorPoint(
            id=point_id, vector=point["vector"], payload=VectorPayload(**point["payload"])
        )

    def delete(self, point_ids: List[int]) -> int:
        removed = 0
        for point_id in point_ids:
            if self._points.pop(point_id, None) is not None:
                removed += 1
        return removed

    def count(self) -> int:
        return len(self._points)
