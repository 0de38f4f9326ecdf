"""
Storage for messages, facts and embeddings.

Provides protocol definitions plus SQLAlchemy/Qdrant implementations and
in-memory counterparts for tests.
"""

from inbox_facts.storage.protocols import RelationalStore, VectorStore
from inbox_facts.storage.relational.memory import InMemoryRelationalStore
from inbox_facts.storage.relational.sqlalchemy import SQLAlchemyRelationalStore
from inbox_facts.storage.vector.memory import InMemoryVectorStore
from inbox_facts.storage.vector.models import VectorMatch, VectorPayload, VectorPoint
from inbox_facts.storage.vector.qdrant import QdrantVectorStore

__all__ = [
    "RelationalStore",
    "VectorStore",
    "InMemoryRelationalStore",
    "SQLAlchemyRelationalStore",
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "VectorMatch",
    "VectorPayload",
    "VectorPoint",
]
