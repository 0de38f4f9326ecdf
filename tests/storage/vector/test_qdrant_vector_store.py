"""
Unit tests for Qdrant vector storage.

Uses qdrant-client's local in-memory mode, so no server is needed.
"""

from uuid import uuid4

import pytest
from qdrant_client import QdrantClient

from inbox_facts.errors import StorageError
from inbox_facts.hashing import stable_vector_id
from inbox_facts.models import VectorQueryFilter
from inbox_facts.storage.protocols import VectorStore
from inbox_facts.storage.vector.qdrant import QdrantVectorStore, build_filter


@pytest.fixture
def vector_store():
    return QdrantVectorStore(
        collection_name=f"test_{uuid4().hex[:8]}",
        vector_dimension=3,
        client=QdrantClient(":memory:"),
    )


def payload(message_id, **overrides):
    values = {
        "message_id": message_id,
        "store_id": "store-A",
        "entry_id": f"entry-{message_id}",
        "folder": "Inbox",
        "subject": f"Subject {message_id}",
        "sender": "alice@example.com",
        "received_at": "2025-01-01T00:00:00+00:00",
        "content_hash": "h",
        "primary_type": "update",
        "urgency": "low",
        "needs_response": False,
    }
    values.update(overrides)
    return values


def test_satisfies_protocol(vector_store):
    assert isinstance(vector_store, VectorStore)


def test_collection_created_once(vector_store):
    assert vector_store.client.collection_exists(vector_store.collection_name)

    # Re-opening an existing collection must not wipe it
    vector_store.upsert(1, [1.0, 0.0, 0.0], payload(1))
    reopened = QdrantVectorStore(
        collection_name=vector_store.collection_name,
        vector_dimension=3,
        client=vector_store.client,
    )
    assert reopened.count() == 1


def test_reopening_with_other_dimension_fails(vector_store):
    with pytest.raises(StorageError, match="3-dimensional"):
        QdrantVectorStore(
            collection_name=vector_store.collection_name,
            vector_dimension=384,
            client=vector_store.client,
        )


def test_upsert_with_stable_id_is_idempotent(vector_store):
    point_id = stable_vector_id("store-A", "entry-1")

    vector_store.upsert(point_id, [1.0, 0.0, 0.0], payload(1, subject="first"))
    vector_store.upsert(point_id, [0.0, 1.0, 0.0], payload(1, subject="second"))

    assert vector_store.count() == 1
    point = vector_store.get(point_id)
    assert point.id == point_id
    assert point.payload.subject == "second"


def test_search_and_filters(vector_store):
    vector_store.upsert(1, [1.0, 0.0, 0.0], payload(1, folder="Inbox"))
    vector_store.upsert(2, [0.9, 0.1, 0.0], payload(2, folder="Sent Items", needs_response=True))
    vector_store.upsert(3, [0.1, 0.0, 1.0], payload(3, primary_type="request"))

    results = vector_store.search([1.0, 0.0, 0.0], limit=2)
    assert [r.id for r in results] == [1, 2]
    assert results[0].payload.message_id == 1

    sent = vector_store.search([1.0, 0.0, 0.0], filters=VectorQueryFilter(folder="Sent Items"))
    assert [r.id for r in sent] == [2]

    flagged = vector_store.search([1.0, 0.0, 0.0], filters=VectorQueryFilter(needs_response=True))
    assert [r.id for r in flagged] == [2]

    requests = vector_store.search(
        [1.0, 0.0, 0.0], filters=VectorQueryFilter(primary_type=["request"])
    )
    assert [r.id for r in requests] == [3]


def test_delete_counts_existing_points(vector_store):
    vector_store.upsert(1, [1.0, 0.0, 0.0], payload(1))
    vector_store.upsert(2, [0.0, 1.0, 0.0], payload(2))

    assert vector_store.delete([1, 404]) == 1
    assert vector_store.get(1) is None
    assert vector_store.count() == 1
    assert vector_store.delete([]) == 0


def test_build_filter():
    assert build_filter(None) is None
    assert build_filter(VectorQueryFilter()) is None
    assert len(build_filter(VectorQueryFilter(folder="Inbox", sender="a@b.c")).must) == 2
