"""
Unit tests for in-memory vector storage.

Tests upsert-by-id, similarity search, filtering and deletion.
"""

import pytest

from inbox_facts.models import VectorQueryFilter
from inbox_facts.storage.protocols import VectorStore
from inbox_facts.storage.vector.memory import InMemoryVectorStore, cosine_similarity


@pytest.fixture
def vector_store():
    """Create a fresh in-memory vector store."""
    return InMemoryVectorStore()


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


def test_upsert_same_id_overwrites(vector_store):
    vector_store.upsert(42, [1.0, 0.0], payload(1, subject="first"))
    vector_store.upsert(42, [0.0, 1.0], payload(1, subject="second"))

    point = vector_store.get(42)
    assert vector_store.count() == 1
    assert point.vector == [0.0, 1.0]
    assert point.payload.subject == "second"


def test_large_unsigned_ids(vector_store):
    big_id = 2**64 - 1
    vector_store.upsert(big_id, [1.0, 0.0], payload(1))

    assert vector_store.get(big_id).id == big_id


def test_search_orders_by_score(vector_store):
    vector_store.upsert(1, [1.0, 0.0, 0.0], payload(1))
    vector_store.upsert(2, [0.9, 0.1, 0.0], payload(2))
    vector_store.upsert(3, [0.0, 1.0, 0.0], payload(3))

    results = vector_store.search([1.0, 0.0, 0.0], limit=2)

    assert [r.id for r in results] == [1, 2]
    assert results[0].score == pytest.approx(1.0)


def test_search_min_score(vector_store):
    vector_store.upsert(1, [1.0, 0.0], payload(1))
    vector_store.upsert(2, [0.0, 1.0], payload(2))

    results = vector_store.search([1.0, 0.0], min_score=0.5)

    assert [r.id for r in results] == [1]


def test_search_filters(vector_store):
    vector_store.upsert(1, [1.0, 0.0], payload(1, folder="Inbox", needs_response=True))
    vector_store.upsert(2, [1.0, 0.0], payload(2, folder="Sent Items"))
    vector_store.upsert(3, [1.0, 0.0], payload(3, primary_type="request", sender="bob@example.com"))

    assert [r.id for r in vector_store.search([1.0, 0.0], filters=VectorQueryFilter(
        folder="Sent Items"))] == [2]
    assert [r.id for r in vector_store.search([1.0, 0.0], filters=VectorQueryFilter(
        needs_response=True))] == [1]
    assert [r.id for r in vector_store.search([1.0, 0.0], filters=VectorQueryFilter(
        primary_type=["request", "decision"]))] == [3]
    assert [r.id for r in vector_store.search([1.0, 0.0], filters=VectorQueryFilter(
        sender="bob@example.com"))] == [3]


def test_delete(vector_store):
    vector_store.upsert(1, [1.0], payload(1))
    vector_store.upsert(2, [1.0], payload(2))

    assert vector_store.delete([1, 99]) == 1
    assert vector_store.get(1) is None
    assert vector_store.count() == 1


def test_cosine_similarity():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 0.0])
