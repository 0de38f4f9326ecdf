"""
Unit tests for SQLAlchemy relational storage.

Runs against an in-memory SQLite engine, which supports the same
ON CONFLICT ... RETURNING upserts as PostgreSQL.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine

from conftest import make_message
from inbox_facts.errors import StorageError
from inbox_facts.models import Blocker, ExtractedFact, OpenQuestion, ProjectInfo, Provenance
from inbox_facts.schema import Sentiment, Severity, Urgency
from inbox_facts.storage.protocols import RelationalStore
from inbox_facts.storage.relational.sqlalchemy import SQLAlchemyRelationalStore


@pytest.fixture
def store():
    """Create a fresh SQLAlchemy relational store with in-memory SQLite."""
    engine = create_engine("sqlite:///:memory:")
    store = SQLAlchemyRelationalStore(engine)
    store.create_tables()
    return store


def make_facts(message_id, **overrides):
    values = dict(
        message_id=message_id,
        urgency=Urgency.HIGH,
        sentiment=Sentiment.CONCERNED,
        needs_response=True,
        summary="Release blocked on legal",
        key_points=["Legal review pending"],
        blockers=[Blocker(title="Legal sign-off", severity=Severity.HIGH, confidence=0.9)],
        open_questions=[
            OpenQuestion(
                question="When will legal respond?",
                due_by=datetime(2025, 3, 1, tzinfo=timezone.utc),
            )
        ],
        client_or_project=ProjectInfo(name="Apollo", confidence=0.7),
        confidence=0.85,
        provenance=Provenance(model="llama3", provider="ollama"),
    )
    values.update(overrides)
    return ExtractedFact(**values)


def test_satisfies_protocol(store):
    assert isinstance(store, RelationalStore)


def test_save_and_get_message(store):
    message = make_message(subject="Hello", body="World")
    message.content_hash = "abc"

    message_id = store.save_message(message)
    stored = store.get_message(message_id)

    assert stored.id == message_id
    assert stored.subject == "Hello"
    assert stored.body_text == "World"
    assert stored.content_hash == "abc"
    assert stored.received_at.tzinfo is not None
    assert stored.last_indexed_at is not None


def test_save_message_is_idempotent(store):
    message = make_message()

    first = store.save_message(message)
    second = store.save_message(message)

    assert first == second
    assert store.count_messages() == 1


def test_conflict_updates_mutable_fields_only(store):
    original = make_message(subject="v1", body="old body", folder="Inbox")
    message_id = store.save_message(original)

    updated = original.model_copy(
        update={
            "subject": "v2",
            "body_text": "new body",
            "folder": "Archive",
            "content_hash": "h2",
            "sender": "mallory@example.com",
        }
    )
    assert store.save_message(updated) == message_id

    stored = store.get_message(message_id)
    assert stored.subject == "v2"
    assert stored.body_text == "new body"
    assert stored.folder == "Archive"
    assert stored.content_hash == "h2"
    assert stored.sender == "alice@example.com"


def test_distinct_keys_get_distinct_ids(store):
    a = store.save_message(make_message(entry_id="1"))
    b = store.save_message(make_message(entry_id="2"))
    c = store.save_message(make_message(entry_id="1", store_id="other-store"))

    assert len({a, b, c}) == 3


def test_save_and_get_facts_round_trip_nested(store):
    message_id = store.save_message(make_message())
    store.save_facts(make_facts(message_id))

    facts = store.get_facts(message_id)

    assert facts.message_id == message_id
    assert facts.urgency == Urgency.HIGH
    assert facts.blockers[0].title == "Legal sign-off"
    assert facts.blockers[0].severity == Severity.HIGH
    assert facts.open_questions[0].due_by == datetime(2025, 3, 1, tzinfo=timezone.utc)
    assert facts.client_or_project.name == "Apollo"
    assert facts.provenance.model == "llama3"


def test_save_facts_upserts(store):
    message_id = store.save_message(make_message())
    store.save_facts(make_facts(message_id, summary="first"))
    store.save_facts(make_facts(message_id, summary="second", blockers=[]))

    facts = store.get_facts(message_id)

    assert facts.summary == "second"
    assert facts.blockers == []
    assert store.get_stats()["with_facts"] == 1


def test_save_facts_requires_message_id(store):
    with pytest.raises(StorageError):
        store.save_facts(make_facts(None))


def test_missing_rows(store):
    assert store.get_message(999) is None
    assert store.get_facts(999) is None


def test_config_round_trip(store):
    assert store.get_config("model_name") is None

    store.set_config("model_name", "llama3")
    store.set_config("model_name", "mistral")

    assert store.get_config("model_name") == "mistral"


def test_get_messages_by_ids_preserves_order(store):
    ids = [store.save_message(make_message(entry_id=str(i), subject=f"m{i}")) for i in range(3)]
    store.save_facts(make_facts(ids[1]))

    rows = store.get_messages_by_ids([ids[2], ids[0], 12345, ids[1]])

    assert [row.message.subject for row in rows] == ["m2", "m0", "m1"]
    assert rows[0].facts is None
    assert rows[2].facts.summary == "Release blocked on legal"
    assert store.get_messages_by_ids([]) == []


def test_recent_messages_newest_first(store):
    store.save_message(make_message(entry_id="old", subject="old", age_days=5))
    store.save_message(make_message(entry_id="new", subject="new", age_days=0.1))
    store.save_message(make_message(entry_id="mid", subject="mid", age_days=2))

    rows = store.get_recent_messages(limit=2)

    assert [row.message.subject for row in rows] == ["new", "mid"]


def test_messages_without_facts(store):
    with_facts = store.save_message(make_message(entry_id="a"))
    store.save_message(make_message(entry_id="b", subject="pending"))
    store.save_facts(make_facts(with_facts))

    pending = store.get_messages_without_facts()

    assert [m.subject for m in pending] == ["pending"]


def test_stats(store):
    first = store.save_message(make_message(entry_id="a"))
    second = store.save_message(make_message(entry_id="b"))
    store.save_message(make_message(entry_id="c"))
    store.save_facts(make_facts(first))
    store.save_facts(make_facts(second, sentiment=Sentiment.POSITIVE, needs_response=False))

    stats = store.get_stats()

    assert stats["total"] == 3
    assert stats["with_facts"] == 2
    assert stats["needs_response"] == 1
    assert stats["sentiment"] == {"concerned": 1, "positive": 1}

