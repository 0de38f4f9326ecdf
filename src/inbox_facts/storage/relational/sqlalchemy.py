"""
SQLAlchemy-based relational storage.

Holds messages, their extracted facts and the runtime config table.
Upserts use INSERT ... ON CONFLICT DO UPDATE ... RETURNING, which
SQLAlchemy exposes for SQLite and PostgreSQL.
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Engine,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base

from inbox_facts.errors import StorageError
from inbox_facts.models import (
    AnsweredQuestion,
    Blocker,
    ExtractedFact,
    Issue,
    Message,
    MessageWithFacts,
    OpenQuestion,
    ProjectInfo,
    Provenance,
    Risk,
    utcnow,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

# Columns refreshed when a message is saved again
MESSAGE_UPDATE_COLUMNS = (
    "folder",
    "subject",
    "received_at",
    "body_text",
    "body_html",
    "last_indexed_at",
    "content_hash",
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _dump_list(items) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items])


class MessageDB(Base):
    """SQLAlchemy model for message storage."""

    __tablename__ = "emails"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Source identity
    store_id = Column(String, nullable=False)
    entry_id = Column(String, nullable=False)
    conversation_id = Column(String, nullable=True)
    folder = Column(String, nullable=False)

    # Headers
    subject = Column(Text, nullable=False, default="")
    sender = Column(String, nullable=False, default="")
    to = Column(Text, nullable=False, default="")
    cc = Column(Text, nullable=True)
    bcc = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False)
    received_at = Column(DateTime(timezone=True), nullable=False)
    importance = Column(Integer, nullable=False, default=1)
    categories = Column(Text, nullable=True)
    flags = Column(Integer, nullable=True)
    internet_message_id = Column(String, nullable=True)

    # Content
    body_text = Column(Text, nullable=False, default="")
    body_html = Column(Text, nullable=True)

    # Indexing state
    last_indexed_at = Column(DateTime(timezone=True), nullable=True)
    content_hash = Column(String, nullable=False, default="")

    __table_args__ = (
        UniqueConstraint("store_id", "entry_id", name="uq_emails_store_entry"),
        Index("idx_emails_received_at", "received_at"),
    )

    def to_message(self) -> Message:
        """Convert database model to Message."""
        return Message(
            id=self.id,
            store_id=self.store_id,
            entry_id=self.entry_id,
            conversation_id=self.conversation_id,
            folder=self.folder,
            subject=self.subject,
            sender=self.sender,
            to=self.to,
            cc=self.cc,
            bcc=self.bcc,
            sent_at=_as_utc(self.sent_at),
            received_at=_as_utc(self.received_at),
            body_text=self.body_text,
            body_html=self.body_html,
            importance=self.importance,
            categories=self.categories,
            flags=self.flags,
            internet_message_id=self.internet_message_id,
            last_indexed_at=_as_utc(self.last_indexed_at),
            content_hash=self.content_hash,
        )

    @staticmethod
    def values_from(message: Message) -> Dict[str, Any]:
        """Column values for an insert, without the surrogate id."""
        return {
            "store_id": message.store_id,
            "entry_id": message.entry_id,
            "conversation_id": message.conversation_id,
            "folder": message.folder,
            "subject": message.subject,
            "sender": message.sender,
            "to": message.to,
            "cc": message.cc,
            "bcc": message.bcc,
            "sent_at": message.sent_at,
            "received_at": message.received_at,
            "importance": message.importance,
            "categories": message.categories,
            "flags": message.flags,
            "internet_message_id": message.internet_message_id,
            "body_text": message.body_text,
            "body_html": message.body_html,
            "last_indexed_at": message.last_indexed_at or utcnow(),
            "content_hash": message.content_hash,
        }


class FactDB(Base):
    """SQLAlchemy model for extracted facts, one row per message."""

    __tablename__ = "extracted_email_facts"

    email_id = Column(Integer, ForeignKey("emails.id", ondelete="CASCADE"), primary_key=True)

    # Taxonomy
    primary_type = Column(String, nullable=False)
    intent = Column(String, nullable=False)
    sentiment = Column(String, nullable=False, index=True)
    urgency = Column(String, nullable=False)
    waiting_on = Column(String, nullable=False)
    needs_response = Column(Boolean, nullable=False, default=False)
    due_by = Column(DateTime(timezone=True), nullable=True)
    summary = Column(Text, nullable=False, default="")
    confidence = Column(Float, nullable=False, default=0.0)

    # Collections (JSON serialized)
    client_or_project_json = Column(Text, nullable=True)
    key_points_json = Column(Text, nullable=False, default="[]")
    risks_json = Column(Text, nullable=False, default="[]")
    issues_json = Column(Text, nullable=False, default="[]")
    blockers_json = Column(Text, nullable=False, default="[]")
    open_questions_json = Column(Text, nullable=False, default="[]")
    answered_questions_json = Column(Text, nullable=False, default="[]")
    provenance_json = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)

    def to_extracted_fact(self) -> ExtractedFact:
        """Convert database model to ExtractedFact."""
        project = json.loads(self.client_or_project_json) if self.client_or_project_json else None

        return ExtractedFact(
            message_id=self.email_id,
            primary_type=self.primary_type,
            intent=self.intent,
            client_or_project=ProjectInfo(**project) if project else None,
            sentiment=self.sentiment,
            urgency=self.urgency,
            due_by=_as_utc(self.due_by),
            needs_response=self.needs_response,
            waiting_on=self.waiting_on,
            summary=self.summary,
            key_points=json.loads(self.key_points_json),
            risks=[Risk(**item) for item in json.loads(self.risks_json)],
            issues=[Issue(**item) for item in json.loads(self.issues_json)],
            blockers=[Blocker(**item) for item in json.loads(self.blockers_json)],
            open_questions=[OpenQuestion(**item) for item in json.loads(self.open_questions_json)],
            answered_questions=[
                AnsweredQuestion(**item) for item in json.loads(self.answered_questions_json)
            ],
            confidence=self.confidence,
            provenance=Provenance(**json.loads(self.provenance_json)),
            created_at=_as_utc(self.created_at),
        )

    @staticmethod
    def values_from(facts: ExtractedFact) -> Dict[str, Any]:
        return {
            "email_id": facts.message_id,
            "primary_type": facts.primary_type.value,
            "intent": facts.intent.value,
            "sentiment": facts.sentiment.value,
            "urgency": facts.urgency.value,
            "waiting_on": facts.waiting_on.value,
            "needs_response": facts.needs_response,
            "due_by": facts.due_by,
            "summary": facts.summary,
            "confidence": facts.confidence,
            "client_or_project_json": (
                facts.client_or_project.model_dump_json() if facts.client_or_project else None
            ),
            "key_points_json": json.dumps(facts.key_points),
            "risks_json": _dump_list(facts.risks),
            "issues_json": _dump_list(facts.issues),
            "blockers_json": _dump_list(facts.blockers),
            "open_questions_json": _dump_list(facts.open_questions),
            "answered_questions_json": _dump_list(facts.answered_questions),
            "provenance_json": facts.provenance.model_dump_json(),
            "created_at": facts.created_at,
        }


class ConfigDB(Base):
    """Runtime key/value configuration."""

    __tablename__ = "app_config"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class SQLAlchemyRelationalStore:
    """
    SQLAlchemy-based relational storage.

    Supports SQLite and PostgreSQL (the dialects with ON CONFLICT upserts).

    Example:
        from sqlalchemy import create_engine
        engine = create_engine("sqlite:///inbox_facts.db")
        store = SQLAlchemyRelationalStore(engine)
        store.create_tables()
    """

    def __init__(self, engine: Engine):
        """
        Initialize the SQLAlchemy relational store.

        Args:
            engine: SQLAlchemy engine for database connection
        """
        if engine.dialect.name not in ("sqlite", "postgresql"):
            raise StorageError(f"Unsupported database dialect: {engine.dialect.name}")

        self.engine = engine
        logger.info(f"SQLAlchemyRelationalStore initialized (engine={engine.url})")

    @contextmanager
    def _session(self):
        """Context manager for database sessions with automatic commit/rollback."""
        session = Session(self.engine)
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise StorageError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _insert(self, table):
        if self.engine.dialect.name == "postgresql":
            return postgresql.insert(table)
        return sqlite.insert(table)

    def create_tables(self):
        """Create database tables if they don't exist."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create tables: {e}") from e
        logger.info("Database tables created/verified")

    def save_message(self, message: Message) -> int:
        table = MessageDB.__table__
        stmt = self._insert(table).values(**MessageDB.values_from(message))
        stmt = stmt.on_conflict_do_update(
            index_elements=["store_id", "entry_id"],
            set_={column: stmt.excluded[column] for column in MESSAGE_UPDATE_COLUMNS},
        ).returning(table.c.id)

        with self._session() as session:
            message_id = session.execute(stmt).scalar_one()

        logger.debug(f"Saved message {message_id} ({message.store_id}/{message.entry_id})")
        return message_id

    def save_facts(self, facts: ExtractedFact) -> None:
        if facts.message_id is None:
            raise StorageError("Cannot save facts without a message_id")

        values = FactDB.values_from(facts)
        stmt = self._insert(FactDB.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["email_id"],
            set_={
                column: stmt.excluded[column]
                for column in values
                if column not in ("email_id", "created_at")
            },
        )

        with self._session() as session:
            session.execute(stmt)

        logger.debug(f"Saved facts for message {facts.message_id}")

    def get_config(self, key: str) -> Optional[str]:
        with self._session() as session:
            row = session.get(ConfigDB, key)
            return row.value if row else None

    def set_config(self, key: str, value: str) -> None:
        stmt = self._insert(ConfigDB.__table__).values(key=key, value=value, updated_at=utcnow())
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )

        with self._session() as session:
            session.execute(stmt)

        logger.info(f"Config updated: {key}")

    def get_message(self, message_id: int) -> Optional[Message]:
        with self._session() as session:
            row = session.get(MessageDB, message_id)
            return row.to_message() if row else None

    def get_facts(self, message_id: int) -> Optional[ExtractedFact]:
        with self._session() as session:
            row = session.get(FactDB, message_id)
            return row.to_extracted_fact() if row else None

    def _joined(self, session: Session):
        return session.query(MessageDB, FactDB).outerjoin(FactDB, FactDB.email_id == MessageDB.id)

    @staticmethod
    def _with_facts(rows) -> List[MessageWithFacts]:
        return [
            MessageWithFacts(
                message=message.to_message(),
                facts=facts.to_extracted_fact() if facts else None,
            )
            for message, facts in rows
        ]

    def get_messages_by_ids(self, message_ids: List[int]) -> List[MessageWithFacts]:
        if not message_ids:
            return []

        with self._session() as session:
            rows = self._joined(session).filter(MessageDB.id.in_(message_ids)).all()
            by_id = {item.message.id: item for item in self._with_facts(rows)}

        return [by_id[message_id] for message_id in message_ids if message_id in by_id]

    def get_recent_messages(self, limit: int = 50) -> List[MessageWithFacts]:
        with self._session() as session:
            rows = (
                self._joined(session)
                .order_by(MessageDB.received_at.desc(), MessageDB.id.desc())
                .limit(limit)
                .all()
            )
            return self._with_facts(rows)

    def get_messages_without_facts(self, limit: Optional[int] = None) -> List[Message]:
        with self._session() as session:
            query = (
                session.query(MessageDB)
                .outerjoin(FactDB, FactDB.email_id == MessageDB.id)
                .filter(FactDB.email_id.is_(None))
                .order_by(MessageDB.received_at.desc())
            )

            if limit:
                query = query.limit(limit)

            return [row.to_message() for row in query.all()]

    def get_stats(self) -> Dict[str, Any]:
        with self._session() as session:
            total = session.query(func.count(MessageDB.id)).scalar() or 0
            with_facts = session.query(func.count(FactDB.email_id)).scalar() or 0
            needs_response = (
                session.query(func.count(FactDB.email_id))
                .filter(FactDB.needs_response.is_(True))
                .scalar()
                or 0
            )
            sentiment = dict(
                session.query(FactDB.sentiment, func.count(FactDB.email_id))
                .group_by(FactDB.sentiment)
                .all()
            )

        return {
            "total": total,
            "with_facts": with_facts,
            "needs_response": needs_response,
            "sentiment": sentiment,
        }

    def count_messages(self) -> int:
        with self._session() as session:
            return session.query(func.count(MessageDB.id)).scalar() or 0
