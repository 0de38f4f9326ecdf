import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from inbox_facts.schema import (
    DEFAULT_INTENT,
    DEFAULT_PRIMARY_TYPE,
    DEFAULT_SENTIMENT,
    DEFAULT_SEVERITY,
    DEFAULT_URGENCY,
    DEFAULT_WAITING_ON,
    Intent,
    PrimaryType,
    Sentiment,
    Severity,
    Urgency,
    WaitingOn,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A mail item as yielded by a MailSource."""

    id: Optional[int] = Field(
        default=None, description="Relational id, assigned once the message is persisted"
    )
    store_id: str = Field(..., description="Source store identifier")
    entry_id: str = Field(..., description="Source-scoped entry identifier")
    conversation_id: Optional[str] = None
    folder: str
    subject: str = ""
    sender: str = ""
    to: str = ""
    cc: Optional[str] = None
    bcc: Optional[str] = None
    sent_at: datetime = Field(default_factory=utcnow)
    received_at: datetime = Field(default_factory=utcnow)
    body_text: str = ""
    body_html: Optional[str] = None
    importance: int = 1
    categories: Optional[str] = None
    flags: Optional[int] = None
    internet_message_id: Optional[str] = None
    last_indexed_at: Optional[datetime] = None
    content_hash: str = Field(
        default="", description="Content fingerprint, filled in by the pipeline"
    )


class ProjectInfo(BaseModel):
    name: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class Finding(BaseModel):
    """Shared shape of risks, issues and blockers."""

    title: str
    details: str = ""
    owner: Optional[str] = None
    severity: Severity = DEFAULT_SEVERITY
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class Risk(Finding):
    pass


class Issue(Finding):
    pass


class Blocker(Finding):
    pass


class OpenQuestion(BaseModel):
    question: str
    asked_by: Optional[str] = None
    owner: Optional[str] = None
    due_by: Optional[datetime] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class AnsweredQuestion(BaseModel):
    question: str
    answer_summary: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class Provenance(BaseModel):
    """Which backend produced a set of facts, and when."""

    model: str
    provider: str
    prompt_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Request identifier"
    )
    created_at: datetime = Field(default_factory=utcnow)


class ExtractedFact(BaseModel):
    """Structured facts extracted from one persisted message."""

    message_id: Optional[int] = Field(
        default=None, description="Relational id of the parent message"
    )
    primary_type: PrimaryType = DEFAULT_PRIMARY_TYPE
    intent: Intent = DEFAULT_INTENT
    client_or_project: Optional[ProjectInfo] = None
    sentiment: Sentiment = DEFAULT_SENTIMENT
    urgency: Urgency = DEFAULT_URGENCY
    due_by: Optional[datetime] = None
    needs_response: bool = False
    waiting_on: WaitingOn = DEFAULT_WAITING_ON
    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    risks: List[Risk] = Field(default_factory=list)
    issues: List[Issue] = Field(default_factory=list)
    blockers: List[Blocker] = Field(default_factory=list)
    open_questions: List[OpenQuestion] = Field(default_factory=list)
    answered_questions: List[AnsweredQuestion] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    provenance: Provenance
    created_at: datetime = Field(default_factory=utcnow)


class ProcessOutcome(BaseModel):
    """Result of running one message through the pipeline."""

    message_id: int
    vector_id: int
    content_hash: str
    facts: ExtractedFact


class VectorQueryFilter(BaseModel):
    folder: Optional[str] = None
    sender: Optional[str] = None
    primary_type: Optional[List[str]] = None
    needs_response: Optional[bool] = None


class MessageWithFacts(BaseModel):
    """A stored message joined with its facts, if extraction succeeded."""

    message: Message
    facts: Optional[ExtractedFact] = None


class SearchResult(BaseModel):
    """A semantic search hit hydrated from the relational store."""

    score: float
    message: Message
    facts: Optional[ExtractedFact] = None
