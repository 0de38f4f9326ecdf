"""
Models for vector storage.

A point's payload carries enough of the message to render a search hit
without a relational round trip; message_id links back to the full row.
"""

from typing import List, Optional

from pydantic import BaseModel


class VectorPayload(BaseModel):
    message_id: int
    store_id: str
    entry_id: str
    folder: str
    subject: str = ""
    sender: str = ""
    received_at: str
    content_hash: str

    # Extraction fields
    primary_type: Optional[str] = None
    urgency: Optional[str] = None
    needs_response: bool = False
    summary: str = ""


class VectorPoint(BaseModel):
    id: int
    vector: List[float]
    payload: VectorPayload


class VectorMatch(BaseModel):
    """A search hit: point id, similarity score and payload."""

    id: int
    score: float
    payload: VectorPayload
