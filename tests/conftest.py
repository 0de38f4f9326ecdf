"""Shared fixtures: message factory, scripted AI provider and service checks."""

import json
import socket
from datetime import timedelta
from typing import Dict, List, Optional

import pytest

from inbox_facts.ai.protocol import ChatRequest, ChatResponse
from inbox_facts.ai.registry import AiProviderRegistry
from inbox_facts.models import Message, utcnow


class ScriptedProvider:
    """
    AiProvider double that replays canned chat replies in order.

    Embeddings come from `vectors` by exact text, else a fixed vector.
    """

    def __init__(
        self,
        replies: Optional[List[str]] = None,
        vectors: Optional[Dict[str, List[float]]] = None,
        model_name: str = "llama3",
        provider_name: str = "ollama",
    ):
        self.replies = list(replies or [])
        self.vectors = vectors or {}
        self.requests: List[ChatRequest] = []
        self.embedded: List[str] = []
        self._model_name = model_name
        self._provider_name = provider_name

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def provider_name(self) -> str:
        return self._provider_name

    async def chat_completion(self, request: ChatRequest) -> ChatResponse:
        self.requests.append(request)
        if not self.replies:
            raise AssertionError("ScriptedProvider ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return ChatResponse(content=reply, model=self._model_name)

    async def generate_embedding(self, text: str) -> List[float]:
        self.embedded.append(text)
        return self.vectors.get(text, [0.5, 0.5, 0.5])

    async def list_models(self) -> List[str]:
        return [self._model_name]


def extraction_json(**overrides) -> str:
    data = {
        "primary_type": "update",
        "intent": "inform",
        "sentiment": "neutral",
        "urgency": "medium",
        "needs_response": False,
        "waiting_on": "none",
        "summary": "Weekly status update",
        "key_points": ["Milestone 2 shipped"],
        "risks": [],
        "issues": [],
        "blockers": [],
        "open_questions": [],
        "answered_questions": [],
        "confidence": 0.8,
    }
    data.update(overrides)
    return json.dumps(data)


def make_message(
    entry_id: str = "entry-1",
    store_id: str = "store-A",
    folder: str = "Inbox",
    subject: str = "Status update",
    sender: str = "alice@example.com",
    body: str = "Milestone 2 shipped on time.",
    age_days: float = 0.5,
) -> Message:
    received = utcnow() - timedelta(days=age_days)
    return Message(
        store_id=store_id,
        entry_id=entry_id,
        folder=folder,
        subject=subject,
        sender=sender,
        to="me@example.com",
        sent_at=received,
        received_at=received,
        body_text=body,
    )


@pytest.fixture
def scripted_provider():
    return ScriptedProvider()


@pytest.fixture
def registry(scripted_provider):
    return AiProviderRegistry(scripted_provider)


def is_service_available(host: str, port: int) -> bool:
    """Check if a service is available at host:port."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(2)
            result = sock.connect_ex((host, port))
            return result == 0
    except OSError:
        return False


@pytest.fixture
def skip_if_no_qdrant():
    """Skip test if Qdrant is not available."""
    if not is_service_available("localhost", 6333):
        pytest.skip("Qdrant not available at localhost:6333")
