"""
AI backend protocol.

Any object with these async methods can be installed in the
AiProviderRegistry: no inheritance required.
"""

from typing import List, Literal, Optional, Protocol

from pydantic import BaseModel, Field
from typing_extensions import runtime_checkable


class ChatTurn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatTurn]
    temperature: float = 0.0
    response_format: Literal["json", "text"] = "text"
    model: Optional[str] = Field(
        default=None, description="Overrides the provider's configured model for this call"
    )


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0


class ChatResponse(BaseModel):
    content: str
    usage: Usage = Field(default_factory=Usage)
    model: Optional[str] = None


@runtime_checkable
class AiProvider(Protocol):
    """
    Chat + embedding capability of one configured backend.

    Implementations raise ProviderError for network/HTTP failures so
    callers can tell a dead backend from a misbehaving model.
    """

    @property
    def model_name(self) -> str:
        """Chat model used when a request carries no override."""
        ...

    @property
    def provider_name(self) -> str:
        """Backend identifier recorded in fact provenance (e.g. "ollama")."""
        ...

    async def chat_completion(self, request: ChatRequest) -> ChatResponse:
        ...

    async def generate_embedding(self, text: str) -> List[float]:
        ...

    async def list_models(self) -> List[str]:
        ...
