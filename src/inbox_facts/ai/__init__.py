"""
AI backend access.

- AiProvider: chat + embedding protocol
- AiProviderRegistry: hot-swappable handle to the active provider
- CasualLLMProvider: casual-llm chat + OpenAI-compatible embeddings
- build_provider / load_provider_config: provider construction from configuration
"""

from inbox_facts.ai.casual_provider import CasualLLMProvider
from inbox_facts.ai.factory import ProviderConfig, build_provider, load_provider_config
from inbox_facts.ai.protocol import AiProvider, ChatRequest, ChatResponse, ChatTurn, Usage
from inbox_facts.ai.registry import AiProviderRegistry

__all__ = [
    "AiProvider",
    "AiProviderRegistry",
    "CasualLLMProvider",
    "ChatRequest",
    "ChatResponse",
    "ChatTurn",
    "ProviderConfig",
    "Usage",
    "build_provider",
    "load_provider_config",
]
