"""
Building AI providers from configuration.

Ollama is driven through casual-llm's native Ollama backend; Lemonade,
Foundry Local and OpenAI all speak the OpenAI API. Embeddings and model
listing always go through the OpenAI-compatible endpoint (Ollama serves
one under /v1).
"""

import logging
from typing import Optional

from casual_llm import ModelConfig, Provider
from openai import AsyncOpenAI
from pydantic import BaseModel

from inbox_facts.ai.casual_provider import CasualLLMProvider
from inbox_facts.config import (
    API_KEY_KEY,
    EMBEDDING_MODEL_KEY,
    FOUNDRY_URL_KEY,
    LEMONADE_URL_KEY,
    MODEL_NAME_KEY,
    OLLAMA_URL_KEY,
    OPENAI_URL_KEY,
    PROVIDER_TYPE_KEY,
    Settings,
)
from inbox_facts.embeddings import OpenAIEmbedding
from inbox_facts.storage.protocols import RelationalStore

logger = logging.getLogger(__name__)

PROVIDER_TYPES = ("ollama", "lemonade", "foundry", "openai")

DEFAULT_CHAT_MODELS = {"ollama": "llama3"}
FALLBACK_CHAT_MODEL = "gpt-4o-mini"

DEFAULT_EMBEDDING_MODELS = {"ollama": "all-minilm"}
FALLBACK_EMBEDDING_MODEL = "text-embedding-3-small"

# OpenAI clients insist on a key even when the local server ignores it
LOCAL_API_KEY = "not-required"


class ProviderConfig(BaseModel):
    provider_type: str = "ollama"
    base_url: str
    model_name: Optional[str] = None
    embedding_model: Optional[str] = None
    api_key: Optional[str] = None

    @property
    def chat_model(self) -> str:
        return self.model_name or DEFAULT_CHAT_MODELS.get(self.provider_type, FALLBACK_CHAT_MODEL)

    @property
    def embedding_model_name(self) -> str:
        return self.embedding_model or DEFAULT_EMBEDDING_MODELS.get(
            self.provider_type, FALLBACK_EMBEDDING_MODEL
        )

    @property
    def openai_base_url(self) -> str:
        """Base URL of the OpenAI-compatible API of this backend."""
        if self.provider_type == "ollama":
            return self.base_url.rstrip("/") + "/v1"
        return self.base_url


def load_provider_config(store: RelationalStore, settings: Settings) -> ProviderConfig:
    """
    Resolve the provider config: runtime keys in the store win over settings.

    Unknown provider types fall back to ollama.
    """

    def value(key: str, default: Optional[str]) -> Optional[str]:
        stored = store.get_config(key)
        return stored if stored else default

    provider_type = (value(PROVIDER_TYPE_KEY, settings.provider_type) or "ollama").lower()
    if provider_type not in PROVIDER_TYPES:
        logger.warning(f"Unknown provider type {provider_type!r}, using ollama")
        provider_type = "ollama"

    url_keys = {
        "ollama": (OLLAMA_URL_KEY, settings.ollama_url),
        "lemonade": (LEMONADE_URL_KEY, settings.lemonade_url),
        "foundry": (FOUNDRY_URL_KEY, settings.foundry_url),
        "openai": (OPENAI_URL_KEY, settings.openai_url),
    }
    url_key, url_default = url_keys[provider_type]

    return ProviderConfig(
        provider_type=provider_type,
        base_url=value(url_key, url_default),
        model_name=value(MODEL_NAME_KEY, settings.model_name),
        embedding_model=value(EMBEDDING_MODEL_KEY, settings.embedding_model),
        api_key=value(API_KEY_KEY, settings.api_key),
    )


def build_provider(config: ProviderConfig) -> CasualLLMProvider:
    api_key = config.api_key or (LOCAL_API_KEY if config.provider_type != "openai" else None)

    if config.provider_type == "ollama":
        model_config = ModelConfig(
            name=config.chat_model, provider=Provider.OLLAMA, base_url=config.base_url
        )
    else:
        model_config = ModelConfig(
            name=config.chat_model,
            provider=Provider.OPENAI,
            base_url=config.base_url,
            api_key=api_key,
        )

    embedding = OpenAIEmbedding(
        model=config.embedding_model_name,
        api_key=api_key,
        base_url=config.openai_base_url,
    )
    models_client = AsyncOpenAI(api_key=api_key, base_url=config.openai_base_url)

    logger.info(
        f"Building {config.provider_type} provider at {config.base_url} "
        f"(chat={config.chat_model}, embedding={config.embedding_model_name})"
    )
    return CasualLLMProvider.from_config(
        model_config,
        embedding=embedding,
        provider_name=config.provider_type,
        models_client=models_client,
    )
