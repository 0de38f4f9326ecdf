"""
Process-level settings.

Values come from INBOX_FACTS_* environment variables (or a .env file).
The relational store's config table can override the AI backend and
scheduler keys at runtime; see ai.factory and sync.SyncSettings.
"""

from typing import List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Runtime config keys (relational config table)
PROVIDER_TYPE_KEY = "provider_type"
OLLAMA_URL_KEY = "ollama_url"
LEMONADE_URL_KEY = "lemonade_url"
FOUNDRY_URL_KEY = "foundry_url"
OPENAI_URL_KEY = "openai_url"
MODEL_NAME_KEY = "model_name"
EMBEDDING_MODEL_KEY = "embedding_model"
API_KEY_KEY = "api_key"
HISTORY_DAYS_KEY = "history_days"
SYNC_INTERVAL_KEY = "sync_interval"

# Changing any of these rebuilds and swaps the AI provider
AI_CONFIG_KEYS = frozenset(
    {
        PROVIDER_TYPE_KEY,
        OLLAMA_URL_KEY,
        LEMONADE_URL_KEY,
        FOUNDRY_URL_KEY,
        OPENAI_URL_KEY,
        MODEL_NAME_KEY,
        EMBEDDING_MODEL_KEY,
        API_KEY_KEY,
    }
)


class SyncFolder(BaseModel):
    folder_id: str
    name: str


DEFAULT_FOLDERS = [
    SyncFolder(folder_id="inbox", name="Inbox"),
    SyncFolder(folder_id="sent_items", name="Sent Items"),
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="INBOX_FACTS_", env_file=".env", extra="ignore")

    # Relational store
    database_url: str = "sqlite:///inbox_facts.db"

    # Vector store
    qdrant_host: str = "localhost"
    qdrant_port: int = 6333
    qdrant_collection: str = "emails"
    vector_dimension: int = 1536  # only when the embedding model's size is unknown

    # AI backend
    provider_type: str = "ollama"
    ollama_url: str = "http://localhost:11434"
    lemonade_url: str = "http://localhost:8000/v1"
    foundry_url: str = "http://localhost:5000/v1"
    openai_url: str = "https://api.openai.com/v1"
    model_name: Optional[str] = None
    embedding_model: Optional[str] = None
    api_key: Optional[str] = None

    # Scheduler
    history_days: float = 90.0
    delta_window_days: float = 1.0
    sync_interval_minutes: float = 2.0
    folders: List[SyncFolder] = DEFAULT_FOLDERS
