"""
Application configuration using pydantic-settings.
Loads environment variables from .env file.

Nested config groups (ReconcileConfig, UploadConfig, ChatConfig, StorageConfig)
are env-overridable via the double-underscore delimiter, e.g.:
    RECONCILE__FILE_POLL_DELAY_SECONDS=30
    UPLOAD__POLL_DELAY_SECONDS=20
    CHAT__TIMEOUT_SECONDS=60
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReconcileConfig(BaseModel):
    """Re-invocation delays returned by the resource reconcilers.

    Delays are fixed; the operations they wait on (assistant init, file
    parsing) are bounded.
    """

    assistant_create_delay_seconds: int = 10
    assistant_poll_delay_seconds: int = 10
    file_create_delay_seconds: int = 15
    file_poll_delay_seconds: int = 15


class UploadConfig(BaseModel):
    """Timer cadence for the upload-and-wait action."""

    initial_check_delay_seconds: int = 5
    poll_delay_seconds: int = 15


class ChatConfig(BaseModel):
    """Defaults for the chat actions."""

    conversation_ttl_seconds: int = 3600
    timeout_seconds: float = 30.0


class StorageConfig(BaseModel):
    """Supabase table names for the durable substrate stores."""

    kv_table: str = "block_kv"
    pending_table: str = "pending_operations"
    events_table: str = "emitted_events"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # API Keys
    pinecone_api_key: str = ""

    # Supabase (durable KV / pending operations). Empty = in-memory stores.
    supabase_url: str = ""
    supabase_secret_key: str = ""

    # App Settings
    debug: bool = False

    # Nested config groups (env-overridable via SECTION__KEY format)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
