"""Normalized views of Pinecone Assistant API objects."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class RemoteAssistant(BaseModel):
    """An assistant as reported by the remote service."""

    name: str
    status: str
    host: str | None = None
    instructions: str | None = None
    metadata: dict[str, Any] | None = None


class RemoteFile(BaseModel):
    """A file attached to an assistant as reported by the remote service."""

    id: str
    name: str | None = None
    status: str
    metadata: dict[str, Any] | None = None
    percent_done: float | None = None
    error_message: str | None = None
    signed_url: str | None = None
    created_on: str | None = None
    updated_on: str | None = None


class ChatMessage(BaseModel):
    """A single conversation turn."""

    role: Literal["user", "assistant"]
    content: str


class ContextOptions(BaseModel):
    """Controls the context snippets sent to the LLM during chat."""

    top_k: int | None = Field(default=None, ge=1)
    snippet_size: int | None = Field(default=None, ge=1)
