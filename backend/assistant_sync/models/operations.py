"""Substrate records: pending operations, emitted events, timers, messages."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from assistant_sync.constants import DEFAULT_OUTPUT


class PendingStatus(str, Enum):
    """Resolution state of a pending operation."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PendingOperation(BaseModel):
    """An in-flight output event awaiting exactly one terminal resolution."""

    pending_id: str
    output_id: str = DEFAULT_OUTPUT
    status_description: str = ""
    event: dict[str, Any] = Field(default_factory=dict)
    parent_event_id: str | None = None
    status: PendingStatus = PendingStatus.PENDING
    result: dict[str, Any] | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def resolved(self) -> bool:
        return self.status != PendingStatus.PENDING


class EmittedEvent(BaseModel):
    """An output event delivered to the host."""

    event_id: str
    output_id: str = DEFAULT_OUTPUT
    payload: dict[str, Any] = Field(default_factory=dict)
    parent_event_id: str | None = None
    pending_id: str | None = None
    created_at: datetime | None = None


class Timer(BaseModel):
    """A scheduled continuation. The payload is the only resumption state."""

    timer_id: str
    operation: str
    block_config: dict[str, Any] = Field(default_factory=dict)
    payload: dict[str, Any] = Field(default_factory=dict)
    pending_id: str | None = None
    description: str = ""
    delay_seconds: float = 0


class InternalMessage(BaseModel):
    """A one-shot message from an accept stage to its perform stage."""

    operation: str
    block_config: dict[str, Any] = Field(default_factory=dict)
    body: dict[str, Any] = Field(default_factory=dict)
