"""Managed resource models: desired configs, persisted signals, cycle results."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class LifecycleStatus(str, Enum):
    """Lifecycle status reported to the host for a managed resource."""

    UNINITIALIZED = "uninitialized"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    FAILED = "failed"
    DRAINING = "draining"
    DRAINED = "drained"
    DRAINING_FAILED = "draining_failed"


class Region(str, Enum):
    """Regions an assistant can be deployed to."""

    US = "us"
    EU = "eu"


class AssistantConfig(BaseModel):
    """Declared configuration of an assistant resource."""

    name: str = Field(min_length=1)
    instructions: str
    region: Region = Region.US
    metadata: dict[str, str] = Field(default_factory=dict)


class AssistantSignals(BaseModel):
    """Signals persisted between assistant reconciliation cycles."""

    status: str | None = None
    host: str | None = None
    name: str | None = None


class DataFileConfig(BaseModel):
    """Declared configuration of a data file attached to an assistant."""

    assistant_name: str = Field(min_length=1)
    content: str
    filename: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class DataFileSignals(BaseModel):
    """Signals persisted between data file reconciliation cycles."""

    content_hash: str | None = None
    file_id: str | None = None
    status: str | None = None


class SyncResult(BaseModel):
    """Outcome of one reconciliation cycle.

    ``new_status`` None means "leave the lifecycle status as is".
    ``next_schedule_delay`` None means no re-invocation is requested.
    """

    new_status: LifecycleStatus | None = None
    signal_updates: dict[str, Any] = Field(default_factory=dict)
    custom_status_description: str | None = None
    next_schedule_delay: int | None = None


class DrainResult(BaseModel):
    """Outcome of a drain call."""

    new_status: LifecycleStatus
    custom_status_description: str | None = None
