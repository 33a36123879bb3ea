"""
Host substrate primitives consumed by reconcilers and actions.

Four capabilities, each a Protocol with an in-process implementation:

  PendingEventStore  pending-operation create/update/complete/cancel + emit
  KeyValueStore      durable key-value slots with optional TTL
  TimerScheduler     run a continuation after N seconds
  MessageBus         one-shot message from an accept stage to its perform stage

The in-memory stores are used by tests and as the local fallback when
Supabase is not configured (see supabase_store.py for the durable versions).
The asyncio scheduler and bus run continuations inside this process.
"""

import asyncio
import copy
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import structlog

from assistant_sync.constants import DEFAULT_OUTPUT
from assistant_sync.models.operations import (
    EmittedEvent,
    InternalMessage,
    PendingOperation,
    PendingStatus,
    Timer,
)

logger = structlog.get_logger(__name__)

TimerHandler = Callable[[Timer], Awaitable[None]]
MessageHandler = Callable[[InternalMessage], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PendingEventStore(Protocol):
    """Pending operations and output events."""

    async def create_pending(
        self,
        *,
        status_description: str,
        event: dict[str, Any] | None = None,
        output_id: str = DEFAULT_OUTPUT,
        parent_event_id: str | None = None,
    ) -> str:
        """Register a pending operation and return its id."""

    async def update_pending(self, pending_id: str, *, status_description: str) -> None:
        """Refresh the human-readable progress of a pending operation."""

    async def complete(
        self,
        pending_id: str,
        payload: dict[str, Any],
        *,
        parent_event_id: str | None = None,
    ) -> bool:
        """Resolve with a success payload.

        Returns True if this call resolved it; False if it was already
        resolved or unknown.
        """

    async def cancel(self, pending_id: str, reason: str) -> bool:
        """Resolve with a failure reason. Same return contract as complete."""

    async def emit(
        self,
        payload: dict[str, Any],
        *,
        output_id: str = DEFAULT_OUTPUT,
        parent_event_id: str | None = None,
    ) -> str:
        """Emit an output event not tied to a pending operation."""

    async def get(self, pending_id: str) -> PendingOperation | None:
        """Fetch a pending operation."""


class KeyValueStore(Protocol):
    """Durable key-value slots. Expired entries read as absent."""

    async def get(self, key: str) -> Any | None:
        """Return the stored value or None."""

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a JSON-compatible value, optionally expiring after ttl_seconds."""

    async def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""


class TimerScheduler(Protocol):
    """Delayed continuations."""

    async def set(
        self,
        delay_seconds: float,
        *,
        operation: str,
        block_config: dict[str, Any],
        payload: dict[str, Any],
        pending_id: str | None = None,
        description: str = "",
    ) -> Timer:
        """Schedule a continuation."""


class MessageBus(Protocol):
    """Internal message delivery."""

    async def send(self, message: InternalMessage) -> None:
        """Deliver a message to its operation's perform stage."""


@dataclass
class Substrate:
    """The primitives an action needs, bundled."""

    events: PendingEventStore
    timers: TimerScheduler
    messaging: MessageBus
    kv: KeyValueStore


class InMemoryPendingEventStore:
    """In-memory pending operations, used for tests and local fallback."""

    def __init__(self, now_provider: Callable[[], datetime] | None = None) -> None:
        self._now = now_provider or _utcnow
        self.pending: dict[str, PendingOperation] = {}
        self.emitted: list[EmittedEvent] = []

    async def create_pending(
        self,
        *,
        status_description: str,
        event: dict[str, Any] | None = None,
        output_id: str = DEFAULT_OUTPUT,
        parent_event_id: str | None = None,
    ) -> str:
        now = self._now()
        operation = PendingOperation(
            pending_id=str(uuid.uuid4()),
            output_id=output_id,
            status_description=status_description,
            event=copy.deepcopy(event or {}),
            parent_event_id=parent_event_id,
            created_at=now,
            updated_at=now,
        )
        self.pending[operation.pending_id] = operation
        return operation.pending_id

    async def update_pending(self, pending_id: str, *, status_description: str) -> None:
        operation = self.pending.get(pending_id)
        if operation is None or operation.resolved:
            logger.warning("pending_update_ignored", pending_id=pending_id)
            return
        operation.status_description = status_description
        operation.updated_at = self._now()

    def _claim(self, pending_id: str) -> PendingOperation | None:
        operation = self.pending.get(pending_id)
        if operation is None:
            logger.warning("pending_operation_unknown", pending_id=pending_id)
            return None
        if operation.resolved:
            logger.warning(
                "pending_operation_already_resolved",
                pending_id=pending_id,
                status=operation.status.value,
            )
            return None
        return operation

    async def complete(
        self,
        pending_id: str,
        payload: dict[str, Any],
        *,
        parent_event_id: str | None = None,
    ) -> bool:
        operation = self._claim(pending_id)
        if operation is None:
            return False

        now = self._now()
        operation.status = PendingStatus.COMPLETED
        operation.result = copy.deepcopy(payload)
        operation.updated_at = now
        self.emitted.append(
            EmittedEvent(
                event_id=str(uuid.uuid4()),
                output_id=operation.output_id,
                payload=copy.deepcopy(payload),
                parent_event_id=parent_event_id or operation.parent_event_id,
                pending_id=pending_id,
                created_at=now,
            )
        )
        return True

    async def cancel(self, pending_id: str, reason: str) -> bool:
        operation = self._claim(pending_id)
        if operation is None:
            return False
        operation.status = PendingStatus.CANCELLED
        operation.failure_reason = reason
        operation.updated_at = self._now()
        return True

    async def emit(
        self,
        payload: dict[str, Any],
        *,
        output_id: str = DEFAULT_OUTPUT,
        parent_event_id: str | None = None,
    ) -> str:
        event = EmittedEvent(
            event_id=str(uuid.uuid4()),
            output_id=output_id,
            payload=copy.deepcopy(payload),
            parent_event_id=parent_event_id,
            created_at=self._now(),
        )
        self.emitted.append(event)
        return event.event_id

    async def get(self, pending_id: str) -> PendingOperation | None:
        operation = self.pending.get(pending_id)
        return operation.model_copy(deep=True) if operation else None


class InMemoryKeyValueStore:
    """In-memory key-value store with TTL, used for tests and local fallback."""

    def __init__(self, now_provider: Callable[[], datetime] | None = None) -> None:
        self._now = now_provider or _utcnow
        self._entries: dict[str, tuple[Any, datetime | None]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._now():
            del self._entries[key]
            return None
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        expires_at = None
        if ttl_seconds is not None:
            expires_at = self._now() + timedelta(seconds=ttl_seconds)
        self._entries[key] = (copy.deepcopy(value), expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("continuation_failed", task=task.get_name(), error=str(error), exc_info=error)


class AsyncioTimerScheduler:
    """Runs timers on the current event loop.

    Timers live only as long as the process; a restart drops scheduled
    continuations and leaves their pending operations open.
    """

    def __init__(self, handler: TimerHandler | None = None) -> None:
        self._handler = handler
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def bind(self, handler: TimerHandler) -> None:
        self._handler = handler

    async def set(
        self,
        delay_seconds: float,
        *,
        operation: str,
        block_config: dict[str, Any],
        payload: dict[str, Any],
        pending_id: str | None = None,
        description: str = "",
    ) -> Timer:
        if self._handler is None:
            raise RuntimeError("Timer scheduler has no handler bound")

        timer = Timer(
            timer_id=str(uuid.uuid4()),
            operation=operation,
            block_config=copy.deepcopy(block_config),
            payload=copy.deepcopy(payload),
            pending_id=pending_id,
            description=description,
            delay_seconds=delay_seconds,
        )
        loop = asyncio.get_running_loop()
        self._handles[timer.timer_id] = loop.call_later(delay_seconds, self._fire, timer)
        logger.debug(
            "timer_scheduled",
            timer_id=timer.timer_id,
            delay=delay_seconds,
            description=description,
        )
        return timer

    def _fire(self, timer: Timer) -> None:
        self._handles.pop(timer.timer_id, None)
        task = asyncio.create_task(self._handler(timer), name=f"timer:{timer.operation}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_log_task_failure)

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        for task in self._tasks:
            task.cancel()


class AsyncioMessageBus:
    """Delivers internal messages as tasks on the current event loop."""

    def __init__(self, handler: MessageHandler | None = None) -> None:
        self._handler = handler
        self._tasks: set[asyncio.Task] = set()

    def bind(self, handler: MessageHandler) -> None:
        self._handler = handler

    async def send(self, message: InternalMessage) -> None:
        if self._handler is None:
            raise RuntimeError("Message bus has no handler bound")
        task = asyncio.create_task(
            self._handler(message.model_copy(deep=True)),
            name=f"message:{message.operation}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_log_task_failure)

    def cancel_all(self) -> None:
        for task in self._tasks:
            task.cancel()
