"""
Action endpoints.

The host delivers three kinds of triggers to an action: an input event (the
accept stage), an internal message (the perform stage, when the host rather
than this process delivers messages), and a fired timer (a continuation).

Endpoints:
- POST /api/v1/operations/{operation}/events
- POST /api/v1/operations/{operation}/messages
- POST /api/v1/operations/{operation}/timers
"""

import uuid
from collections.abc import Awaitable
from typing import Any, TypeVar

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from assistant_sync.models.operations import InternalMessage, Timer
from assistant_sync.operations.dispatcher import OperationDispatcher, UnknownOperationError
from assistant_sync.services.pinecone_client import MissingApiKeyError, RemoteServiceError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/operations", tags=["operations"])

T = TypeVar("T")


class OperationEventRequest(BaseModel):
    """An input event for an action."""

    block_config: dict[str, Any] = Field(default_factory=dict)
    inputs: dict[str, Any] = Field(default_factory=dict)
    event_id: str | None = None


class OperationMessageRequest(BaseModel):
    """An internal message redelivered by the host."""

    block_config: dict[str, Any] = Field(default_factory=dict)
    body: dict[str, Any] = Field(default_factory=dict)


class OperationTimerRequest(BaseModel):
    """A fired timer delivered by the host."""

    timer_id: str | None = None
    block_config: dict[str, Any] = Field(default_factory=dict)
    payload: dict[str, Any] = Field(default_factory=dict)
    pending_id: str | None = None


class OperationAccepted(BaseModel):
    """Response for an accepted event."""

    operation: str
    pending_id: str | None = None


class OperationHandled(BaseModel):
    """Response for a handled message or timer."""

    operation: str
    handled: bool = True


def _get_dispatcher(request: Request) -> OperationDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="Operation dispatcher not configured")
    return dispatcher


async def _run(operation: str, call: Awaitable[T]) -> T:
    """Await a dispatcher call, mapping failures to HTTP errors."""
    try:
        return await call
    except UnknownOperationError:
        raise HTTPException(status_code=404, detail=f"Unknown operation '{operation}'")
    except MissingApiKeyError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValidationError as e:
        raise HTTPException(
            status_code=422, detail=e.errors(include_url=False, include_context=False)
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RemoteServiceError as e:
        logger.warning("operation_remote_error", operation=operation, error=str(e))
        raise HTTPException(status_code=502, detail=str(e))
    except TimeoutError:
        logger.warning("operation_timed_out", operation=operation)
        raise HTTPException(status_code=504, detail="Assistant request timed out")


@router.post("/{operation}/events", response_model=OperationAccepted, status_code=202)
async def handle_event(
    operation: str, body: OperationEventRequest, request: Request
) -> OperationAccepted:
    """Accept an input event for an action."""
    structlog.contextvars.bind_contextvars(operation=operation, event_id=body.event_id)
    dispatcher = _get_dispatcher(request)
    pending_id = await _run(
        operation,
        dispatcher.handle_event(operation, body.block_config, body.inputs, body.event_id),
    )
    return OperationAccepted(operation=operation, pending_id=pending_id)


@router.post("/{operation}/messages", response_model=OperationHandled)
async def handle_message(
    operation: str, body: OperationMessageRequest, request: Request
) -> OperationHandled:
    """Run the perform stage of an action."""
    structlog.contextvars.bind_contextvars(operation=operation)
    dispatcher = _get_dispatcher(request)
    message = InternalMessage(operation=operation, block_config=body.block_config, body=body.body)
    await _run(operation, dispatcher.handle_message(message))
    return OperationHandled(operation=operation)


@router.post("/{operation}/timers", response_model=OperationHandled)
async def handle_timer(
    operation: str, body: OperationTimerRequest, request: Request
) -> OperationHandled:
    """Run a continuation of an action."""
    structlog.contextvars.bind_contextvars(operation=operation, pending_id=body.pending_id)
    dispatcher = _get_dispatcher(request)
    timer = Timer(
        timer_id=body.timer_id or str(uuid.uuid4()),
        operation=operation,
        block_config=body.block_config,
        payload=body.payload,
        pending_id=body.pending_id,
    )
    await _run(operation, dispatcher.handle_timer(timer))
    return OperationHandled(operation=operation)
