"""Shared plumbing for actions: self-messaging, timers, pending resolution."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, ClassVar

import structlog
from pydantic import BaseModel

from assistant_sync.config import Settings
from assistant_sync.models.operations import InternalMessage, Timer
from assistant_sync.services.pinecone_client import AssistantService
from assistant_sync.services.substrate import Substrate

logger = structlog.get_logger(__name__)


def describe_error(error: BaseException) -> str:
    """Readable text for an exception, falling back to its type name."""
    return str(error) or type(error).__name__


class Operation:
    """
    A configured action instance (one per block configuration).

    Subclasses declare ``name``, ``config_model`` and ``input_model`` and
    override the stages they use: ``on_event`` (accept), ``on_internal_message``
    (perform) and ``on_timer`` (continuation). Nothing survives between stages
    except what is put in a message body or timer payload.
    """

    name: ClassVar[str]
    config_model: ClassVar[type[BaseModel]]
    input_model: ClassVar[type[BaseModel]]

    def __init__(
        self,
        config: BaseModel,
        service: AssistantService,
        substrate: Substrate,
        settings: Settings,
    ) -> None:
        self.config = config
        self.service = service
        self.substrate = substrate
        self.settings = settings
        self.events = substrate.events

    async def on_event(self, inputs: Any, event_id: str | None = None) -> str | None:
        raise NotImplementedError(f"{self.name} does not accept events")

    async def on_internal_message(self, body: dict[str, Any]) -> None:
        raise NotImplementedError(f"{self.name} does not handle internal messages")

    async def on_timer(self, timer: Timer) -> None:
        raise NotImplementedError(f"{self.name} does not handle timers")

    def _block_config(self) -> dict[str, Any]:
        return self.config.model_dump(mode="json")

    async def send_to_self(self, body: dict[str, Any]) -> None:
        await self.substrate.messaging.send(
            InternalMessage(operation=self.name, block_config=self._block_config(), body=body)
        )

    async def schedule(
        self,
        delay_seconds: float,
        payload: dict[str, Any],
        *,
        pending_id: str | None = None,
        description: str = "",
    ) -> Timer:
        return await self.substrate.timers.set(
            delay_seconds,
            operation=self.name,
            block_config=self._block_config(),
            payload=payload,
            pending_id=pending_id,
            description=description,
        )

    @asynccontextmanager
    async def cancel_on_error(self, pending_id: str, label: str) -> AsyncIterator[None]:
        """Cancel the pending operation and re-raise if the body fails."""
        try:
            yield
        except Exception as e:
            logger.warning(
                "pending_operation_cancelled",
                operation=self.name,
                pending_id=pending_id,
                error=describe_error(e),
            )
            await self.cancel_pending(pending_id, f"{label}: {describe_error(e)}")
            raise

    async def cancel_pending(self, pending_id: str, reason: str) -> None:
        """Cancel a pending operation; a failing store is logged, not raised."""
        try:
            await self.events.cancel(pending_id, reason)
        except Exception:
            logger.exception(
                "pending_operation_cancel_failed",
                operation=self.name,
                pending_id=pending_id,
                reason=reason,
            )
