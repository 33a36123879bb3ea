"""
Routes host triggers to actions.

An action instance is rebuilt from its block configuration on every trigger
(event, internal message, timer); nothing is kept in memory between them.
"""

from collections.abc import Callable
from typing import Any

import structlog

from assistant_sync.config import Settings
from assistant_sync.models.operations import InternalMessage, Timer
from assistant_sync.operations.base import Operation
from assistant_sync.operations.chat import RawChatOperation, SimpleChatOperation
from assistant_sync.operations.files import DeleteFileOperation, ListFilesOperation
from assistant_sync.operations.retrieve_snippets import RetrieveSnippetsOperation
from assistant_sync.operations.update_assistant import UpdateAssistantOperation
from assistant_sync.operations.upload_file import UploadFileOperation
from assistant_sync.services.pinecone_client import AssistantService
from assistant_sync.services.substrate import Substrate

logger = structlog.get_logger(__name__)

OPERATIONS: dict[str, type[Operation]] = {
    op.name: op
    for op in (
        UploadFileOperation,
        SimpleChatOperation,
        RawChatOperation,
        UpdateAssistantOperation,
        DeleteFileOperation,
        ListFilesOperation,
        RetrieveSnippetsOperation,
    )
}


class UnknownOperationError(LookupError):
    """No action is registered under the requested name."""


class OperationDispatcher:
    """Builds actions from block config and invokes the requested stage."""

    def __init__(
        self,
        substrate: Substrate,
        service_factory: Callable[[], AssistantService],
        settings: Settings,
    ) -> None:
        self.substrate = substrate
        self.service_factory = service_factory
        self.settings = settings

    def build(self, operation: str, block_config: dict[str, Any]) -> Operation:
        """
        Instantiate an action.

        Raises:
            UnknownOperationError: operation is not registered.
            pydantic.ValidationError: block_config does not match the action.
        """
        operation_cls = OPERATIONS.get(operation)
        if operation_cls is None:
            raise UnknownOperationError(operation)
        config = operation_cls.config_model.model_validate(block_config)
        return operation_cls(config, self.service_factory(), self.substrate, self.settings)

    async def handle_event(
        self,
        operation: str,
        block_config: dict[str, Any],
        inputs: dict[str, Any],
        event_id: str | None = None,
    ) -> str | None:
        action = self.build(operation, block_config)
        parsed = action.input_model.model_validate(inputs)
        logger.info("operation_event", operation=operation, event_id=event_id)
        return await action.on_event(parsed, event_id=event_id)

    async def handle_message(self, message: InternalMessage) -> None:
        action = self.build(message.operation, message.block_config)
        logger.debug("operation_message", operation=message.operation)
        await action.on_internal_message(message.body)

    async def handle_timer(self, timer: Timer) -> None:
        action = self.build(timer.operation, timer.block_config)
        logger.debug("operation_timer", operation=timer.operation, timer_id=timer.timer_id)
        await action.on_timer(timer)
