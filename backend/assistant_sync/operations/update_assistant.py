"""Update an assistant's instructions and/or metadata."""

import structlog
from pydantic import BaseModel, Field

from assistant_sync.operations.base import Operation

logger = structlog.get_logger(__name__)


class UpdateAssistantConfig(BaseModel):
    assistant_name: str = Field(min_length=1)


class UpdateAssistantInput(BaseModel):
    instructions: str | None = None
    metadata: dict[str, str] | None = None


class UpdateAssistantOperation(Operation):
    name = "update_assistant"
    config_model = UpdateAssistantConfig
    input_model = UpdateAssistantInput

    async def on_event(self, inputs: UpdateAssistantInput, event_id: str | None = None) -> str:
        """
        Apply the provided fields, then report the assistant's current state.

        Raises:
            ValueError: Neither instructions nor metadata given. Raised before
                any pending operation or remote call.
        """
        if not inputs.instructions and inputs.metadata is None:
            raise ValueError("At least one of instructions or metadata must be provided")

        assistant_name = self.config.assistant_name
        pending_id = await self.events.create_pending(
            status_description="Updating assistant...",
            event={"assistant_name": assistant_name},
            parent_event_id=event_id,
        )

        async with self.cancel_on_error(pending_id, "Update failed"):
            await self.service.update_assistant(
                assistant_name,
                instructions=inputs.instructions,
                metadata=inputs.metadata,
            )
            updated = await self.service.describe_assistant(assistant_name)
            await self.events.complete(
                pending_id,
                {
                    "assistant_name": assistant_name,
                    "instructions": updated.instructions,
                    "metadata": updated.metadata,
                    "status": updated.status,
                    "updated": True,
                },
                parent_event_id=event_id,
            )

        logger.info("assistant_update_action_done", assistant=assistant_name)
        return pending_id
