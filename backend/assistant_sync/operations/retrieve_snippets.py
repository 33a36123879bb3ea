"""Retrieve context snippets from an assistant without generating a reply."""

from typing import Any

from pydantic import BaseModel, Field

from assistant_sync.constants import DEFAULT_TOP_K, MAX_TOP_K
from assistant_sync.models.remote import ChatMessage
from assistant_sync.operations.base import Operation


class RetrieveSnippetsConfig(BaseModel):
    assistant_name: str = Field(min_length=1)
    top_k: int = Field(default=DEFAULT_TOP_K, ge=1, le=MAX_TOP_K)


class RetrieveSnippetsInput(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    filter: dict[str, Any] | None = None


class RetrieveSnippetsOperation(Operation):
    name = "retrieve_snippets"
    config_model = RetrieveSnippetsConfig
    input_model = RetrieveSnippetsInput

    async def on_event(self, inputs: RetrieveSnippetsInput, event_id: str | None = None) -> str:
        messages = [m.model_dump() for m in inputs.messages]
        pending_id = await self.events.create_pending(
            status_description="Retrieving context snippets...",
            event={"messages": messages},
            parent_event_id=event_id,
        )
        async with self.cancel_on_error(pending_id, "Context retrieval error"):
            response = await self.service.context(
                self.config.assistant_name,
                messages,
                top_k=self.config.top_k,
                filter=inputs.filter,
            )
            await self.events.complete(
                pending_id, {**response, "messages": messages}, parent_event_id=event_id
            )
        return pending_id
