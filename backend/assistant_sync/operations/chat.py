"""
Chat actions.

Both actions split into an accept stage (register a pending operation, send
an internal message) and a perform stage (one remote chat call, resolve the
pending operation once). The accept stage returns without waiting on the
remote service; the message body is the only state handed across.

Simple chat keeps the conversation history in the key-value store. The
user's turn is persisted before dispatch; the assistant's reply only after a
successful response. Failures are reported on the ``assistant_error`` output.

Raw chat forwards the caller's full message list and the block's advanced
options, and propagates failures.
"""

import asyncio
import uuid
from typing import Annotated, Any

import structlog
from pydantic import AfterValidator, BaseModel, Field

from assistant_sync.constants import ASSISTANT_ERROR_OUTPUT, CHAT_MODELS, MAX_TOP_K
from assistant_sync.models.remote import ChatMessage, ContextOptions
from assistant_sync.operations.base import Operation, describe_error
from assistant_sync.services.conversation_store import ConversationStore

logger = structlog.get_logger(__name__)


def _validate_model(value: str) -> str:
    if value not in CHAT_MODELS:
        raise ValueError(f"Unsupported model '{value}'")
    return value


ChatModel = Annotated[str, AfterValidator(_validate_model)]


def reply_from(response: dict[str, Any]) -> ChatMessage:
    """Extract the assistant turn from a chat response."""
    message = response.get("message") or {}
    return ChatMessage(role="assistant", content=message.get("content") or "")


# ---------------------------------------------------------------------------
# simple chat
# ---------------------------------------------------------------------------


class SimpleChatConfig(BaseModel):
    assistant_name: str = Field(min_length=1)
    model: ChatModel = "gpt-4o"
    ttl: int | None = Field(default=None, ge=1)
    timeout: float | None = Field(default=None, gt=0)


class SimpleChatInput(BaseModel):
    user_message: str = Field(min_length=1)
    conversation_id: str | None = None


class SimpleChatMessage(BaseModel):
    conversation_id: str
    continued: bool
    messages: list[ChatMessage]
    pending_id: str
    parent_event_id: str | None = None


class SimpleChatOperation(Operation):
    name = "simple_chat"
    config_model = SimpleChatConfig
    input_model = SimpleChatInput

    @property
    def conversations(self) -> ConversationStore:
        return ConversationStore(
            self.substrate.kv, namespace=f"{self.name}:{self.config.assistant_name}"
        )

    @property
    def ttl(self) -> int:
        return self.config.ttl or self.settings.chat.conversation_ttl_seconds

    @property
    def timeout(self) -> float:
        return self.config.timeout or self.settings.chat.timeout_seconds

    async def on_event(self, inputs: SimpleChatInput, event_id: str | None = None) -> str:
        conversation_id = inputs.conversation_id
        messages: list[ChatMessage] = []
        continued = False

        if conversation_id:
            existing = await self.conversations.get(conversation_id)
            if existing is not None:
                messages = existing
                continued = True
        else:
            conversation_id = str(uuid.uuid4())

        messages.append(ChatMessage(role="user", content=inputs.user_message))
        await self.conversations.save(conversation_id, messages, self.ttl)

        pending_id = await self.events.create_pending(
            status_description="Assistant response in progress",
            event={"conversation_id": conversation_id, "continued": continued},
            parent_event_id=event_id,
        )

        async with self.cancel_on_error(pending_id, "Dispatch failed"):
            await self.send_to_self(
                SimpleChatMessage(
                    conversation_id=conversation_id,
                    continued=continued,
                    messages=messages,
                    pending_id=pending_id,
                    parent_event_id=event_id,
                ).model_dump()
            )
        return pending_id

    async def on_internal_message(self, body: dict[str, Any]) -> None:
        request = SimpleChatMessage.model_validate(body)
        log = logger.bind(conversation_id=request.conversation_id, pending_id=request.pending_id)

        try:
            response = await asyncio.wait_for(
                self.service.chat(
                    self.config.assistant_name,
                    [m.model_dump() for m in request.messages],
                    self.config.model,
                ),
                timeout=self.timeout,
            )
            reply = reply_from(response)
            await self.conversations.save(
                request.conversation_id, [*request.messages, reply], self.ttl
            )
            await self.events.complete(
                request.pending_id,
                {
                    "response": reply.content,
                    "conversation_id": request.conversation_id,
                    "continued": request.continued,
                },
                parent_event_id=request.parent_event_id,
            )
        except Exception as e:
            log.exception("simple_chat_failed")
            await self.cancel_pending(
                request.pending_id, f"Processing error: {describe_error(e)}"
            )
            await self.events.emit(
                {"error": describe_error(e), "conversation_id": request.conversation_id},
                output_id=ASSISTANT_ERROR_OUTPUT,
                parent_event_id=request.parent_event_id,
            )


# ---------------------------------------------------------------------------
# raw chat
# ---------------------------------------------------------------------------


class RawChatConfig(BaseModel):
    assistant_name: str = Field(min_length=1)
    model: ChatModel = "gpt-4o"
    temperature: float | None = Field(default=None, ge=0, le=1)
    filter: dict[str, Any] | None = None
    json_response: bool = False
    include_highlights: bool = False
    top_k: int | None = Field(default=None, ge=1, le=MAX_TOP_K)
    context_options: ContextOptions | None = None
    timeout: float | None = Field(default=None, gt=0)


class RawChatInput(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)


class RawChatMessage(BaseModel):
    messages: list[ChatMessage]
    pending_id: str
    parent_event_id: str | None = None


def build_chat_options(config: RawChatConfig) -> dict[str, Any]:
    """Keyword options for the remote chat call; only the ones that are set."""
    options: dict[str, Any] = {}
    if config.temperature is not None:
        options["temperature"] = config.temperature
    if config.filter:
        options["filter"] = config.filter
    if config.json_response:
        options["json_response"] = True
    if config.include_highlights:
        options["include_highlights"] = True
    context_options: dict[str, Any] = {}
    if config.context_options is not None:
        context_options = config.context_options.model_dump(exclude_none=True)
    # The chat call takes top_k only inside context_options.
    if config.top_k is not None:
        context_options["top_k"] = config.top_k
    if context_options:
        options["context_options"] = context_options
    return options


class RawChatOperation(Operation):
    name = "raw_chat"
    config_model = RawChatConfig
    input_model = RawChatInput

    async def on_event(self, inputs: RawChatInput, event_id: str | None = None) -> str:
        pending_id = await self.events.create_pending(
            status_description="Assistant response in progress",
            parent_event_id=event_id,
        )
        async with self.cancel_on_error(pending_id, "Dispatch failed"):
            await self.send_to_self(
                RawChatMessage(
                    messages=inputs.messages, pending_id=pending_id, parent_event_id=event_id
                ).model_dump()
            )
        return pending_id

    async def on_internal_message(self, body: dict[str, Any]) -> None:
        request = RawChatMessage.model_validate(body)

        async with self.cancel_on_error(request.pending_id, "Processing error"):
            response = await asyncio.wait_for(
                self.service.chat(
                    self.config.assistant_name,
                    [m.model_dump() for m in request.messages],
                    self.config.model,
                    **build_chat_options(self.config),
                ),
                timeout=self.config.timeout or self.settings.chat.timeout_seconds,
            )
            await self.events.complete(
                request.pending_id, response, parent_event_id=request.parent_event_id
            )
