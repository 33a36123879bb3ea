"""Conversation history for the simple chat action.

Histories are stored in the key-value substrate under a per-block namespace
and expire after the block's TTL. An unknown or expired conversation id reads
as None, which callers treat as a fresh conversation.
"""

import structlog
from pydantic import ValidationError

from assistant_sync.models.remote import ChatMessage
from assistant_sync.services.substrate import KeyValueStore

logger = structlog.get_logger(__name__)


class ConversationStore:
    """Keyed, TTL'd message history."""

    def __init__(self, kv: KeyValueStore, namespace: str) -> None:
        self.kv = kv
        self.namespace = namespace

    def _key(self, conversation_id: str) -> str:
        return f"{self.namespace}:conversation:{conversation_id}"

    async def get(self, conversation_id: str) -> list[ChatMessage] | None:
        raw = await self.kv.get(self._key(conversation_id))
        if raw is None:
            return None
        try:
            return [ChatMessage.model_validate(m) for m in raw]
        except (TypeError, ValidationError):
            # Unreadable history is dropped rather than failing the turn.
            logger.warning("conversation_history_unreadable", conversation_id=conversation_id)
            return None

    async def save(
        self, conversation_id: str, messages: list[ChatMessage], ttl_seconds: int
    ) -> None:
        await self.kv.set(
            self._key(conversation_id),
            [m.model_dump() for m in messages],
            ttl_seconds=ttl_seconds,
        )
