"""Unit tests for conversation history storage."""

from datetime import UTC, datetime, timedelta

from assistant_sync.models.remote import ChatMessage
from assistant_sync.services.conversation_store import ConversationStore
from assistant_sync.services.substrate import InMemoryKeyValueStore


class TestConversationStore:
    async def test_save_and_get(self):
        store = ConversationStore(InMemoryKeyValueStore(), namespace="simple_chat:bot")
        messages = [
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="assistant", content="hello"),
        ]

        await store.save("c1", messages, ttl_seconds=60)

        assert await store.get("c1") == messages
        assert await store.get("c2") is None

    async def test_namespaces_are_isolated(self):
        kv = InMemoryKeyValueStore()
        await ConversationStore(kv, "simple_chat:a").save(
            "c1", [ChatMessage(role="user", content="hi")], ttl_seconds=60
        )

        assert await ConversationStore(kv, "simple_chat:b").get("c1") is None

    async def test_expired_history_reads_as_missing(self):
        now = datetime(2026, 1, 1, tzinfo=UTC)
        clock = {"now": now}
        kv = InMemoryKeyValueStore(now_provider=lambda: clock["now"])
        store = ConversationStore(kv, "simple_chat:bot")
        await store.save("c1", [ChatMessage(role="user", content="hi")], ttl_seconds=3600)

        clock["now"] = now + timedelta(seconds=3600)

        assert await store.get("c1") is None

    async def test_unreadable_history_reads_as_missing(self):
        kv = InMemoryKeyValueStore()
        await kv.set("simple_chat:bot:conversation:c1", [{"role": "system", "content": "x"}])

        assert await ConversationStore(kv, "simple_chat:bot").get("c1") is None
