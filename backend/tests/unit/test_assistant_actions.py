"""Unit tests for the update, file management and snippet retrieval actions."""

import pytest
from pydantic import ValidationError

from assistant_sync.models.operations import PendingStatus
from assistant_sync.services.pinecone_client import RemoteNotFoundError, RemoteServiceError

BLOCK = {"assistant_name": "support-bot"}


class TestUpdateAssistant:
    async def test_updates_and_reports_current_state(self, dispatcher, substrate, fake_service):
        fake_service.add_assistant("support-bot", instructions="Old", metadata={"team": "a"})

        pending_id = await dispatcher.handle_event(
            "update_assistant", BLOCK, {"instructions": "New instructions"}, event_id="evt-1"
        )

        pending = await substrate.events.get(pending_id)
        assert pending.status == PendingStatus.COMPLETED
        [event] = substrate.events.emitted
        assert event.payload == {
            "assistant_name": "support-bot",
            "instructions": "New instructions",
            "metadata": {"team": "a"},
            "status": "Ready",
            "updated": True,
        }
        _, kwargs = fake_service.calls[0]
        assert kwargs["metadata"] is None

    async def test_metadata_only_update(self, dispatcher, substrate, fake_service):
        fake_service.add_assistant("support-bot", instructions="Keep", metadata={"team": "a"})

        await dispatcher.handle_event("update_assistant", BLOCK, {"metadata": {"team": "b"}})

        [event] = substrate.events.emitted
        assert event.payload["instructions"] == "Keep"
        assert event.payload["metadata"] == {"team": "b"}

    async def test_requires_a_field_before_any_work(self, dispatcher, substrate, fake_service):
        with pytest.raises(ValueError, match="At least one of instructions or metadata"):
            await dispatcher.handle_event("update_assistant", BLOCK, {})

        assert substrate.events.pending == {}
        assert fake_service.calls == []

    async def test_remote_error_cancels_pending(self, dispatcher, substrate, fake_service):
        with pytest.raises(RemoteNotFoundError):
            await dispatcher.handle_event("update_assistant", BLOCK, {"instructions": "New"})

        [pending] = substrate.events.pending.values()
        assert pending.status == PendingStatus.CANCELLED
        assert pending.failure_reason == "Update failed: update_assistant: not found"


class TestDeleteFile:
    async def test_deletes_and_completes(self, dispatcher, substrate, fake_service):
        fake_service.add_file("file-7")

        pending_id = await dispatcher.handle_event("delete_file", BLOCK, {"file_id": "file-7"})

        assert "file-7" not in fake_service.files
        pending = await substrate.events.get(pending_id)
        assert pending.status == PendingStatus.COMPLETED
        assert substrate.events.emitted[0].payload == {"file_id": "file-7"}

    async def test_missing_file_cancels(self, dispatcher, substrate):
        with pytest.raises(RemoteNotFoundError):
            await dispatcher.handle_event("delete_file", BLOCK, {"file_id": "file-7"})

        [pending] = substrate.events.pending.values()
        assert pending.failure_reason == "Delete failed: delete_file: not found"

    async def test_requires_file_id(self, dispatcher):
        with pytest.raises(ValidationError):
            await dispatcher.handle_event("delete_file", BLOCK, {"file_id": ""})


class TestListFiles:
    async def test_lists_files(self, dispatcher, substrate, fake_service):
        fake_service.add_file("file-1", name="a.md")
        fake_service.add_file("file-2", name="b.md", status="Processing")

        await dispatcher.handle_event("list_files", BLOCK, {})

        [event] = substrate.events.emitted
        files = event.payload["files"]
        assert [f["id"] for f in files] == ["file-1", "file-2"]
        assert files[1]["status"] == "Processing"

    async def test_error_cancels(self, dispatcher, substrate, fake_service):
        fake_service.errors["list_files"] = RemoteServiceError("list_files failed: 500")

        with pytest.raises(RemoteServiceError):
            await dispatcher.handle_event("list_files", BLOCK, {})

        [pending] = substrate.events.pending.values()
        assert pending.failure_reason == "List failed: list_files failed: 500"


class TestRetrieveSnippets:
    async def test_returns_snippets_with_messages(self, dispatcher, substrate, fake_service):
        messages = [{"role": "user", "content": "How long do refunds take?"}]

        await dispatcher.handle_event(
            "retrieve_snippets",
            {"assistant_name": "support-bot", "top_k": 4},
            {"messages": messages, "filter": {"topic": "billing"}},
        )

        _, kwargs = fake_service.calls[0]
        assert kwargs["top_k"] == 4
        assert kwargs["filter"] == {"topic": "billing"}
        [event] = substrate.events.emitted
        assert event.payload["snippets"][0]["content"] == "Refunds take 5 days."
        assert event.payload["messages"] == messages

    async def test_default_top_k(self, dispatcher, fake_service):
        await dispatcher.handle_event(
            "retrieve_snippets", BLOCK, {"messages": [{"role": "user", "content": "hi"}]}
        )

        assert fake_service.calls[0][1]["top_k"] == 16

    async def test_top_k_bounds(self, dispatcher):
        with pytest.raises(ValidationError):
            await dispatcher.handle_event(
                "retrieve_snippets",
                {"assistant_name": "support-bot", "top_k": 65},
                {"messages": [{"role": "user", "content": "hi"}]},
            )

    async def test_error_cancels(self, dispatcher, substrate, fake_service):
        fake_service.errors["context"] = RemoteServiceError("context failed: 500")

        with pytest.raises(RemoteServiceError):
            await dispatcher.handle_event(
                "retrieve_snippets", BLOCK, {"messages": [{"role": "user", "content": "hi"}]}
            )

        [pending] = substrate.events.pending.values()
        assert pending.failure_reason == "Context retrieval error: context failed: 500"
