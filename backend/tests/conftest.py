"""
Shared test fixtures for the assistant sync test suite.
"""

import asyncio
import copy
import os
import uuid
from typing import Any

import pytest
import structlog
from fastapi.testclient import TestClient

from assistant_sync.config import Settings
from assistant_sync.models.operations import InternalMessage, Timer
from assistant_sync.models.remote import RemoteAssistant, RemoteFile
from assistant_sync.operations.dispatcher import OperationDispatcher
from assistant_sync.services.pinecone_client import RemoteNotFoundError
from assistant_sync.services.substrate import (
    InMemoryKeyValueStore,
    InMemoryPendingEventStore,
    Substrate,
)


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set required environment variables for tests so Settings can be instantiated."""
    monkeypatch.setenv("PINECONE_API_KEY", "pc-test-fake-key")
    # Never reach a real Supabase project from tests
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_SECRET_KEY", "")


@pytest.fixture(autouse=True)
def _configure_structlog_for_tests():
    """Configure structlog for tests using a simple, deterministic setup."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


class FakeAssistantService:
    """In-memory stand-in for the remote assistant service.

    Records every call, keeps assistants and files in dicts, and raises the
    error registered in ``errors`` for an operation name, if any.
    """

    def __init__(self):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.assistants: dict[str, RemoteAssistant] = {}
        self.files: dict[str, RemoteFile] = {}
        self.errors: dict[str, Exception] = {}
        self.uploaded_content: list[str] = []
        self.uploaded_names: list[str] = []
        self.chat_response: dict[str, Any] = {
            "id": "chat-1",
            "model": "gpt-4o",
            "message": {"role": "assistant", "content": "Hello!"},
            "finish_reason": "stop",
            "citations": [],
        }
        self.context_response: dict[str, Any] = {
            "snippets": [{"type": "text", "content": "Refunds take 5 days.", "score": 0.91}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 0, "total_tokens": 12},
        }
        self.chat_delay: float = 0
        self._file_counter = 0

    def _record(self, operation: str, **kwargs: Any) -> None:
        self.calls.append((operation, kwargs))
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def add_assistant(self, name: str, status: str = "Ready", **fields: Any) -> RemoteAssistant:
        assistant = RemoteAssistant(
            name=name, status=status, host=f"https://{name}.svc.test", **fields
        )
        self.assistants[name] = assistant
        return assistant

    def add_file(self, file_id: str, status: str = "Available", **fields: Any) -> RemoteFile:
        remote = RemoteFile(id=file_id, status=status, **fields)
        self.files[file_id] = remote
        return remote

    def set_file_status(self, file_id: str, status: str, **fields: Any) -> None:
        self.files[file_id] = self.files[file_id].model_copy(update={"status": status, **fields})

    async def list_assistants(self) -> list[RemoteAssistant]:
        self._record("list_assistants")
        return [a.model_copy(deep=True) for a in self.assistants.values()]

    async def create_assistant(self, name, instructions, metadata, region) -> RemoteAssistant:
        self._record(
            "create_assistant",
            name=name,
            instructions=instructions,
            metadata=metadata,
            region=region,
        )
        assistant = self.add_assistant(
            name, status="Initializing", instructions=instructions, metadata=dict(metadata)
        )
        return assistant.model_copy(deep=True)

    async def describe_assistant(self, name) -> RemoteAssistant:
        self._record("describe_assistant", name=name)
        if name not in self.assistants:
            raise RemoteNotFoundError("describe_assistant: not found")
        return self.assistants[name].model_copy(deep=True)

    async def update_assistant(self, name, instructions=None, metadata=None) -> None:
        self._record("update_assistant", name=name, instructions=instructions, metadata=metadata)
        if name not in self.assistants:
            raise RemoteNotFoundError("update_assistant: not found")
        assistant = self.assistants[name]
        if instructions is not None:
            assistant.instructions = instructions
        if metadata is not None:
            assistant.metadata = dict(metadata)

    async def delete_assistant(self, name) -> None:
        self._record("delete_assistant", name=name)
        if name not in self.assistants:
            raise RemoteNotFoundError("delete_assistant: not found")
        del self.assistants[name]

    async def upload_file(self, assistant_name, path, metadata) -> RemoteFile:
        self._record("upload_file", assistant_name=assistant_name, path=path, metadata=metadata)
        with open(path, encoding="utf-8") as f:
            self.uploaded_content.append(f.read())
        self.uploaded_names.append(os.path.basename(path))
        self._file_counter += 1
        remote = self.add_file(
            f"file-{self._file_counter}",
            status="Processing",
            name=os.path.basename(path),
            metadata=dict(metadata),
            percent_done=0.0,
        )
        return remote.model_copy(deep=True)

    async def describe_file(self, assistant_name, file_id) -> RemoteFile:
        self._record("describe_file", assistant_name=assistant_name, file_id=file_id)
        if file_id not in self.files:
            raise RemoteNotFoundError("describe_file: not found")
        return self.files[file_id].model_copy(deep=True)

    async def delete_file(self, assistant_name, file_id) -> None:
        self._record("delete_file", assistant_name=assistant_name, file_id=file_id)
        if file_id not in self.files:
            raise RemoteNotFoundError("delete_file: not found")
        del self.files[file_id]

    async def list_files(self, assistant_name) -> list[RemoteFile]:
        self._record("list_files", assistant_name=assistant_name)
        return [f.model_copy(deep=True) for f in self.files.values()]

    async def chat(self, assistant_name, messages, model, **options) -> dict[str, Any]:
        self._record(
            "chat",
            assistant_name=assistant_name,
            messages=copy.deepcopy(messages),
            model=model,
            options=options,
        )
        if self.chat_delay:
            await asyncio.sleep(self.chat_delay)
        return copy.deepcopy(self.chat_response)

    async def context(self, assistant_name, messages, top_k=None, filter=None) -> dict[str, Any]:
        self._record(
            "context", assistant_name=assistant_name, messages=messages, top_k=top_k, filter=filter
        )
        return copy.deepcopy(self.context_response)


class RecordingTimerScheduler:
    """Timer scheduler that records timers instead of firing them."""

    def __init__(self):
        self.scheduled: list[Timer] = []

    async def set(
        self,
        delay_seconds,
        *,
        operation,
        block_config,
        payload,
        pending_id=None,
        description="",
    ) -> Timer:
        timer = Timer(
            timer_id=str(uuid.uuid4()),
            operation=operation,
            block_config=copy.deepcopy(block_config),
            payload=copy.deepcopy(payload),
            pending_id=pending_id,
            description=description,
            delay_seconds=delay_seconds,
        )
        self.scheduled.append(timer)
        return timer


class RecordingMessageBus:
    """Message bus that records messages instead of delivering them."""

    def __init__(self):
        self.sent: list[InternalMessage] = []

    async def send(self, message: InternalMessage) -> None:
        self.sent.append(message.model_copy(deep=True))


@pytest.fixture
def fake_service() -> FakeAssistantService:
    return FakeAssistantService()


@pytest.fixture
def substrate() -> Substrate:
    """Substrate with in-memory stores and recording timers/messages."""
    return Substrate(
        events=InMemoryPendingEventStore(),
        timers=RecordingTimerScheduler(),
        messaging=RecordingMessageBus(),
        kv=InMemoryKeyValueStore(),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def dispatcher(substrate, fake_service, settings) -> OperationDispatcher:
    return OperationDispatcher(substrate, lambda: fake_service, settings)


@pytest.fixture
def client() -> TestClient:
    """FastAPI TestClient wrapping the main application."""
    # Clear the lru_cache so settings pick up test env vars
    from assistant_sync.config import get_settings

    get_settings.cache_clear()

    from assistant_sync.main import app

    return TestClient(app)
