"""
Pinecone Assistant API wrapper.

The reconcilers and actions talk to the remote service only through the
``AssistantService`` protocol, so tests substitute a fake and never reach the
network. ``PineconeAssistantService`` implements it on the synchronous
``pinecone`` SDK, running each call in a worker thread.

Every call goes through the ``pc.assistant`` namespace with the assistant
name as a keyword; there are no per-assistant handles to resolve or cache.
Long-running SDK calls (create, upload, delete) are issued with ``timeout=-1``
so the SDK returns immediately; waiting is the reconciler's job.

Usage:
    service = get_assistant_service(api_key="...")
    assistant = await service.describe_assistant("support-bot")
"""

import asyncio
import dataclasses
from collections.abc import Callable
from functools import lru_cache
from typing import Any, Protocol

import structlog
from pinecone import Pinecone
from pinecone.exceptions import NotFoundException

from assistant_sync.models.remote import RemoteAssistant, RemoteFile

logger = structlog.get_logger(__name__)

# SDK sentinel: return as soon as the request is accepted.
_NO_WAIT = -1


class RemoteServiceError(Exception):
    """A remote call failed (network, 4xx/5xx, malformed response)."""


class RemoteNotFoundError(RemoteServiceError):
    """The remote object does not exist."""


class MissingApiKeyError(ValueError):
    """No API key is configured for the remote service."""


class AssistantService(Protocol):
    """Capabilities consumed from the remote assistant service."""

    async def list_assistants(self) -> list[RemoteAssistant]:
        """List assistants visible to the API key."""

    async def create_assistant(
        self, name: str, instructions: str, metadata: dict[str, str], region: str
    ) -> RemoteAssistant:
        """Start creating an assistant. Returns before it is ready."""

    async def describe_assistant(self, name: str) -> RemoteAssistant:
        """Fetch an assistant's current state."""

    async def update_assistant(
        self,
        name: str,
        instructions: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Update only the provided fields."""

    async def delete_assistant(self, name: str) -> None:
        """Delete an assistant."""

    async def upload_file(
        self, assistant_name: str, path: str, metadata: dict[str, str]
    ) -> RemoteFile:
        """Upload a local file. Returns before processing completes."""

    async def describe_file(self, assistant_name: str, file_id: str) -> RemoteFile:
        """Fetch a file's processing state."""

    async def delete_file(self, assistant_name: str, file_id: str) -> None:
        """Delete a file."""

    async def list_files(self, assistant_name: str) -> list[RemoteFile]:
        """List files attached to an assistant."""

    async def chat(
        self,
        assistant_name: str,
        messages: list[dict[str, str]],
        model: str,
        **options: Any,
    ) -> dict[str, Any]:
        """Run one chat completion against the assistant."""

    async def context(
        self,
        assistant_name: str,
        messages: list[dict[str, str]],
        top_k: int | None = None,
        filter: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Retrieve context snippets for the given messages."""


def to_plain(value: Any) -> Any:
    """Convert SDK response objects into JSON-compatible plain data."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_plain(to_dict())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_plain(dataclasses.asdict(value))
    if hasattr(value, "__dict__"):
        return {
            k: to_plain(v) for k, v in vars(value).items() if not k.startswith("_")
        }
    return str(value)


def _is_not_found(error: Exception) -> bool:
    if isinstance(error, NotFoundException):
        return True
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    return status == 404


def _assistant_from(obj: Any) -> RemoteAssistant:
    data = to_plain(obj)
    return RemoteAssistant(
        name=data.get("name", ""),
        status=str(data.get("status", "")),
        host=data.get("host"),
        instructions=data.get("instructions"),
        metadata=data.get("metadata"),
    )


def _file_from(obj: Any) -> RemoteFile:
    data = to_plain(obj)
    return RemoteFile(
        id=str(data.get("id", "")),
        name=data.get("name"),
        status=str(data.get("status", "")),
        metadata=data.get("metadata"),
        percent_done=data.get("percent_done"),
        error_message=data.get("error_message"),
        signed_url=data.get("signed_url"),
        created_on=_as_str(data.get("created_on")),
        updated_on=_as_str(data.get("updated_on")),
    )


def _as_str(value: Any) -> str | None:
    return None if value is None else str(value)


class PineconeAssistantService:
    """Encapsulates the pinecone SDK calls used by reconcilers and actions."""

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise MissingApiKeyError("Pinecone API key is required")
        self._client = Pinecone(api_key=api_key)

    async def _call(self, method: str, /, **kwargs: Any) -> Any:
        """Run ``pc.assistant.<method>(**kwargs)`` in a worker thread."""
        return await self._run(
            method, lambda: getattr(self._client.assistant, method)(**kwargs)
        )

    async def _run(self, operation: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except Exception as e:
            if _is_not_found(e):
                raise RemoteNotFoundError(f"{operation}: not found") from e
            logger.warning("pinecone_call_failed", operation=operation, error=str(e))
            raise RemoteServiceError(f"{operation} failed: {e}") from e

    async def list_assistants(self) -> list[RemoteAssistant]:
        result = await self._call("list_assistants")
        return [_assistant_from(a) for a in result or []]

    async def create_assistant(
        self, name: str, instructions: str, metadata: dict[str, str], region: str
    ) -> RemoteAssistant:
        result = await self._call(
            "create_assistant",
            assistant_name=name,
            instructions=instructions,
            metadata=metadata,
            region=region,
            timeout=_NO_WAIT,
        )
        return _assistant_from(result)

    async def describe_assistant(self, name: str) -> RemoteAssistant:
        result = await self._call("describe_assistant", assistant_name=name)
        return _assistant_from(result)

    async def update_assistant(
        self,
        name: str,
        instructions: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        params: dict[str, Any] = {"assistant_name": name}
        if instructions is not None:
            params["instructions"] = instructions
        if metadata is not None:
            params["metadata"] = metadata
        await self._call("update_assistant", **params)

    async def delete_assistant(self, name: str) -> None:
        await self._call("delete_assistant", assistant_name=name, timeout=_NO_WAIT)

    async def upload_file(
        self, assistant_name: str, path: str, metadata: dict[str, str]
    ) -> RemoteFile:
        result = await self._call(
            "upload_file",
            assistant_name=assistant_name,
            file_path=path,
            metadata=metadata,
            timeout=_NO_WAIT,
        )
        return _file_from(result)

    async def describe_file(self, assistant_name: str, file_id: str) -> RemoteFile:
        result = await self._call(
            "describe_file", assistant_name=assistant_name, file_id=file_id
        )
        return _file_from(result)

    async def delete_file(self, assistant_name: str, file_id: str) -> None:
        await self._call(
            "delete_file", assistant_name=assistant_name, file_id=file_id, timeout=_NO_WAIT
        )

    async def list_files(self, assistant_name: str) -> list[RemoteFile]:
        # The SDK pages lazily; drain it inside the worker thread.
        result = await self._run(
            "list_files",
            lambda: list(self._client.assistant.list_files(assistant_name=assistant_name)),
        )
        return [_file_from(f) for f in result]

    async def chat(
        self,
        assistant_name: str,
        messages: list[dict[str, str]],
        model: str,
        **options: Any,
    ) -> dict[str, Any]:
        result = await self._call(
            "chat", assistant_name=assistant_name, messages=messages, model=model, **options
        )
        return to_plain(result)

    async def context(
        self,
        assistant_name: str,
        messages: list[dict[str, str]],
        top_k: int | None = None,
        filter: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"assistant_name": assistant_name, "messages": messages}
        if top_k is not None:
            params["top_k"] = top_k
        if filter:
            params["filter"] = filter
        result = await self._call("context", **params)
        return to_plain(result)


@lru_cache(maxsize=16)
def get_assistant_service(api_key: str) -> PineconeAssistantService:
    """
    Return the assistant service for an API key.

    Services are cached per key; there is no process-wide client.

    Args:
        api_key: Pinecone API key.

    Returns:
        PineconeAssistantService bound to that key.
    """
    return PineconeAssistantService(api_key)
