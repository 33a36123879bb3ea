"""
Supabase-backed substrate stores.

Tables (names configurable via StorageConfig):

  block_kv            key text pk, value jsonb, expires_at timestamptz null
  pending_operations  pending_id text pk, output_id, status_description,
                      event jsonb, parent_event_id, status, result jsonb,
                      failure_reason, created_at, updated_at
  emitted_events      event_id text pk, output_id, payload jsonb,
                      parent_event_id, pending_id, created_at
"""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from assistant_sync.constants import DEFAULT_OUTPUT
from assistant_sync.models.operations import PendingOperation, PendingStatus

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SupabaseKeyValueStore:
    """Key-value slots in a Supabase table. Expiry is checked on read."""

    def __init__(
        self,
        client: AsyncSupabaseClient,
        table: str,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.table = table
        self._now = now_provider or _utcnow

    async def get(self, key: str) -> Any | None:
        response = (
            await self.client.table(self.table)
            .select("value, expires_at")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        expires_at = rows[0].get("expires_at")
        if expires_at and datetime.fromisoformat(expires_at) <= self._now():
            return None
        return rows[0].get("value")

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        expires_at = None
        if ttl_seconds is not None:
            expires_at = (self._now() + timedelta(seconds=ttl_seconds)).isoformat()
        await (
            self.client.table(self.table)
            .upsert({"key": key, "value": value, "expires_at": expires_at}, on_conflict="key")
            .execute()
        )

    async def delete(self, key: str) -> None:
        await self.client.table(self.table).delete().eq("key", key).execute()


class SupabasePendingEventStore:
    """Pending operations and emitted events in Supabase.

    Resolution is a conditional update on ``status = 'pending'``, so a second
    complete/cancel matches no row and reports False.
    """

    def __init__(
        self,
        client: AsyncSupabaseClient,
        pending_table: str,
        events_table: str,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.pending_table = pending_table
        self.events_table = events_table
        self._now = now_provider or _utcnow

    async def create_pending(
        self,
        *,
        status_description: str,
        event: dict[str, Any] | None = None,
        output_id: str = DEFAULT_OUTPUT,
        parent_event_id: str | None = None,
    ) -> str:
        now = self._now()
        operation = PendingOperation(
            pending_id=str(uuid.uuid4()),
            output_id=output_id,
            status_description=status_description,
            event=event or {},
            parent_event_id=parent_event_id,
            created_at=now,
            updated_at=now,
        )
        await (
            self.client.table(self.pending_table)
            .insert(operation.model_dump(mode="json"))
            .execute()
        )
        return operation.pending_id

    async def update_pending(self, pending_id: str, *, status_description: str) -> None:
        response = (
            await self.client.table(self.pending_table)
            .update(
                {
                    "status_description": status_description,
                    "updated_at": self._now().isoformat(),
                }
            )
            .eq("pending_id", pending_id)
            .eq("status", PendingStatus.PENDING.value)
            .execute()
        )
        if not response.data:
            logger.warning("pending_update_ignored", pending_id=pending_id)

    async def _resolve(self, pending_id: str, updates: dict[str, Any]) -> dict | None:
        updates["updated_at"] = self._now().isoformat()
        response = (
            await self.client.table(self.pending_table)
            .update(updates)
            .eq("pending_id", pending_id)
            .eq("status", PendingStatus.PENDING.value)
            .execute()
        )
        rows = response.data or []
        if not rows:
            logger.warning("pending_operation_already_resolved", pending_id=pending_id)
            return None
        return rows[0]

    async def complete(
        self,
        pending_id: str,
        payload: dict[str, Any],
        *,
        parent_event_id: str | None = None,
    ) -> bool:
        row = await self._resolve(
            pending_id,
            {"status": PendingStatus.COMPLETED.value, "result": payload},
        )
        if row is None:
            return False

        await self._insert_event(
            payload,
            output_id=row.get("output_id") or DEFAULT_OUTPUT,
            parent_event_id=parent_event_id or row.get("parent_event_id"),
            pending_id=pending_id,
        )
        return True

    async def cancel(self, pending_id: str, reason: str) -> bool:
        row = await self._resolve(
            pending_id,
            {"status": PendingStatus.CANCELLED.value, "failure_reason": reason},
        )
        return row is not None

    async def emit(
        self,
        payload: dict[str, Any],
        *,
        output_id: str = DEFAULT_OUTPUT,
        parent_event_id: str | None = None,
    ) -> str:
        return await self._insert_event(
            payload, output_id=output_id, parent_event_id=parent_event_id
        )

    async def _insert_event(
        self,
        payload: dict[str, Any],
        *,
        output_id: str,
        parent_event_id: str | None,
        pending_id: str | None = None,
    ) -> str:
        event_id = str(uuid.uuid4())
        await (
            self.client.table(self.events_table)
            .insert(
                {
                    "event_id": event_id,
                    "output_id": output_id,
                    "payload": payload,
                    "parent_event_id": parent_event_id,
                    "pending_id": pending_id,
                    "created_at": self._now().isoformat(),
                }
            )
            .execute()
        )
        return event_id

    async def get(self, pending_id: str) -> PendingOperation | None:
        response = (
            await self.client.table(self.pending_table)
            .select("*")
            .eq("pending_id", pending_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        return PendingOperation.model_validate(rows[0])
