"""
Assistant reconciler.

Cycle decision (in priority order):

  no status signal         -> CREATE       create remotely, in_progress, short delay
  status Initializing      -> POLL         describe; Ready -> ready, still
                                           initializing -> in_progress, else failed
  status Ready             -> CHECK_DRIFT  describe; not Ready -> failed (Initializing
                                           -> in_progress), else update changed
                                           fields only, ready
  anything else            -> REJECT       failed with diagnostic

Drift is detected by reading the live assistant and comparing its
instructions and metadata against the declared values, since the remote
side is the source of truth for an assistant.
"""

from enum import Enum
from typing import Any

import structlog

from assistant_sync.config import ReconcileConfig
from assistant_sync.constants import ASSISTANT_INITIALIZING, ASSISTANT_READY
from assistant_sync.models.remote import RemoteAssistant
from assistant_sync.models.resources import (
    AssistantConfig,
    AssistantSignals,
    DrainResult,
    LifecycleStatus,
    SyncResult,
)
from assistant_sync.services.pinecone_client import AssistantService, RemoteNotFoundError

logger = structlog.get_logger(__name__)


class AssistantAction(str, Enum):
    """What one assistant reconciliation cycle does."""

    CREATE = "create"
    POLL = "poll"
    CHECK_DRIFT = "check_drift"
    REJECT = "reject"


_FAILURE_LABELS = {
    AssistantAction.CREATE: "Creation failed",
    AssistantAction.POLL: "Status check failed",
    AssistantAction.CHECK_DRIFT: "Update failed",
}


def plan_assistant_sync(signals: AssistantSignals) -> AssistantAction:
    """Select the action for a cycle from the persisted signals."""
    if not signals.status:
        return AssistantAction.CREATE
    if signals.status == ASSISTANT_INITIALIZING:
        return AssistantAction.POLL
    if signals.status == ASSISTANT_READY:
        return AssistantAction.CHECK_DRIFT
    return AssistantAction.REJECT


def changed_fields(config: AssistantConfig, remote: RemoteAssistant) -> dict[str, Any]:
    """Return the declared fields that differ from the remote assistant."""
    changes: dict[str, Any] = {}
    if (remote.instructions or "") != config.instructions:
        changes["instructions"] = config.instructions
    if (remote.metadata or {}) != config.metadata:
        changes["metadata"] = config.metadata
    return changes


class AssistantReconciler:
    """Reconciles a declared assistant against the remote service."""

    def __init__(self, service: AssistantService, config: ReconcileConfig | None = None) -> None:
        self.service = service
        self.config = config or ReconcileConfig()

    async def sync(self, config: AssistantConfig, signals: AssistantSignals) -> SyncResult:
        """
        Run one reconciliation cycle.

        Never raises: remote errors become a failed result.

        Args:
            config: Declared assistant configuration.
            signals: Signals persisted by the previous cycle.

        Returns:
            SyncResult for the host to persist.
        """
        action = plan_assistant_sync(signals)
        log = logger.bind(assistant=config.name, action=action.value)

        if action == AssistantAction.REJECT:
            log.error("assistant_unknown_status", status=signals.status)
            return SyncResult(
                new_status=LifecycleStatus.FAILED,
                custom_status_description=f"Unknown status: {signals.status}",
            )

        try:
            if action == AssistantAction.CREATE:
                return await self._create(config)
            if action == AssistantAction.POLL:
                return await self._poll(config)
            return await self._apply_drift(config)
        except Exception as e:
            log.exception("assistant_sync_failed")
            return SyncResult(
                new_status=LifecycleStatus.FAILED,
                custom_status_description=f"{_FAILURE_LABELS[action]}: {e}",
            )

    async def _create(self, config: AssistantConfig) -> SyncResult:
        # If the previous cycle created the assistant but its signals were
        # never persisted, this issues a second create. There is no dedup key
        # to prevent it; the remote rejects the duplicate name and the cycle
        # fails, which needs manual correction.
        remote = await self.service.create_assistant(
            name=config.name,
            instructions=config.instructions,
            metadata=config.metadata,
            region=config.region.value,
        )
        logger.info("assistant_created", assistant=config.name, status=remote.status)
        return SyncResult(
            new_status=LifecycleStatus.IN_PROGRESS,
            signal_updates={"status": remote.status, "host": remote.host, "name": config.name},
            custom_status_description="Initializing...",
            next_schedule_delay=self.config.assistant_create_delay_seconds,
        )

    async def _poll(self, config: AssistantConfig) -> SyncResult:
        remote = await self.service.describe_assistant(config.name)
        signal_updates = {"status": remote.status, "host": remote.host}

        if remote.status == ASSISTANT_READY:
            logger.info("assistant_ready", assistant=config.name, host=remote.host)
            return SyncResult(new_status=LifecycleStatus.READY, signal_updates=signal_updates)

        if remote.status == ASSISTANT_INITIALIZING:
            return SyncResult(
                new_status=LifecycleStatus.IN_PROGRESS,
                signal_updates=signal_updates,
                custom_status_description="Still initializing...",
                next_schedule_delay=self.config.assistant_poll_delay_seconds,
            )

        logger.error("assistant_remote_failed", assistant=config.name, status=remote.status)
        return SyncResult(
            new_status=LifecycleStatus.FAILED,
            signal_updates=signal_updates,
            custom_status_description=f"Assistant failed: {remote.status}",
        )

    async def _apply_drift(self, config: AssistantConfig) -> SyncResult:
        remote = await self.service.describe_assistant(config.name)
        if remote.status == ASSISTANT_INITIALIZING:
            return SyncResult(
                new_status=LifecycleStatus.IN_PROGRESS,
                signal_updates={"status": remote.status},
                custom_status_description="Still initializing...",
                next_schedule_delay=self.config.assistant_poll_delay_seconds,
            )
        if remote.status != ASSISTANT_READY:
            # The Ready signal is kept, so the next cycle checks again and
            # recovers if the remote does.
            logger.error("assistant_no_longer_ready", assistant=config.name, status=remote.status)
            return SyncResult(
                new_status=LifecycleStatus.FAILED,
                custom_status_description=f"Assistant is {remote.status}",
            )
        changes = changed_fields(config, remote)
        if changes:
            await self.service.update_assistant(config.name, **changes)
            logger.info("assistant_updated", assistant=config.name, fields=sorted(changes))
        return SyncResult(new_status=LifecycleStatus.READY)

    async def drain(self, config: AssistantConfig, signals: AssistantSignals) -> DrainResult:
        """
        Delete the assistant.

        An assistant that is already gone counts as drained.
        """
        try:
            await self.service.delete_assistant(config.name)
        except RemoteNotFoundError:
            logger.info("assistant_already_deleted", assistant=config.name)
        except Exception as e:
            logger.exception("assistant_drain_failed", assistant=config.name)
            return DrainResult(
                new_status=LifecycleStatus.DRAINING_FAILED,
                custom_status_description=f"Failed to delete assistant: {e}",
            )
        return DrainResult(new_status=LifecycleStatus.DRAINED)
