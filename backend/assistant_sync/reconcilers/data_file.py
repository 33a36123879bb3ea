"""
Data file reconciler.

Cycle decision (in priority order):

  no stored fingerprint / file id      -> CREATE    upload, in_progress
  status Processing                    -> POLL      describe until terminal
  fingerprint differs (settled file)   -> RECREATE  delete old file, upload new
  status Available                     -> SETTLE    ready, no remote call
  anything else                        -> REJECT    failed with diagnostic

Drift is detected purely by fingerprint, so a settled file is never read
remotely. A file that failed processing is still recreated once its declared
content changes.
"""

from enum import Enum

import structlog

from assistant_sync.config import ReconcileConfig
from assistant_sync.constants import FILE_AVAILABLE, FILE_PROCESSING
from assistant_sync.models.resources import (
    DataFileConfig,
    DataFileSignals,
    DrainResult,
    LifecycleStatus,
    SyncResult,
)
from assistant_sync.services.fingerprint import content_fingerprint
from assistant_sync.services.pinecone_client import AssistantService, RemoteNotFoundError
from assistant_sync.services.staging import staged_upload

logger = structlog.get_logger(__name__)


class DataFileAction(str, Enum):
    """What one data file reconciliation cycle does."""

    CREATE = "create"
    POLL = "poll"
    RECREATE = "recreate"
    SETTLE = "settle"
    REJECT = "reject"


_FAILURE_LABELS = {
    DataFileAction.CREATE: "Upload failed",
    DataFileAction.RECREATE: "Replace failed",
    DataFileAction.POLL: "Status check failed",
}


def fingerprint_of(config: DataFileConfig) -> str:
    return content_fingerprint(config.content, config.filename, config.metadata)


def plan_data_file_sync(config: DataFileConfig, signals: DataFileSignals) -> DataFileAction:
    """Select the action for a cycle from the declared config and persisted signals."""
    if not signals.content_hash or not signals.file_id:
        return DataFileAction.CREATE
    if signals.status == FILE_PROCESSING:
        return DataFileAction.POLL
    if fingerprint_of(config) != signals.content_hash:
        return DataFileAction.RECREATE
    if signals.status == FILE_AVAILABLE:
        return DataFileAction.SETTLE
    return DataFileAction.REJECT


def _progress(percent_done: float | None) -> str:
    return f"{(percent_done or 0) * 100:.0f}%"


class DataFileReconciler:
    """Reconciles a declared data file against the remote assistant."""

    def __init__(self, service: AssistantService, config: ReconcileConfig | None = None) -> None:
        self.service = service
        self.config = config or ReconcileConfig()

    async def sync(self, config: DataFileConfig, signals: DataFileSignals) -> SyncResult:
        """
        Run one reconciliation cycle.

        Never raises: remote errors become a failed result.

        Args:
            config: Declared data file configuration.
            signals: Signals persisted by the previous cycle.

        Returns:
            SyncResult for the host to persist.
        """
        action = plan_data_file_sync(config, signals)
        log = logger.bind(
            assistant=config.assistant_name, file_id=signals.file_id, action=action.value
        )

        if action == DataFileAction.SETTLE:
            return SyncResult(new_status=LifecycleStatus.READY)

        if action == DataFileAction.REJECT:
            log.error("data_file_unexpected_status", status=signals.status)
            return SyncResult(
                new_status=LifecycleStatus.FAILED,
                custom_status_description=f"Unexpected status: {signals.status}",
            )

        try:
            if action == DataFileAction.CREATE:
                return await self._create(config)
            if action == DataFileAction.RECREATE:
                await self._delete_previous(config, signals.file_id)
                return await self._create(config)
            return await self._poll(config, signals)
        except Exception as e:
            log.exception("data_file_sync_failed")
            return SyncResult(
                new_status=LifecycleStatus.FAILED,
                custom_status_description=f"{_FAILURE_LABELS[action]}: {e}",
            )

    async def _delete_previous(self, config: DataFileConfig, file_id: str) -> None:
        try:
            await self.service.delete_file(config.assistant_name, file_id)
        except RemoteNotFoundError:
            logger.info("data_file_previous_already_deleted", file_id=file_id)
            return
        logger.info("data_file_previous_deleted", file_id=file_id)

    async def _create(self, config: DataFileConfig) -> SyncResult:
        with staged_upload(config.content, config.filename) as path:
            remote = await self.service.upload_file(
                config.assistant_name, path, config.metadata
            )

        logger.info("data_file_uploaded", assistant=config.assistant_name, file_id=remote.id)
        return SyncResult(
            new_status=LifecycleStatus.IN_PROGRESS,
            signal_updates={
                "file_id": remote.id,
                "content_hash": fingerprint_of(config),
                "status": remote.status,
            },
            custom_status_description="File uploaded, processing...",
            next_schedule_delay=self.config.file_create_delay_seconds,
        )

    async def _poll(self, config: DataFileConfig, signals: DataFileSignals) -> SyncResult:
        details = await self.service.describe_file(config.assistant_name, signals.file_id)

        if details.status == FILE_PROCESSING:
            return SyncResult(
                new_status=LifecycleStatus.IN_PROGRESS,
                custom_status_description=(
                    f"Processing in progress ({_progress(details.percent_done)})"
                ),
                next_schedule_delay=self.config.file_poll_delay_seconds,
            )

        signal_updates = {"status": details.status}

        if details.status == FILE_AVAILABLE:
            if fingerprint_of(config) != signals.content_hash:
                # Declared content changed mid-processing; the next cycle
                # sees a settled file with a stale fingerprint and replaces it.
                return SyncResult(
                    new_status=LifecycleStatus.IN_PROGRESS,
                    signal_updates=signal_updates,
                    custom_status_description="Content changed during processing, replacing...",
                    next_schedule_delay=self.config.file_poll_delay_seconds,
                )
            logger.info("data_file_ready", file_id=signals.file_id)
            return SyncResult(new_status=LifecycleStatus.READY, signal_updates=signal_updates)

        logger.error(
            "data_file_processing_failed",
            file_id=signals.file_id,
            status=details.status,
            error_message=details.error_message,
        )
        return SyncResult(
            new_status=LifecycleStatus.FAILED,
            signal_updates=signal_updates,
            custom_status_description=(
                f"Processing failed ({details.status}): "
                f"{details.error_message or 'no error message'}"
            ),
        )

    async def drain(self, config: DataFileConfig, signals: DataFileSignals) -> DrainResult:
        """
        Delete the uploaded file.

        Nothing uploaded, or a file that is already gone, counts as drained.
        """
        if not signals.file_id:
            return DrainResult(new_status=LifecycleStatus.DRAINED)

        try:
            await self.service.delete_file(config.assistant_name, signals.file_id)
        except RemoteNotFoundError:
            logger.info("data_file_already_deleted", file_id=signals.file_id)
        except Exception as e:
            logger.exception("data_file_drain_failed", file_id=signals.file_id)
            return DrainResult(
                new_status=LifecycleStatus.DRAINING_FAILED,
                custom_status_description=f"Failed to delete file: {e}",
            )
        return DrainResult(new_status=LifecycleStatus.DRAINED)
