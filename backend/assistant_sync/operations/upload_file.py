"""
Upload-and-wait action.

Accept: stage the content, upload it, open a pending operation and schedule
the first status check. Continuation: describe the file; while it is still
processing, report progress and reschedule with the same payload; once it
is terminal, complete the pending operation with the final file details.
"""

from typing import Any

import structlog
from pydantic import BaseModel, Field

from assistant_sync.constants import FILE_PROCESSING
from assistant_sync.models.operations import Timer
from assistant_sync.operations.base import Operation
from assistant_sync.services.staging import staged_upload

logger = structlog.get_logger(__name__)


class UploadFileConfig(BaseModel):
    assistant_name: str = Field(min_length=1)


class UploadFileInput(BaseModel):
    content: str
    filename: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class UploadProgress(BaseModel):
    """Resumption state carried by every status-check timer."""

    pending_id: str
    file_id: str
    content_length: int
    uploaded_metadata: dict[str, str] = Field(default_factory=dict)
    parent_event_id: str | None = None


class UploadResult(BaseModel):
    file_id: str
    name: str | None = None
    status: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    content_length: int
    percent_done: float | None = None
    error_message: str | None = None
    created_on: str | None = None
    updated_on: str | None = None


class UploadFileOperation(Operation):
    name = "upload_file"
    config_model = UploadFileConfig
    input_model = UploadFileInput

    async def on_event(self, inputs: UploadFileInput, event_id: str | None = None) -> str:
        with staged_upload(inputs.content, inputs.filename) as path:
            remote = await self.service.upload_file(
                self.config.assistant_name, path, inputs.metadata
            )

        progress = UploadProgress(
            pending_id="",
            file_id=remote.id,
            content_length=len(inputs.content),
            uploaded_metadata=inputs.metadata,
            parent_event_id=event_id,
        )
        pending_id = await self.events.create_pending(
            status_description="Checking file status...",
            event=progress.model_dump(include={"file_id", "content_length", "uploaded_metadata"}),
            parent_event_id=event_id,
        )
        progress.pending_id = pending_id

        async with self.cancel_on_error(pending_id, "Failed to schedule status check"):
            await self.schedule(
                self.settings.upload.initial_check_delay_seconds,
                progress.model_dump(),
                pending_id=pending_id,
                description=f"Checking status for file {remote.id}",
            )

        logger.info("upload_accepted", file_id=remote.id, pending_id=pending_id)
        return pending_id

    async def on_timer(self, timer: Timer) -> None:
        progress = UploadProgress.model_validate(timer.payload)

        async with self.cancel_on_error(progress.pending_id, "Failed to check file status"):
            details = await self.service.describe_file(
                self.config.assistant_name, progress.file_id
            )

            if details.status == FILE_PROCESSING:
                percent = (details.percent_done or 0) * 100
                await self.events.update_pending(
                    progress.pending_id,
                    status_description=f"Processing file... {percent:.1f}% complete",
                )
                await self.schedule(
                    self.settings.upload.poll_delay_seconds,
                    timer.payload,
                    pending_id=progress.pending_id,
                    description=f"Checking status for file {progress.file_id}",
                )
                return

            # Terminal either way; a processing failure is reported through
            # status and error_message on the completed event.
            result = UploadResult(
                file_id=details.id or progress.file_id,
                name=details.name,
                status=details.status,
                metadata=details.metadata or progress.uploaded_metadata,
                content_length=progress.content_length,
                percent_done=details.percent_done,
                error_message=details.error_message,
                created_on=details.created_on,
                updated_on=details.updated_on,
            )
            await self.events.complete(
                progress.pending_id,
                result.model_dump(),
                parent_event_id=progress.parent_event_id,
            )
            logger.info("upload_finished", file_id=progress.file_id, status=details.status)
