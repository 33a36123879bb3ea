"""File management actions: delete a file, list an assistant's files."""

from pydantic import BaseModel, Field

from assistant_sync.operations.base import Operation


class AssistantFilesConfig(BaseModel):
    assistant_name: str = Field(min_length=1)


class DeleteFileInput(BaseModel):
    file_id: str = Field(min_length=1)


class ListFilesInput(BaseModel):
    pass


class DeleteFileOperation(Operation):
    name = "delete_file"
    config_model = AssistantFilesConfig
    input_model = DeleteFileInput

    async def on_event(self, inputs: DeleteFileInput, event_id: str | None = None) -> str:
        pending_id = await self.events.create_pending(
            status_description="Deleting file...",
            event={"file_id": inputs.file_id},
            parent_event_id=event_id,
        )
        async with self.cancel_on_error(pending_id, "Delete failed"):
            await self.service.delete_file(self.config.assistant_name, inputs.file_id)
            await self.events.complete(
                pending_id, {"file_id": inputs.file_id}, parent_event_id=event_id
            )
        return pending_id


class ListFilesOperation(Operation):
    name = "list_files"
    config_model = AssistantFilesConfig
    input_model = ListFilesInput

    async def on_event(self, inputs: ListFilesInput, event_id: str | None = None) -> str:
        pending_id = await self.events.create_pending(
            status_description="Listing files...",
            parent_event_id=event_id,
        )
        async with self.cancel_on_error(pending_id, "List failed"):
            files = await self.service.list_files(self.config.assistant_name)
            await self.events.complete(
                pending_id,
                {"files": [f.model_dump() for f in files]},
                parent_event_id=event_id,
            )
        return pending_id
