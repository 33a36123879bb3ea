"""
Resource reconciliation endpoints.

The host calls these with the declared config and the signals it persisted
from the previous cycle; the response tells it the new lifecycle status,
which signals to persist, and when to call again.

Endpoints:
- POST /api/v1/resources/assistants/sync
- POST /api/v1/resources/assistants/drain
- POST /api/v1/resources/data-files/sync
- POST /api/v1/resources/data-files/drain
"""

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from assistant_sync.config import get_settings
from assistant_sync.models.resources import (
    AssistantConfig,
    AssistantSignals,
    DataFileConfig,
    DataFileSignals,
    DrainResult,
    LifecycleStatus,
    SyncResult,
)
from assistant_sync.reconcilers.assistant import AssistantReconciler
from assistant_sync.reconcilers.data_file import DataFileReconciler
from assistant_sync.services.pinecone_client import AssistantService, MissingApiKeyError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/resources", tags=["resources"])


class AssistantCycleRequest(BaseModel):
    """Request body for assistant sync/drain."""

    config: AssistantConfig
    signals: AssistantSignals = Field(default_factory=AssistantSignals)


class DataFileCycleRequest(BaseModel):
    """Request body for data file sync/drain."""

    config: DataFileConfig
    signals: DataFileSignals = Field(default_factory=DataFileSignals)


def _get_service(request: Request) -> AssistantService | None:
    """Build the remote service, or None when no API key is configured."""
    factory = getattr(request.app.state, "assistant_service_factory", None)
    if factory is None:
        raise HTTPException(status_code=503, detail="Assistant service not configured")
    try:
        return factory()
    except MissingApiKeyError as e:
        logger.warning("assistant_service_unavailable", error=str(e))
        return None


_MISSING_KEY = "Pinecone API key is required."


@router.post("/assistants/sync", response_model=SyncResult)
async def sync_assistant(body: AssistantCycleRequest, request: Request) -> SyncResult:
    """Run one reconciliation cycle for an assistant."""
    structlog.contextvars.bind_contextvars(resource="assistant", assistant=body.config.name)
    service = _get_service(request)
    if service is None:
        return SyncResult(new_status=LifecycleStatus.FAILED, custom_status_description=_MISSING_KEY)
    reconciler = AssistantReconciler(service, get_settings().reconcile)
    return await reconciler.sync(body.config, body.signals)


@router.post("/assistants/drain", response_model=DrainResult)
async def drain_assistant(body: AssistantCycleRequest, request: Request) -> DrainResult:
    """Delete an assistant removed from the declared configuration."""
    structlog.contextvars.bind_contextvars(resource="assistant", assistant=body.config.name)
    service = _get_service(request)
    if service is None:
        return DrainResult(
            new_status=LifecycleStatus.DRAINING_FAILED, custom_status_description=_MISSING_KEY
        )
    reconciler = AssistantReconciler(service, get_settings().reconcile)
    return await reconciler.drain(body.config, body.signals)


@router.post("/data-files/sync", response_model=SyncResult)
async def sync_data_file(body: DataFileCycleRequest, request: Request) -> SyncResult:
    """Run one reconciliation cycle for a data file."""
    structlog.contextvars.bind_contextvars(
        resource="data_file", assistant=body.config.assistant_name
    )
    service = _get_service(request)
    if service is None:
        return SyncResult(new_status=LifecycleStatus.FAILED, custom_status_description=_MISSING_KEY)
    reconciler = DataFileReconciler(service, get_settings().reconcile)
    return await reconciler.sync(body.config, body.signals)


@router.post("/data-files/drain", response_model=DrainResult)
async def drain_data_file(body: DataFileCycleRequest, request: Request) -> DrainResult:
    """Delete the uploaded file of a data file removed from the declared configuration."""
    structlog.contextvars.bind_contextvars(
        resource="data_file", assistant=body.config.assistant_name
    )
    service = _get_service(request)
    if service is None:
        return DrainResult(
            new_status=LifecycleStatus.DRAINING_FAILED, custom_status_description=_MISSING_KEY
        )
    reconciler = DataFileReconciler(service, get_settings().reconcile)
    return await reconciler.drain(body.config, body.signals)
