"""Installation check: verifies the configured API key can reach the service."""

import structlog
from fastapi import APIRouter, Request

from assistant_sync.api.v1.resources import _MISSING_KEY, _get_service
from assistant_sync.models.resources import LifecycleStatus, SyncResult

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/installation", tags=["installation"])


@router.post("/sync", response_model=SyncResult)
async def sync_installation(request: Request) -> SyncResult:
    """List assistants once; success means the key is valid."""
    service = _get_service(request)
    if service is None:
        return SyncResult(new_status=LifecycleStatus.FAILED, custom_status_description=_MISSING_KEY)
    try:
        await service.list_assistants()
    except Exception as e:
        logger.exception("installation_check_failed", error=str(e))
        return SyncResult(
            new_status=LifecycleStatus.FAILED,
            custom_status_description="Error connecting to Pinecone. Check logs for details.",
        )
    logger.info("installation_check_passed")
    return SyncResult(new_status=LifecycleStatus.READY)
