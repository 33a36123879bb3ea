"""
Pinecone Assistant Sync - Main FastAPI Application.

Keeps Pinecone assistants and their data files converged with a declared
configuration, and exposes assistant actions (chat, upload, context
retrieval) to the host that drives them.

Run with:
    uvicorn assistant_sync.main:app --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from supabase import acreate_client
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from assistant_sync.api.v1.installation import router as installation_router
from assistant_sync.api.v1.operations import router as operations_router
from assistant_sync.api.v1.resources import router as resources_router
from assistant_sync.config import Settings, get_settings
from assistant_sync.constants import API_TITLE, API_VERSION
from assistant_sync.logging_config import setup_logging
from assistant_sync.middleware import RequestContextMiddleware
from assistant_sync.operations.dispatcher import OperationDispatcher
from assistant_sync.services.pinecone_client import AssistantService, get_assistant_service
from assistant_sync.services.substrate import (
    AsyncioMessageBus,
    AsyncioTimerScheduler,
    InMemoryKeyValueStore,
    InMemoryPendingEventStore,
    Substrate,
)
from assistant_sync.services.supabase_store import (
    SupabaseKeyValueStore,
    SupabasePendingEventStore,
)

# Get settings before logging setup so we know the debug flag
settings = get_settings()

setup_logging(settings.debug)

logger = structlog.get_logger(__name__)


def assistant_service_factory() -> AssistantService:
    """Resolve the remote service for the currently configured API key."""
    return get_assistant_service(get_settings().pinecone_api_key)


async def build_substrate(settings: Settings) -> Substrate:
    """Durable stores when Supabase is configured, in-memory otherwise."""
    timers = AsyncioTimerScheduler()
    messaging = AsyncioMessageBus()

    supabase_client: AsyncSupabaseClient | None = None
    if settings.supabase_url and settings.supabase_secret_key:
        try:
            supabase_client = await acreate_client(
                settings.supabase_url,
                settings.supabase_secret_key,
            )
            logger.info("supabase_configured")
        except Exception as e:
            logger.warning("supabase_init_failed", error=str(e))
    else:
        logger.warning("supabase_not_configured", detail="Using in-memory stores")

    if supabase_client is None:
        return Substrate(
            events=InMemoryPendingEventStore(),
            timers=timers,
            messaging=messaging,
            kv=InMemoryKeyValueStore(),
        )

    storage = settings.storage
    return Substrate(
        events=SupabasePendingEventStore(
            supabase_client, storage.pending_table, storage.events_table
        ),
        timers=timers,
        messaging=messaging,
        kv=SupabaseKeyValueStore(supabase_client, storage.kv_table),
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler for startup and shutdown."""
    logger.info("api_startup")

    if not settings.pinecone_api_key:
        logger.warning("pinecone_key_missing", detail="Resources will report failed")
    else:
        logger.info("pinecone_configured")

    substrate = await build_substrate(settings)
    dispatcher = OperationDispatcher(substrate, assistant_service_factory, settings)
    substrate.timers.bind(dispatcher.handle_timer)
    substrate.messaging.bind(dispatcher.handle_message)

    _app.state.substrate = substrate
    _app.state.dispatcher = dispatcher
    _app.state.assistant_service_factory = assistant_service_factory

    logger.info("services_initialized")

    yield

    substrate.timers.cancel_all()
    substrate.messaging.cancel_all()
    logger.info("api_shutdown")


app = FastAPI(
    title=API_TITLE,
    description=(
        "Reconciles Pinecone assistants and data files against a declared "
        "configuration and runs assistant actions on behalf of the host."
    ),
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)

app.include_router(resources_router, prefix="/api/v1")
app.include_router(operations_router, prefix="/api/v1")
app.include_router(installation_router, prefix="/api/v1")


@app.get("/")
async def root() -> dict:
    """Root endpoint with API info."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "description": "Pinecone assistant reconciliation and actions",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}
