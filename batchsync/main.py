"""Account Batch Sync Service - Main Application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from batchsync.api.dependencies import get_engine, set_engine
from batchsync.api.routes import batch_sync_router
from batchsync.api.services.account_client import PlaceholderAccountSyncClient
from batchsync.core.clock import SystemClock
from batchsync.core.config import get_settings
from batchsync.core.database import check_db, init_db
from batchsync.core.scheduler import get_scheduler, init_scheduler
from batchsync.core.store import SqlConfigStore
from batchsync.core.sync.engine import BatchSyncEngine

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Account Batch Sync Service...")

    # Initialize database
    init_db()
    logger.info("Database initialized")

    # Build and start the engine
    engine = BatchSyncEngine(
        client=PlaceholderAccountSyncClient(),
        store=SqlConfigStore(),
        clock=SystemClock(),
        settings=settings,
    )
    await engine.start()
    set_engine(engine)

    # Initialize and start scheduler
    scheduler = init_scheduler(engine)
    scheduler.start()
    logger.info("Background scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down...")
    scheduler.shutdown()
    await engine.stop()
    set_engine(None)


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Batch synchronization of external accounts with sequential, "
                "parallel and adaptive execution, priority queueing and live progress.",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(batch_sync_router)


@app.get("/health")
async def health_check():
    """Health check with component status."""
    scheduler = get_scheduler()
    try:
        engine = get_engine()
    except HTTPException:
        engine = None

    components = {
        "database": "healthy" if check_db() else "unhealthy",
        "scheduler": "running" if scheduler and scheduler.running else "not_running",
        "engine": "running" if engine is not None and engine.is_started else "not_running",
    }

    return {
        "status": "healthy" if components["database"] == "healthy" else "degraded",
        "version": settings.app_version,
        "components": components,
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


def main() -> None:
    import uvicorn
    uvicorn.run(
        "batchsync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
