"""FastAPI dependencies shared by the route modules."""

from fastapi import HTTPException, status

from batchsync.core.sync.engine import BatchSyncEngine

# Engine instance installed by the application lifespan
_engine: BatchSyncEngine | None = None


def set_engine(engine: BatchSyncEngine | None) -> None:
    global _engine
    _engine = engine


def get_engine() -> BatchSyncEngine:
    """Return the running engine, or 503 while the app is starting up."""
    if _engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Batch sync engine is not initialized",
        )
    return _engine
