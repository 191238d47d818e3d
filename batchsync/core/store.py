"""Configuration stores.

The engine persists a configuration after every create, update and history
append, deletes it on removal, and loads everything once at startup.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from sqlalchemy.orm import Session

from batchsync.core.database import SessionLocal, get_db_context
from batchsync.core.retry import STORE_POLICY, retry_with_backoff
from batchsync.models.batch_sync import BatchSyncConfigRecord
from batchsync.schemas.batch_sync import BatchSyncConfig

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    """Durable storage for batch sync configurations."""

    async def save(self, config: BatchSyncConfig) -> None:
        """Insert or replace a configuration."""
        ...

    async def delete(self, config_id: str) -> None:
        """Remove a configuration. Unknown ids are ignored."""
        ...

    async def load_all(self) -> list[BatchSyncConfig]:
        """Return every stored configuration."""
        ...


class InMemoryConfigStore:
    """Process-local store, used in tests and single-shot tooling."""

    def __init__(self) -> None:
        self._configs: dict[str, str] = {}

    async def save(self, config: BatchSyncConfig) -> None:
        self._configs[config.id] = config.model_dump_json()

    async def delete(self, config_id: str) -> None:
        self._configs.pop(config_id, None)

    async def load_all(self) -> list[BatchSyncConfig]:
        return [BatchSyncConfig.model_validate_json(raw) for raw in self._configs.values()]

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, config_id: object) -> bool:
        return config_id in self._configs


class SqlConfigStore:
    """SQLAlchemy-backed store writing to the batch_sync_configs table.

    Each operation is one committed unit of work run in a worker thread, so
    slow database writes do not stall the event loop.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    @retry_with_backoff(STORE_POLICY)
    async def save(self, config: BatchSyncConfig) -> None:
        await asyncio.to_thread(self._save, config)

    @retry_with_backoff(STORE_POLICY)
    async def delete(self, config_id: str) -> None:
        await asyncio.to_thread(self._delete, config_id)

    @retry_with_backoff(STORE_POLICY)
    async def load_all(self) -> list[BatchSyncConfig]:
        return await asyncio.to_thread(self._load_all)

    def _save(self, config: BatchSyncConfig) -> None:
        with get_db_context(self._session_factory) as db:
            record = db.get(BatchSyncConfigRecord, config.id)
            if record is None:
                record = BatchSyncConfigRecord(id=config.id, created_at=config.created_at)
                db.add(record)

            record.name = config.name
            record.enabled = config.enabled
            record.sync_mode = config.sync_mode.value
            record.priority = config.priority.value
            record.payload_json = config.model_dump_json()
            record.updated_at = config.updated_at
        logger.debug(f"Saved batch sync configuration {config.id}")

    def _delete(self, config_id: str) -> None:
        with get_db_context(self._session_factory) as db:
            deleted = (
                db.query(BatchSyncConfigRecord)
                .filter(BatchSyncConfigRecord.id == config_id)
                .delete()
            )
        logger.debug(f"Deleted batch sync configuration {config_id} ({deleted} rows)")

    def _load_all(self) -> list[BatchSyncConfig]:
        configs = []
        with get_db_context(self._session_factory) as db:
            records = db.query(BatchSyncConfigRecord).order_by(BatchSyncConfigRecord.created_at).all()
            for record in records:
                try:
                    configs.append(BatchSyncConfig.model_validate_json(record.payload_json))
                except ValueError as e:
                    logger.error(f"Skipping unreadable batch sync configuration {record.id}: {e}")
        logger.info(f"Loaded {len(configs)} batch sync configurations from storage")
        return configs
