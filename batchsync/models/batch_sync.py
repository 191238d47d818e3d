"""Batch sync configuration storage model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import Mapped

from batchsync.core.database import Base


class BatchSyncConfigRecord(Base):
    """Persisted batch sync configuration, including its bounded run history.

    The full configuration is stored as JSON in `payload_json`; the scalar
    columns duplicate the fields that are useful to filter on.
    """

    __tablename__ = "batch_sync_configs"

    id: Mapped[str] = Column(String(36), primary_key=True)
    name: Mapped[str] = Column(String(255), nullable=False)
    enabled: Mapped[bool] = Column(Boolean, nullable=False, default=True, index=True)
    sync_mode: Mapped[str] = Column(String(20), nullable=False)  # sequential, parallel, adaptive
    priority: Mapped[str] = Column(String(10), nullable=False)  # high, medium, low
    payload_json: Mapped[str] = Column(Text, nullable=False)
    created_at: Mapped[datetime] = Column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<BatchSyncConfigRecord {self.name}: {self.sync_mode}>"
