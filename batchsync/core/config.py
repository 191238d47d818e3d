"""Core configuration settings.

Centralized configuration using Pydantic Settings for environment
variable management with sensible defaults.
"""

import logging
import os
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Engine tunables (queue pacing, adaptive thresholds, history size) live
    alongside the defaults applied to newly created sync configurations.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # =========================================================================
    # Environment Detection
    # =========================================================================

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
    )

    # Application
    app_name: str = "Account Batch Sync Service"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite:///./data/batchsync.db"

    # =========================================================================
    # Engine
    # =========================================================================

    history_limit: int = Field(default=50, ge=1, alias="SYNC_HISTORY_LIMIT")
    queue_dispatch_delay_seconds: float = Field(default=1.0, ge=0, alias="QUEUE_DISPATCH_DELAY_SECONDS")
    # Busy configs are dropped from the queue unless this is set
    requeue_busy_configs: bool = Field(default=False, alias="REQUEUE_BUSY_CONFIGS")
    progress_ttl_minutes: int = Field(default=60, ge=1, alias="PROGRESS_TTL_MINUTES")
    progress_sweep_interval_minutes: int = Field(default=60, ge=1, alias="PROGRESS_SWEEP_INTERVAL_MINUTES")
    due_check_interval_seconds: int = Field(default=60, ge=1, alias="DUE_CHECK_INTERVAL_SECONDS")

    # Adaptive strategy thresholds (accounts per minute)
    adaptive_scale_up_threshold: float = Field(default=30.0, gt=0, alias="ADAPTIVE_SCALE_UP_THRESHOLD")
    adaptive_scale_down_threshold: float = Field(default=10.0, gt=0, alias="ADAPTIVE_SCALE_DOWN_THRESHOLD")

    # Defaults for new sync configurations
    default_max_concurrent_accounts: int = Field(default=5, ge=1)
    default_max_retries: int = Field(default=3, ge=0)
    default_retry_delay_ms: int = Field(default=1000, ge=0)
    default_timeout_ms: int = Field(default=30000, ge=0)
    default_rate_limit_delay_ms: int = Field(default=100, ge=0)

    # Config store retry
    store_max_retries: int = Field(default=3, ge=0, alias="STORE_MAX_RETRIES")
    store_backoff_factor: float = Field(default=0.5, ge=0, alias="STORE_BACKOFF_FACTOR")

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("environment", mode="before")
    @classmethod
    def detect_environment(cls, v: str | None) -> str:
        """Auto-detect environment from common environment variables."""
        if v:
            return v.lower()

        if os.getenv("PRODUCTION") or os.getenv("PROD"):
            return "production"
        if os.getenv("STAGING"):
            return "staging"

        return "development"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @model_validator(mode="after")
    def validate_debug_mode(self):
        """Prevent debug mode in production."""
        if self.environment == "production" and self.debug:
            logger.error(
                "DEBUG mode cannot be enabled in production! "
                "Set DEBUG=false or ENVIRONMENT=development"
            )
            raise ValueError("DEBUG cannot be True in production environment")
        return self

    @model_validator(mode="after")
    def validate_adaptive_thresholds(self):
        """Scale-down threshold must sit below the scale-up threshold."""
        if self.adaptive_scale_down_threshold >= self.adaptive_scale_up_threshold:
            raise ValueError(
                "ADAPTIVE_SCALE_DOWN_THRESHOLD must be lower than ADAPTIVE_SCALE_UP_THRESHOLD"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
