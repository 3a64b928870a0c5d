"""
Main Application Configuration - composition of domain configs.

Exports:
    AppConfig: Main configuration class
"""

import os
from pydantic import BaseModel, Field

from .defaults import AppDefaults
from .storage_config import StorageConfig
from .database_config import DatabaseConfig
from .queue_config import QueueConfig
from .ingest_config import IngestConfig


class AppConfig(BaseModel):
    """
    Application configuration - composition of domain configs.

    Each domain config manages its own validation and defaults.
    """

    # ========================================================================
    # Core Application Settings
    # ========================================================================

    debug_mode: bool = Field(
        default=AppDefaults.DEBUG_MODE,
        description="Enable debug mode for verbose diagnostics (payload logging). "
                    "Set DEBUG_MODE=true in environment to enable.",
        examples=[True, False]
    )

    environment: str = Field(
        default=AppDefaults.ENVIRONMENT,
        description="Environment name (dev, qa, prod)",
        examples=["dev", "qa", "prod"]
    )

    log_level: str = Field(
        default=AppDefaults.LOG_LEVEL,
        description="Root log level for the Function host"
    )

    # ========================================================================
    # Domain Configs
    # ========================================================================

    storage: StorageConfig = Field(default_factory=StorageConfig.from_environment)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig.from_environment)
    queues: QueueConfig = Field(default_factory=QueueConfig.from_environment)
    ingest: IngestConfig = Field(default_factory=IngestConfig.from_environment)

    def should_log_verbose(self) -> bool:
        """
        True if either DEBUG_MODE or DEBUG_LOGGING is enabled.

        Usage:
            config = get_config()
            if config.should_log_verbose():
                logger.debug(f"Payload: {payload}")
        """
        debug_logging = os.environ.get("DEBUG_LOGGING", "false").lower() == "true"
        return self.debug_mode or debug_logging

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def from_environment(cls):
        """Load all configs from environment."""
        return cls(
            debug_mode=os.environ.get("DEBUG_MODE", str(AppDefaults.DEBUG_MODE).lower()).lower() == "true",
            environment=os.environ.get("ENVIRONMENT", AppDefaults.ENVIRONMENT),
            log_level=os.environ.get("LOG_LEVEL", AppDefaults.LOG_LEVEL),
            storage=StorageConfig.from_environment(),
            database=DatabaseConfig.from_environment(),
            queues=QueueConfig.from_environment(),
            ingest=IngestConfig.from_environment(),
        )
