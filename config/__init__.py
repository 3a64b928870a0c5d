"""
Configuration Package - Domain-Specific Configuration Modules

Structure:
    config/
    ├── __init__.py              # This file - exports and singleton
    ├── app_config.py            # Main config (composes domain configs)
    ├── defaults.py              # Default values
    ├── storage_config.py        # Blob Storage (manifests, references)
    ├── database_config.py       # PostgreSQL / pgSTAC
    ├── queue_config.py          # Service Bus queues
    └── ingest_config.py         # Chunking, retries, enrichment, fan-in

Usage:
    from config import get_config
    config = get_config()
    chunk_size = config.ingest.chunk_size

    from config import debug_config
    info = debug_config()  # Passwords masked
"""

from typing import Optional

from .storage_config import StorageConfig
from .database_config import DatabaseConfig
from .queue_config import QueueConfig, QueueNames
from .ingest_config import IngestConfig
from .app_config import AppConfig


# ============================================================================
# SINGLETON PATTERN
# ============================================================================

_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get global configuration singleton.

    Returns:
        AppConfig instance loaded from environment
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = AppConfig.from_environment()
    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None


def debug_config() -> dict:
    """
    Get sanitized configuration for debugging (masks sensitive values).
    """
    try:
        config = get_config()
        return {
            'storage': config.storage.debug_dict(),
            'database': config.database.debug_dict(),
            'queues': {
                'ingest_queue': config.queues.ingest_queue,
                'items_queue': config.queues.items_queue,
                'connection': '***MASKED***' if config.queues.connection_string else None,
            },
            'ingest': config.ingest.model_dump(),
            'debug_mode': config.debug_mode,
            'environment': config.environment,
            'log_level': config.log_level,
        }
    except Exception as e:
        return {'error': f'Configuration validation failed: {e}'}


__all__ = [
    'AppConfig',
    'get_config',
    'reset_config',
    'debug_config',
    'StorageConfig',
    'DatabaseConfig',
    'QueueConfig',
    'QueueNames',
    'IngestConfig',
]
