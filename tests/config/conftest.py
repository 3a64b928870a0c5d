"""
Config test fixtures: clean environment via monkeypatch.
"""

import pytest


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all env vars that config modules might read, for isolation."""
    env_vars_to_clear = [
        "POSTGIS_HOST", "POSTGIS_PORT", "POSTGIS_DATABASE", "POSTGIS_USER", "POSTGIS_PASSWORD",
        "POSTGRESQL_CONNECTION_STRING", "PGSTAC_SCHEMA",
        "STORAGE_ACCOUNT_NAME", "AZURE_STORAGE_CONNECTION_STRING", "MANIFEST_CONTAINER",
        "OBJECT_STORAGE_SCHEMES",
        "ServiceBusConnection", "SERVICE_BUS_NAMESPACE", "ServiceBusConnection__fullyQualifiedNamespace",
        "SERVICE_BUS_INGEST_QUEUE", "SERVICE_BUS_ITEMS_QUEUE",
        "INGEST_CHUNK_SIZE", "INGEST_INDEX_BATCH_SIZE", "INGEST_MAX_RETRIES",
        "INGEST_RETRY_BASE_DELAY", "INGEST_RETRY_MAX_DELAY", "FAN_IN_CONCURRENCY",
        "SENTINEL_COLLECTION_ID", "SENTINEL_TILE_BASE_URL", "SENTINEL_METADATA_BASE_URL",
        "ENVIRONMENT", "DEBUG_MODE", "LOG_LEVEL",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch
