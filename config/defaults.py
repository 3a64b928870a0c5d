"""
Configuration Defaults - Single source of truth for all default values.

Organization:
    - AppDefaults: Application-wide settings (debug, environment, logging)
    - DatabaseDefaults: pgSTAC connection and pool settings
    - StorageDefaults: Blob Storage containers and reference schemes
    - QueueDefaults: Service Bus queue names and retries
    - IngestDefaults: Chunking, batching, retry ceiling and backoff
    - SentinelDefaults: Public Sentinel-2 L1C endpoints and collection id

Usage:
    from config.defaults import IngestDefaults

    # In Pydantic Field definitions:
    chunk_size: int = Field(default=IngestDefaults.CHUNK_SIZE, ...)
"""


# =============================================================================
# APPLICATION DEFAULTS
# =============================================================================

class AppDefaults:
    """Core application settings."""

    DEBUG_MODE = False
    ENVIRONMENT = "dev"
    LOG_LEVEL = "INFO"


# =============================================================================
# DATABASE DEFAULTS
# =============================================================================

class DatabaseDefaults:
    """
    pgSTAC database settings.

    The index lives in the pgSTAC schema; items and collections are written
    through pgstac.* SQL functions only.
    """

    PORT = 5432
    PGSTAC_SCHEMA = "pgstac"
    CONNECTION_TIMEOUT_SECONDS = 30
    MIN_CONNECTIONS = 1
    MAX_CONNECTIONS = 10


# =============================================================================
# STORAGE DEFAULTS
# =============================================================================

class StorageDefaults:
    """Blob Storage defaults."""

    # INTENTIONALLY INVALID - must be overridden
    DEFAULT_ACCOUNT_NAME = "your-storage-account-name"

    MANIFEST_CONTAINER = "manifests"

    # URI schemes treated as object storage references (az://container/blob)
    OBJECT_STORAGE_SCHEMES = ("az", "abfs", "blob")


# =============================================================================
# QUEUE DEFAULTS
# =============================================================================

class QueueDefaults:
    """Service Bus queue names and client behaviour."""

    INGEST_QUEUE = "catalog-ingest"
    ITEMS_QUEUE = "catalog-items"
    MESSAGE_TTL_HOURS = 24
    RETRY_COUNT = 3


# =============================================================================
# INGEST DEFAULTS
# =============================================================================

class IngestDefaults:
    """
    Chunked ingestion and fan-in tuning.

    CHUNK_SIZE rows are processed per invocation; a chunk must finish well
    inside the Function timeout including enrichment round-trips.
    """

    CHUNK_SIZE = 500
    INDEX_BATCH_SIZE = 100
    MAX_RETRIES = 3
    RETRY_BASE_DELAY_SECONDS = 5
    RETRY_MAX_DELAY_SECONDS = 300
    MAX_CONSECUTIVE_ENRICHMENT_FAILURES = 10
    HTTP_TIMEOUT_SECONDS = 30.0
    FAN_IN_CONCURRENCY = 10


# =============================================================================
# SENTINEL-2 DEFAULTS
# =============================================================================

class SentinelDefaults:
    """Public Sentinel-2 L1C endpoints (AWS open data + Sinergise roda)."""

    COLLECTION_ID = "sentinel-2-l1c"
    TILE_BASE_URL = "https://sentinel-s2-l1c.s3.amazonaws.com"
    METADATA_BASE_URL = "https://roda.sentinel-hub.com/sentinel-s2-l1c"
