"""
Chunked Ingestion and Fan-in Configuration.

Provides configuration for:
    - Chunk size and index batch size
    - Retry ceiling and exponential backoff
    - Enrichment endpoints, timeout and outage threshold
    - Fan-in concurrency

Exports:
    IngestConfig: Pydantic ingestion configuration model
"""

import os
from pydantic import BaseModel, Field, model_validator

from .defaults import IngestDefaults, SentinelDefaults


class IngestConfig(BaseModel):
    """Ingestion pipeline tuning."""

    chunk_size: int = Field(
        default=IngestDefaults.CHUNK_SIZE,
        ge=1,
        le=100_000,
        description="Manifest rows processed per invocation"
    )

    index_batch_size: int = Field(
        default=IngestDefaults.INDEX_BATCH_SIZE,
        ge=1,
        le=10_000,
        description="Records per bulk_upsert call"
    )

    max_retries: int = Field(
        default=IngestDefaults.MAX_RETRIES,
        ge=0,
        le=20,
        description="Retry ceiling per chunk; at the ceiling the run goes to FAILED"
    )

    retry_base_delay_seconds: int = Field(
        default=IngestDefaults.RETRY_BASE_DELAY_SECONDS,
        ge=0,
        le=600,
        description="Base delay in seconds for exponential backoff (first retry)"
    )

    retry_max_delay_seconds: int = Field(
        default=IngestDefaults.RETRY_MAX_DELAY_SECONDS,
        ge=0,
        le=3600,
        description="Maximum delay in seconds between retries (caps exponential growth)"
    )

    max_consecutive_enrichment_failures: int = Field(
        default=IngestDefaults.MAX_CONSECUTIVE_ENRICHMENT_FAILURES,
        ge=1,
        description="Consecutive transient enrichment failures that abort the stream"
    )

    http_timeout_seconds: float = Field(
        default=IngestDefaults.HTTP_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for enrichment and reference HTTP requests"
    )

    fan_in_concurrency: int = Field(
        default=IngestDefaults.FAN_IN_CONCURRENCY,
        ge=1,
        le=100,
        description="Messages resolved concurrently by the fan-in dispatcher"
    )

    collection_id: str = Field(
        default=SentinelDefaults.COLLECTION_ID,
        description="Collection records produced from manifests belong to"
    )

    tile_base_url: str = Field(
        default=SentinelDefaults.TILE_BASE_URL,
        description="Base URL of band assets"
    )

    metadata_base_url: str = Field(
        default=SentinelDefaults.METADATA_BASE_URL,
        description="Base URL of tileInfo.json, preview and metadata assets"
    )

    @model_validator(mode="after")
    def _check_delays(self):
        if self.retry_max_delay_seconds < self.retry_base_delay_seconds:
            raise ValueError("retry_max_delay_seconds must be >= retry_base_delay_seconds")
        return self

    def backoff_seconds(self, retry_count: int) -> int:
        """Exponential backoff for the given retry number (1-based), capped."""
        if retry_count <= 0:
            return 0
        delay = self.retry_base_delay_seconds * (2 ** (retry_count - 1))
        return min(delay, self.retry_max_delay_seconds)

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        return cls(
            chunk_size=int(os.environ.get("INGEST_CHUNK_SIZE", str(IngestDefaults.CHUNK_SIZE))),
            index_batch_size=int(os.environ.get("INGEST_INDEX_BATCH_SIZE", str(IngestDefaults.INDEX_BATCH_SIZE))),
            max_retries=int(os.environ.get("INGEST_MAX_RETRIES", str(IngestDefaults.MAX_RETRIES))),
            retry_base_delay_seconds=int(os.environ.get("INGEST_RETRY_BASE_DELAY", str(IngestDefaults.RETRY_BASE_DELAY_SECONDS))),
            retry_max_delay_seconds=int(os.environ.get("INGEST_RETRY_MAX_DELAY", str(IngestDefaults.RETRY_MAX_DELAY_SECONDS))),
            max_consecutive_enrichment_failures=int(os.environ.get(
                "INGEST_MAX_CONSECUTIVE_ENRICHMENT_FAILURES",
                str(IngestDefaults.MAX_CONSECUTIVE_ENRICHMENT_FAILURES)
            )),
            http_timeout_seconds=float(os.environ.get("INGEST_HTTP_TIMEOUT", str(IngestDefaults.HTTP_TIMEOUT_SECONDS))),
            fan_in_concurrency=int(os.environ.get("FAN_IN_CONCURRENCY", str(IngestDefaults.FAN_IN_CONCURRENCY))),
            collection_id=os.environ.get("SENTINEL_COLLECTION_ID", SentinelDefaults.COLLECTION_ID),
            tile_base_url=os.environ.get("SENTINEL_TILE_BASE_URL", SentinelDefaults.TILE_BASE_URL).rstrip("/"),
            metadata_base_url=os.environ.get("SENTINEL_METADATA_BASE_URL", SentinelDefaults.METADATA_BASE_URL).rstrip("/"),
        )
