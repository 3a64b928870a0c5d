"""
Ingestion Checkpoint - Resumable Progress Marker.

The checkpoint is the whole state of a chunked ingestion run. It travels on
the ingest queue between invocations with camelCase keys:

    {"bucket": "...", "key": "...", "currentChunkIndex": 0,
     "lastChunkIndex": 12, "invocationReference": "catalog-ingest",
     "retryCount": 0}

Absent numeric fields default to 0 and absent optional fields to null.
lastChunkIndex = null means the manifest has not been measured yet.

Exports:
    IngestionCheckpoint: Checkpoint model
"""

from typing import Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class IngestionCheckpoint(BaseModel):
    """
    Resumable progress marker for one manifest.

    Invariants: current_chunk_index >= 0, retry_count >= 0. Immutable; use
    advance() / retry() / with_last_chunk_index() to derive the next one.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    bucket: str = Field(..., min_length=1, description="Container holding the manifest")
    key: str = Field(..., min_length=1, description="Manifest blob path")
    current_chunk_index: int = Field(default=0, ge=0, alias="currentChunkIndex")
    last_chunk_index: Optional[int] = Field(default=None, ge=0, alias="lastChunkIndex")
    invocation_reference: Optional[str] = Field(
        default=None,
        alias="invocationReference",
        description="Queue the continuation is submitted to (defaults to the ingest queue)"
    )
    retry_count: int = Field(default=0, ge=0, alias="retryCount")

    @property
    def manifest(self) -> str:
        return f"{self.bucket}/{self.key}"

    @property
    def is_exhausted(self) -> bool:
        """True when the checkpoint already points past the last chunk."""
        return self.last_chunk_index is not None and self.current_chunk_index > self.last_chunk_index

    @property
    def is_last_chunk(self) -> bool:
        return self.last_chunk_index is not None and self.current_chunk_index == self.last_chunk_index

    def advance(self) -> "IngestionCheckpoint":
        """Next chunk, retry count reset."""
        return self.model_copy(update={
            "current_chunk_index": self.current_chunk_index + 1,
            "retry_count": 0,
        })

    def retry(self) -> "IngestionCheckpoint":
        """Same chunk, one more attempt."""
        return self.model_copy(update={"retry_count": self.retry_count + 1})

    def with_last_chunk_index(self, last_chunk_index: int) -> "IngestionCheckpoint":
        return self.model_copy(update={"last_chunk_index": last_chunk_index})

    def to_message(self) -> Dict[str, Any]:
        """Wire form (camelCase keys)."""
        return self.model_dump(by_alias=True, mode="json")
