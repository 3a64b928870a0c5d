"""
Result Data Models.

Explicit success/failure values passed between pipeline stages instead of
exceptions, so one bad record or message never aborts a batch.

Exports:
    RecordResult: Outcome of normalizing one manifest row
    MessageResult: Outcome of resolving one inbound message
    BulkWriteResult: Outcome of one bulk upsert
    StreamStats: Counters for one transform stream pass
    IngestionOutcome: Outcome of one controller invocation
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .checkpoint import IngestionCheckpoint
from .enums import IngestionState
from .records import CatalogRecord


@dataclass(frozen=True)
class RecordResult:
    """Success carries the record; failure carries the record id and error."""

    record_id: str
    record: Optional[CatalogRecord] = None
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.record is not None

    @classmethod
    def ok(cls, record: CatalogRecord) -> "RecordResult":
        return cls(record_id=record.id, record=record)

    @classmethod
    def failed(cls, record_id: str, error: BaseException) -> "RecordResult":
        return cls(record_id=record_id, error=error)


@dataclass(frozen=True)
class MessageResult:
    """Resolved payload of one message: an item record or a STAC Collection dict."""

    message_id: str
    record: Optional[CatalogRecord] = None
    collection: Optional[Dict[str, Any]] = None
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class BulkWriteResult:
    """Ids written and per-record failures (id -> error message)."""

    written: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    duplicates_dropped: int = 0

    @property
    def written_count(self) -> int:
        return len(self.written)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def merge(self, other: "BulkWriteResult") -> None:
        self.written.extend(other.written)
        self.failed.update(other.failed)
        self.duplicates_dropped += other.duplicates_dropped


@dataclass
class StreamStats:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"processed": self.processed, "succeeded": self.succeeded, "failed": self.failed}


@dataclass
class IngestionOutcome:
    """
    What one controller invocation did.

    transitions lists every state walked, entry state first.
    next_checkpoint is set only for CONTINUE and RETRY.
    """

    state: IngestionState
    checkpoint: IngestionCheckpoint
    transitions: List[IngestionState] = field(default_factory=list)
    next_checkpoint: Optional[IngestionCheckpoint] = None
    delay_seconds: int = 0
    records_written: int = 0
    records_failed: int = 0
    write_failures: int = 0
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (IngestionState.DONE, IngestionState.FAILED)

    def summary(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "manifest": self.checkpoint.manifest,
            "chunk": self.checkpoint.current_chunk_index,
            "last_chunk": self.checkpoint.last_chunk_index,
            "retry_count": self.checkpoint.retry_count,
            "records_written": self.records_written,
            "records_failed": self.records_failed,
            "write_failures": self.write_failures,
            "next_chunk": self.next_checkpoint.current_chunk_index if self.next_checkpoint else None,
            "delay_seconds": self.delay_seconds,
            "error": self.error,
        }
