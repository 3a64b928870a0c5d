"""
Repository Interfaces

Contracts the ingestion controller and fan-in dispatcher depend on. Concrete
implementations live in infrastructure/; tests substitute in-memory fakes.

Exports:
    IIndexWriter: Catalog index writes (collections and items)
    IContinuationScheduler: Re-submission of ingestion checkpoints
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Union

from core.models.checkpoint import IngestionCheckpoint
from core.models.collection import CollectionDescriptor
from core.models.records import CatalogRecord
from core.models.results import BulkWriteResult


class IIndexWriter(ABC):
    """
    Interface for catalog index writes.

    Writes are keyed upserts so a chunk reprocessed after RETRY leaves
    exactly one record per key.
    """

    @abstractmethod
    async def ensure_collection(self, descriptor: CollectionDescriptor) -> bool:
        """
        Create the collection if it does not exist.

        Returns:
            True if this call created it, False if it already existed
        """
        pass

    @abstractmethod
    async def upsert_collection(self, collection: Union[CollectionDescriptor, Dict[str, Any]]) -> str:
        """Insert or replace a collection. Returns the collection id."""
        pass

    @abstractmethod
    async def bulk_upsert(self, records: Sequence[CatalogRecord], key_field: str = "id") -> BulkWriteResult:
        """
        Upsert records keyed by key_field (last occurrence in the batch wins).

        Per-record failures are collected in the result; connection-level
        failures raise IndexWriteFailed.
        """
        pass


class IContinuationScheduler(ABC):
    """Interface for re-submitting a checkpoint to the ingest queue."""

    @abstractmethod
    def send_checkpoint(
        self,
        checkpoint: IngestionCheckpoint,
        delay_seconds: int = 0,
        queue_name: Optional[str] = None,
    ) -> str:
        """
        Enqueue the checkpoint, delayed by delay_seconds when positive.

        Returns:
            Message ID
        """
        pass
