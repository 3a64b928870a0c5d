"""
Transform Stream - Per-Record Failure Isolation.

Drives the record normalizer over a sequence of manifest rows and yields an
explicit RecordResult per row. The aggregator (records()) logs each failure
with the offending record id and forwards successes in input order, so a
single bad row never ends the stream.

The only stream-level failure is an enrichment outage: once
max_consecutive_enrichment_failures transient enrichment failures occur in
a row, EnrichmentUnavailable is raised and the chunk is retried as a whole.

Usage:
    stream = TransformStream(normalizer)
    async for record in stream.records(rows):
        batch.append(record)
    stream.stats.failed

Exports:
    TransformStream: Single-pass async transform stream
"""

from typing import Any, AsyncIterator, Dict, Iterable, Optional, Union

from core.models.records import CatalogRecord, RawTileRecord
from core.models.results import RecordResult, StreamStats
from exceptions import ContractViolationError, EnrichmentFailed, EnrichmentUnavailable
from services.record_normalizer import RecordNormalizer
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "TransformStream")

Row = Union[RawTileRecord, Dict[str, Any]]


class TransformStream:
    """
    Single-pass stream of normalized records. Not restartable.
    """

    def __init__(self, normalizer: RecordNormalizer, max_consecutive_enrichment_failures: int = 10):
        self.normalizer = normalizer
        self.max_consecutive_enrichment_failures = max_consecutive_enrichment_failures
        self.stats = StreamStats()
        self._consumed = False
        self._consecutive_transient = 0
        self._last_transient: Optional[EnrichmentFailed] = None

    async def results(self, rows: Iterable[Row]) -> AsyncIterator[RecordResult]:
        """
        Yield one RecordResult per row, in input order.

        Raises:
            EnrichmentUnavailable: Too many consecutive transient enrichment failures
            ContractViolationError: Stream consumed twice
        """
        if self._consumed:
            raise ContractViolationError("TransformStream is single-pass and has already been consumed")
        self._consumed = True

        for position, row in enumerate(rows):
            record_id = _record_id(row, position)
            self.stats.processed += 1
            try:
                raw = row if isinstance(row, RawTileRecord) else RawTileRecord.model_validate(row)
                record = await self.normalizer.normalize(raw)
            except EnrichmentFailed as e:
                self.stats.failed += 1
                self._note_enrichment_failure(e)
                yield RecordResult.failed(record_id, e)
                continue
            except Exception as e:
                self.stats.failed += 1
                yield RecordResult.failed(record_id, e)
                continue

            self._consecutive_transient = 0
            self.stats.succeeded += 1
            yield RecordResult.ok(record)

    async def records(self, rows: Iterable[Row]) -> AsyncIterator[CatalogRecord]:
        """
        Aggregator: log failures, forward successes in order.
        """
        async for result in self.results(rows):
            if result.success:
                yield result.record
                continue
            logger.warning(
                f"⚠️ error processing {result.record_id}: {result.error}",
                extra={'custom_dimensions': {
                    'record_id': result.record_id,
                    'error_type': type(result.error).__name__,
                }}
            )

    def _note_enrichment_failure(self, error: EnrichmentFailed) -> None:
        if not error.transient:
            self._consecutive_transient = 0
            return
        self._consecutive_transient += 1
        self._last_transient = error
        if self._consecutive_transient >= self.max_consecutive_enrichment_failures:
            logger.error(
                f"❌ Enrichment source unavailable: {self._consecutive_transient} consecutive transient failures"
            )
            raise EnrichmentUnavailable(self._consecutive_transient, error)


def _record_id(row: Row, position: int) -> str:
    if isinstance(row, RawTileRecord):
        return row.granule_id
    if isinstance(row, dict):
        granule_id = row.get("GRANULE_ID") or row.get("granule_id")
        if granule_id:
            return str(granule_id).strip()
    return f"row-{position}"
