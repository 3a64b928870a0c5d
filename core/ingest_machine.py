# ============================================================================
# CHUNKED INGESTION CONTROLLER - Queue-driven state machine
# ============================================================================
# PURPOSE: Process one manifest chunk per invocation and schedule the next
# PATTERN: Checkpoint in, IngestionOutcome out; continuation via Service Bus
# ============================================================================
"""
Chunked Ingestion Controller.

Each invocation receives an IngestionCheckpoint from the ingest queue,
processes exactly one chunk of the manifest and decides what happens next:

    START ──┐
    CONTINUE├──> PROCESSING ──> CONTINUE   (advance(), sent immediately)
    RETRY ──┘         │    ──> RETRY      (retry(), sent with backoff delay)
                      │    ──> DONE       (last chunk written)
                      └──> FAILED         (fatal error or retry ceiling)

The entry state is derived from the checkpoint (chunk 0 -> START, a
retried chunk -> RETRY, otherwise CONTINUE). DONE and FAILED are terminal:
nothing is scheduled from them and run() returns instead of raising, so the
trigger completes the message.

Chunk processing:
    1. Seed the collection descriptor (once per process)
    2. Measure lastChunkIndex if the checkpoint has none
    3. Read the chunk's rows from the manifest
    4. Drive the TransformStream; per-record failures are logged and skipped
    5. Bulk upsert records in batches of index_batch_size

Writes are keyed upserts, so a chunk reprocessed after RETRY leaves exactly
one record per id.

Exports:
    ChunkedIngestionController
    create_controller: Factory wired from config
"""

import asyncio
from typing import ClassVar, List, Optional, Set

from config.ingest_config import IngestConfig
from core.errors import classify_exception, is_retryable
from core.logic.transitions import can_ingestion_transition, entry_state_for
from core.models.checkpoint import IngestionCheckpoint
from core.models.collection import CollectionDescriptor
from core.models.enums import IngestionState
from core.models.records import CatalogRecord
from core.models.results import BulkWriteResult, IngestionOutcome
from exceptions import ContractViolationError, RetryCeilingExceeded
from services.transform_stream import TransformStream
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.CONTROLLER, "ChunkedIngestionController")


class _Walk:
    """Validated state sequence for one invocation."""

    def __init__(self, entry: IngestionState):
        self.states: List[IngestionState] = [entry]

    @property
    def current(self) -> IngestionState:
        return self.states[-1]

    def move(self, target: IngestionState) -> None:
        if not can_ingestion_transition(self.current, target):
            raise ContractViolationError(
                f"Invalid ingestion transition: {self.current.value} -> {target.value}"
            )
        self.states.append(target)


class ChunkedIngestionController:
    """
    Drives one manifest chunk per invocation.

    Args:
        writer: IIndexWriter (PgStacRepository)
        manifest_reader: ManifestReader (sync, run in the default executor)
        scheduler: IContinuationScheduler (sync, run in the default executor)
        normalizer: RecordNormalizer shared across chunks
        collection: Descriptor seeded before the first write
        config: IngestConfig (chunk size, batch size, retries, backoff)
        default_queue: Queue for continuations when the checkpoint names none
    """

    # Collection ids seeded in this process
    _seeded: ClassVar[Set[str]] = set()

    def __init__(
        self,
        writer,
        manifest_reader,
        scheduler,
        normalizer,
        collection: CollectionDescriptor,
        config: Optional[IngestConfig] = None,
        default_queue: Optional[str] = None,
    ):
        self.writer = writer
        self.manifest_reader = manifest_reader
        self.scheduler = scheduler
        self.normalizer = normalizer
        self.collection = collection
        self.config = config or IngestConfig()
        self.default_queue = default_queue
        self._seed_lock = asyncio.Lock()

    @classmethod
    def reset_seeded(cls) -> None:
        """Forget seeded collections (tests)."""
        cls._seeded.clear()

    # ========================================================================
    # ENTRY POINT
    # ========================================================================

    async def run(self, checkpoint: IngestionCheckpoint) -> IngestionOutcome:
        """
        Process the checkpoint's chunk and schedule what comes next.

        Returns:
            IngestionOutcome with the final state and the walk taken

        Raises:
            Errors from the continuation send itself (the message is then
            redelivered and the chunk reprocessed idempotently)
        """
        walk = _Walk(entry_state_for(checkpoint.current_chunk_index, checkpoint.retry_count))

        logger.info("=" * 50)
        logger.info(
            f"🔄 Ingestion {walk.current.value}: {checkpoint.manifest} "
            f"chunk {checkpoint.current_chunk_index}/{_fmt_last(checkpoint)} "
            f"(retry {checkpoint.retry_count})",
            extra={'custom_dimensions': _dims(checkpoint)}
        )

        if checkpoint.is_exhausted:
            walk.move(IngestionState.DONE)
            logger.info(f"✅ Nothing left to ingest for {checkpoint.manifest}")
            return IngestionOutcome(state=IngestionState.DONE, checkpoint=checkpoint, transitions=walk.states)

        walk.move(IngestionState.PROCESSING)
        written = BulkWriteResult()
        records_failed = 0
        try:
            await self._seed_collection()

            if checkpoint.last_chunk_index is None:
                checkpoint = await self._measure(checkpoint)

            if checkpoint.is_exhausted:
                walk.move(IngestionState.DONE)
                logger.info(f"✅ Manifest {checkpoint.manifest} has no chunk {checkpoint.current_chunk_index}")
                return IngestionOutcome(state=IngestionState.DONE, checkpoint=checkpoint, transitions=walk.states)

            written, records_failed = await self._process_chunk(checkpoint)

        except Exception as e:
            return await self._handle_failure(checkpoint, walk, e)

        outcome = IngestionOutcome(
            state=IngestionState.DONE,
            checkpoint=checkpoint,
            transitions=walk.states,
            records_written=written.written_count,
            records_failed=records_failed,
            write_failures=written.failed_count,
        )

        if checkpoint.is_last_chunk:
            walk.move(IngestionState.DONE)
            logger.info(f"✅ Ingestion DONE: {checkpoint.manifest} ({checkpoint.last_chunk_index + 1} chunks)")
            return outcome

        walk.move(IngestionState.CONTINUE)
        next_checkpoint = checkpoint.advance()
        await self._schedule(next_checkpoint, 0)
        outcome.state = IngestionState.CONTINUE
        outcome.next_checkpoint = next_checkpoint
        return outcome

    # ========================================================================
    # PROCESSING
    # ========================================================================

    async def _seed_collection(self) -> None:
        if self.collection.id in ChunkedIngestionController._seeded:
            return
        async with self._seed_lock:
            if self.collection.id in ChunkedIngestionController._seeded:
                return
            await self.writer.upsert_collection(self.collection)
            ChunkedIngestionController._seeded.add(self.collection.id)
            logger.info(f"✅ Collection seeded: {self.collection.id}")

    async def _measure(self, checkpoint: IngestionCheckpoint) -> IngestionCheckpoint:
        loop = asyncio.get_running_loop()
        last = await loop.run_in_executor(
            None,
            self.manifest_reader.last_chunk_index,
            checkpoint.bucket,
            checkpoint.key,
            self.config.chunk_size,
        )
        logger.info(f"📊 {checkpoint.manifest}: lastChunkIndex={last} (chunk size {self.config.chunk_size})")
        return checkpoint.with_last_chunk_index(last)

    async def _process_chunk(self, checkpoint: IngestionCheckpoint):
        loop = asyncio.get_running_loop()
        rows = await loop.run_in_executor(
            None,
            self.manifest_reader.read_chunk,
            checkpoint.bucket,
            checkpoint.key,
            checkpoint.current_chunk_index,
            self.config.chunk_size,
        )
        logger.info(f"📋 Read {len(rows)} row(s) for chunk {checkpoint.current_chunk_index}")

        stream = TransformStream(
            self.normalizer,
            max_consecutive_enrichment_failures=self.config.max_consecutive_enrichment_failures,
        )
        result = BulkWriteResult()
        batch: List[CatalogRecord] = []

        async for record in stream.records(rows):
            batch.append(record)
            if len(batch) >= self.config.index_batch_size:
                result.merge(await self._write(batch))
                batch = []
        if batch:
            result.merge(await self._write(batch))

        logger.info(
            f"📊 Chunk {checkpoint.current_chunk_index}: {stream.stats.succeeded}/{stream.stats.processed} "
            f"normalized, {result.written_count} written, {result.failed_count} rejected by index",
            extra={'custom_dimensions': {**_dims(checkpoint), **stream.stats.to_dict()}}
        )
        return result, stream.stats.failed

    async def _write(self, batch: List[CatalogRecord]) -> BulkWriteResult:
        result = await self.writer.bulk_upsert(batch, "id")
        for record_id, error in result.failed.items():
            logger.warning(f"⚠️ Index write failed for {record_id}: {error}")
        return result

    # ========================================================================
    # FAILURE HANDLING
    # ========================================================================

    async def _handle_failure(
        self,
        checkpoint: IngestionCheckpoint,
        walk: _Walk,
        error: Exception,
    ) -> IngestionOutcome:
        code = classify_exception(error)

        if not is_retryable(code):
            walk.move(IngestionState.FAILED)
            logger.error(
                f"❌ Ingestion FAILED ({code.value}) for {checkpoint.manifest} "
                f"chunk {checkpoint.current_chunk_index}: {error}",
                exc_info=True,
                extra={'custom_dimensions': {**_dims(checkpoint), 'error_code': code.value,
                                             'checkpoint': checkpoint.to_message()}}
            )
            return IngestionOutcome(
                state=IngestionState.FAILED, checkpoint=checkpoint,
                transitions=walk.states, error=str(error),
            )

        if checkpoint.retry_count >= self.config.max_retries:
            walk.move(IngestionState.FAILED)
            ceiling = RetryCeilingExceeded(checkpoint, error)
            logger.error(
                f"❌ {ceiling}",
                extra={'custom_dimensions': {**_dims(checkpoint), 'error_code': code.value,
                                             'checkpoint': checkpoint.to_message()}}
            )
            return IngestionOutcome(
                state=IngestionState.FAILED, checkpoint=checkpoint,
                transitions=walk.states, error=str(ceiling),
            )

        walk.move(IngestionState.RETRY)
        next_checkpoint = checkpoint.retry()
        delay = self.config.backoff_seconds(next_checkpoint.retry_count)
        logger.warning(
            f"⚠️ Chunk {checkpoint.current_chunk_index} of {checkpoint.manifest} failed ({code.value}), "
            f"retry {next_checkpoint.retry_count}/{self.config.max_retries} in {delay}s: {error}",
            extra={'custom_dimensions': {**_dims(checkpoint), 'error_code': code.value}}
        )
        await self._schedule(next_checkpoint, delay)
        return IngestionOutcome(
            state=IngestionState.RETRY,
            checkpoint=checkpoint,
            transitions=walk.states,
            next_checkpoint=next_checkpoint,
            delay_seconds=delay,
            error=str(error),
        )

    async def _schedule(self, checkpoint: IngestionCheckpoint, delay_seconds: int) -> None:
        queue_name = checkpoint.invocation_reference or self.default_queue
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, self.scheduler.send_checkpoint, checkpoint, delay_seconds, queue_name
        )


def _fmt_last(checkpoint: IngestionCheckpoint) -> str:
    return "?" if checkpoint.last_chunk_index is None else str(checkpoint.last_chunk_index)


def _dims(checkpoint: IngestionCheckpoint) -> dict:
    return {
        'manifest': checkpoint.manifest,
        'chunk_index': checkpoint.current_chunk_index,
        'last_chunk_index': checkpoint.last_chunk_index,
        'retry_count': checkpoint.retry_count,
    }


def create_controller(config=None) -> ChunkedIngestionController:
    """Controller wired to pgSTAC, Blob Storage, Service Bus and the tileInfo endpoint."""
    if config is None:
        from config import get_config
        config = get_config()

    from infrastructure.blob import BlobRepository
    from infrastructure.manifest_reader import ManifestReader
    from infrastructure.pgstac_repository import get_pgstac_repository
    from infrastructure.service_bus import get_service_bus_repository
    from services.record_normalizer import RecordNormalizer
    from services.sentinel_collection import get_collection_registry
    from services.tile_info_client import TileInfoClient

    collection = get_collection_registry().get(config.ingest.collection_id)
    if collection is None:
        from services.sentinel_collection import SENTINEL_2_L1C
        collection = SENTINEL_2_L1C.model_copy(update={"id": config.ingest.collection_id})

    normalizer = RecordNormalizer(
        TileInfoClient(config.ingest.metadata_base_url, timeout=config.ingest.http_timeout_seconds),
        tile_base_url=config.ingest.tile_base_url,
        metadata_base_url=config.ingest.metadata_base_url,
        collection=collection,
    )
    return ChunkedIngestionController(
        writer=get_pgstac_repository(),
        manifest_reader=ManifestReader(BlobRepository.instance()),
        scheduler=get_service_bus_repository(),
        normalizer=normalizer,
        collection=collection,
        config=config.ingest,
        default_queue=config.queues.ingest_queue,
    )
