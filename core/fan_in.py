# ============================================================================
# FAN-IN DISPATCHER - Message batch to catalog index
# ============================================================================
# PURPOSE: Resolve a batch of catalog-item messages and write them in one go
# PATTERN: Per-message MessageResult, failures logged and excluded
# ============================================================================
"""
Message Fan-in Dispatcher.

Turns a batch of heterogeneous inbound messages into canonical records and
hands them to the index writer in a single bulk upsert.

Message shapes (see core.models.messages):

    DIRECT        STAC Item (or STAC Collection) used as-is
    NOTIFICATION  {"Type": "Notification", "Message": "<json>"}, re-parsed,
                  then handled as DIRECT or REFERENCE
    REFERENCE     {"href": uri}, dereferenced through ReferenceFetcher

Every message of the batch is resolved concurrently, bounded by a
semaphore. A message that fails is logged with its id and excluded; the
rest of the batch carries on. A non-empty batch where nothing resolved
raises FanInBatchFailed so the queue redelivers it.

Usage:
    dispatcher = create_fan_in_dispatcher()
    summary = await dispatcher.dispatch(["{...}", b"{...}", {...}])

Exports:
    FanInDispatcher
    FanInBatch: resolve_batch() result
    create_fan_in_dispatcher: Factory wired from config
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Set

import psycopg
import pystac

from core.models.enums import MessageKind
from core.models.messages import InboundMessage
from core.models.records import CatalogRecord
from core.models.results import BulkWriteResult, MessageResult
from exceptions import BusinessLogicError, FanInBatchFailed, IndexWriteFailed
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.CONTROLLER, "FanInDispatcher")

# Errors that mark one message as bad without touching the rest of the batch
MESSAGE_ERRORS = (
    BusinessLogicError,
    ValueError,
    KeyError,
    TypeError,
    pystac.STACError,
    pystac.STACTypeError,
)


@dataclass
class FanInBatch:
    """Resolved view of one message batch."""

    records: List[CatalogRecord] = field(default_factory=list)
    collections: List[Dict[str, Any]] = field(default_factory=list)
    # collection id -> message id it arrived in
    collection_sources: Dict[str, str] = field(default_factory=dict)
    failures: List[MessageResult] = field(default_factory=list)

    @property
    def resolved_count(self) -> int:
        return len(self.records) + len(self.collections)


class FanInDispatcher:
    """
    Resolve and write a batch of catalog-item messages.

    Args:
        writer: IIndexWriter
        reference_fetcher: ReferenceFetcher for REFERENCE messages
        registry: CollectionRegistry of descriptors ensured before writes
        concurrency: Messages resolved at once
        default_collection: Collection for items that do not name one
    """

    # Collection ids ensured in this process
    _ensured: ClassVar[Set[str]] = set()

    def __init__(
        self,
        writer,
        reference_fetcher,
        registry=None,
        concurrency: int = 10,
        default_collection: Optional[str] = None,
    ):
        self.writer = writer
        self.reference_fetcher = reference_fetcher
        self.registry = registry
        self.concurrency = max(1, concurrency)
        self.default_collection = default_collection

    # ========================================================================
    # RESOLUTION
    # ========================================================================

    async def resolve(self, messages: Sequence[Any]) -> List[CatalogRecord]:
        """Records resolved from the batch, in batch order. Failures are logged and excluded."""
        batch = await self.resolve_batch(messages)
        return batch.records

    async def resolve_batch(self, messages: Sequence[Any]) -> FanInBatch:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(position: int, message: Any) -> MessageResult:
            async with semaphore:
                return await self._resolve_one(message, position)

        results = await asyncio.gather(*(bounded(i, m) for i, m in enumerate(messages)))

        batch = FanInBatch()
        for result in results:
            if result.error is not None:
                batch.failures.append(result)
            elif result.collection is not None:
                batch.collections.append(result.collection)
                batch.collection_sources[result.collection["id"]] = result.message_id
            elif result.record is not None:
                batch.records.append(result.record)

        logger.info(
            f"📊 Fan-in resolved {batch.resolved_count}/{len(messages)} message(s), "
            f"{len(batch.failures)} failed"
        )
        return batch

    async def _resolve_one(self, message: Any, position: int) -> MessageResult:
        message_id = _message_id(message, position)
        try:
            envelope = message if isinstance(message, InboundMessage) else InboundMessage.from_raw(
                _message_body(message), message_id
            )
            envelope = envelope.unwrap()

            if envelope.kind is MessageKind.REFERENCE:
                payload = await self.reference_fetcher.fetch(envelope.href)
                if not isinstance(payload, dict):
                    raise ValueError(f"referenced payload at {envelope.href} is not a JSON object")
                if InboundMessage.classify(payload, message_id).kind is not MessageKind.DIRECT:
                    raise ValueError(f"referenced payload at {envelope.href} is itself an envelope")
            else:
                payload = envelope.payload

            return self._to_result(payload, message_id)

        except MESSAGE_ERRORS as e:
            logger.warning(
                f"⚠️ message {message_id} excluded: {e}",
                extra={'custom_dimensions': {
                    'message_id': message_id,
                    'error_type': type(e).__name__,
                }}
            )
            return MessageResult(message_id=message_id, error=e)
        except Exception as e:
            logger.error(
                f"❌ message {message_id} excluded, unexpected {type(e).__name__}: {e}",
                exc_info=True,
                extra={'custom_dimensions': {
                    'message_id': message_id,
                    'error_type': type(e).__name__,
                }}
            )
            return MessageResult(message_id=message_id, error=e)

    def _to_result(self, payload: Dict[str, Any], message_id: str) -> MessageResult:
        if payload.get("type") == "Collection":
            if not payload.get("id"):
                raise ValueError("collection has no id")
            return MessageResult(message_id=message_id, collection=payload)
        record = CatalogRecord.from_stac_item(payload, default_collection=self.default_collection)
        return MessageResult(message_id=message_id, record=record)

    # ========================================================================
    # DISPATCH
    # ========================================================================

    async def dispatch(self, messages: Sequence[Any]) -> Dict[str, Any]:
        """
        Resolve the batch and write it.

        Order: inbound collections, then registered descriptors for the
        collections the records reference, then the records themselves.

        Raises:
            FanInBatchFailed: Non-empty batch with nothing resolved
            IndexWriteFailed: Index connection failure
        """
        batch = await self.resolve_batch(messages)

        if messages and batch.resolved_count == 0:
            logger.error(f"❌ All {len(messages)} message(s) in batch failed to resolve")
            raise FanInBatchFailed([(f.message_id, str(f.error)) for f in batch.failures])

        upserted = await self._upsert_collections(batch)
        await self._ensure_collections(batch.records)

        write_result = BulkWriteResult()
        if batch.records:
            write_result = await self.writer.bulk_upsert(batch.records, "id")

        summary = {
            'messages': len(messages),
            'records': len(batch.records),
            'collections': upserted,
            'failed_messages': {f.message_id: str(f.error) for f in batch.failures},
            'written': write_result.written_count,
            'write_failures': dict(write_result.failed),
        }
        logger.info(
            f"✅ Fan-in dispatched {write_result.written_count} record(s), "
            f"{upserted} collection(s)",
            extra={'custom_dimensions': {k: v for k, v in summary.items() if not isinstance(v, dict)}}
        )
        return summary

    async def _upsert_collections(self, batch: FanInBatch) -> int:
        """
        Upsert inbound collections one at a time.

        A collection the index rejects is moved to batch.failures; a lost
        connection still aborts the batch as IndexWriteFailed.
        """
        upserted = 0
        for collection in batch.collections:
            collection_id = collection["id"]
            message_id = batch.collection_sources.get(collection_id, collection_id)
            try:
                await self.writer.upsert_collection(collection)
            except IndexWriteFailed:
                raise
            except psycopg.OperationalError as e:
                raise IndexWriteFailed(f"collection upsert failed for '{collection_id}': {e}") from e
            except (psycopg.Error, ValueError) as e:
                logger.warning(
                    f"⚠️ message {message_id} excluded, index rejected collection '{collection_id}': {e}",
                    extra={'custom_dimensions': {
                        'message_id': message_id,
                        'collection_id': collection_id,
                        'error_type': type(e).__name__,
                    }}
                )
                batch.failures.append(MessageResult(message_id=message_id, collection=collection, error=e))
                continue
            FanInDispatcher._ensured.add(collection_id)
            upserted += 1
        return upserted

    async def _ensure_collections(self, records: Sequence[CatalogRecord]) -> None:
        if self.registry is None:
            return
        referenced = []
        for record in records:
            if record.collection not in referenced:
                referenced.append(record.collection)
        for collection_id in referenced:
            if collection_id in FanInDispatcher._ensured:
                continue
            descriptor = self.registry.get(collection_id)
            if descriptor is None:
                continue
            await self.writer.ensure_collection(descriptor)
            FanInDispatcher._ensured.add(collection_id)

    @classmethod
    def reset_ensured(cls) -> None:
        """Forget which collections were ensured (tests)."""
        cls._ensured.clear()


def _message_id(message: Any, position: int) -> str:
    if isinstance(message, InboundMessage):
        return message.message_id
    message_id = getattr(message, "message_id", None)
    return str(message_id) if message_id else f"msg-{position}"


def _message_body(message: Any) -> Any:
    """Body of an azure.functions.ServiceBusMessage, or the message itself."""
    get_body = getattr(message, "get_body", None)
    if callable(get_body):
        return get_body()
    return message


def create_fan_in_dispatcher(config=None) -> FanInDispatcher:
    if config is None:
        from config import get_config
        config = get_config()

    from infrastructure.pgstac_repository import get_pgstac_repository
    from services.reference_fetcher import create_reference_fetcher
    from services.sentinel_collection import get_collection_registry

    return FanInDispatcher(
        writer=get_pgstac_repository(),
        reference_fetcher=create_reference_fetcher(config),
        registry=get_collection_registry(),
        concurrency=config.ingest.fan_in_concurrency,
        default_collection=None,
    )
