"""
PgSTAC Repository - Catalog Index Writes

Writes collections and items into the pgSTAC schema through its SQL
functions (create_collection, upsert_collection, upsert_item).

Key Responsibilities:
- Create a collection if absent (race tolerant)
- Upsert collections from descriptors or inbound STAC Collection dicts
- Bulk upsert items, one savepoint per record so a bad record never rolls
  back its neighbours

Connections come from an injected IndexConnectionManager (async pool).
"""

import json
from typing import Any, Dict, Optional, Sequence, Union

import psycopg
from psycopg import errors as pg_errors
from psycopg import sql

from core.models.collection import CollectionDescriptor
from core.models.records import CatalogRecord
from core.models.results import BulkWriteResult
from exceptions import IndexWriteFailed
from interfaces.repository import IIndexWriter
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PgStacRepository")

Writable = Union[CatalogRecord, Dict[str, Any]]


class PgStacRepository(IIndexWriter):
    """
    Repository for pgSTAC collection and item writes.

    Args:
        connection_manager: IndexConnectionManager (or anything with an
            async `connection()` context manager)
        schema: pgSTAC schema name
    """

    def __init__(self, connection_manager, schema: str = "pgstac"):
        self._connections = connection_manager
        self.schema = schema

    def _fn(self, name: str) -> sql.Composed:
        return sql.SQL("SELECT {}.{}(%s::jsonb)").format(sql.Identifier(self.schema), sql.Identifier(name))

    # =========================================================================
    # COLLECTION OPERATIONS
    # =========================================================================

    async def collection_exists(self, collection_id: str) -> bool:
        query = sql.SQL("SELECT EXISTS(SELECT 1 FROM {}.collections WHERE id = %s)").format(
            sql.Identifier(self.schema)
        )
        try:
            async with self._connections.connection() as conn:
                cur = await conn.execute(query, (collection_id,))
                row = await cur.fetchone()
        except psycopg.OperationalError as e:
            raise IndexWriteFailed(f"collection lookup failed for '{collection_id}': {e}") from e
        return bool(row and row[0])

    async def ensure_collection(self, descriptor: CollectionDescriptor) -> bool:
        """
        Create the collection if it does not exist.

        A concurrent creator winning the race surfaces as UniqueViolation,
        which is logged at debug and treated as "already present".

        Returns:
            True if this call created the collection
        """
        collection_id = descriptor.id
        if await self.collection_exists(collection_id):
            logger.debug(f"Collection '{collection_id}' already present")
            return False

        payload = json.dumps(descriptor.to_stac_collection())
        try:
            async with self._connections.connection() as conn:
                await conn.execute(self._fn("create_collection"), (payload,))
        except pg_errors.UniqueViolation:
            logger.debug(f"Collection '{collection_id}' created concurrently, skipping")
            return False
        except psycopg.OperationalError as e:
            raise IndexWriteFailed(f"collection create failed for '{collection_id}': {e}") from e

        logger.info(f"✅ Collection created: {collection_id}")
        return True

    async def upsert_collection(self, collection: Union[CollectionDescriptor, Dict[str, Any]]) -> str:
        if isinstance(collection, CollectionDescriptor):
            content = collection.to_stac_collection()
        else:
            content = dict(collection)

        collection_id = content.get("id")
        if not collection_id:
            raise ValueError("collection has no id")

        logger.info(f"🔄 Upserting collection: {collection_id}")
        try:
            async with self._connections.connection() as conn:
                await conn.execute(self._fn("upsert_collection"), (json.dumps(content),))
        except psycopg.OperationalError as e:
            raise IndexWriteFailed(f"collection upsert failed for '{collection_id}': {e}") from e

        logger.info(f"✅ Collection upserted: {collection_id}")
        return collection_id

    # =========================================================================
    # ITEM OPERATIONS
    # =========================================================================

    async def bulk_upsert(self, records: Sequence[Writable], key_field: str = "id") -> BulkWriteResult:
        """
        Upsert a batch of records keyed by key_field.

        Duplicate keys within the batch collapse to the last occurrence.
        Each record is written in its own savepoint; a record the database
        rejects lands in `failed` and the batch carries on.

        Raises:
            IndexWriteFailed: Connection-level failure (pool timeout, lost connection)
        """
        result = BulkWriteResult()
        unique = dedupe_last_wins(records, key_field)
        result.duplicates_dropped = len(records) - len(unique)
        if not unique:
            return result

        if result.duplicates_dropped:
            logger.debug(f"Dropped {result.duplicates_dropped} duplicate key(s) from batch")

        upsert_item = self._fn("upsert_item")
        try:
            async with self._connections.connection() as conn:
                async with conn.transaction():
                    for key, record in unique.items():
                        payload = json.dumps(_item_payload(record))
                        try:
                            async with conn.transaction():
                                await conn.execute(upsert_item, (payload,))
                        except psycopg.OperationalError:
                            raise
                        except psycopg.Error as e:
                            result.failed[key] = str(e).strip()
                            logger.warning(f"⚠️ Index rejected {key}: {e}")
                        else:
                            result.written.append(key)
        except psycopg.OperationalError as e:
            logger.error(f"❌ Index connection failure during bulk upsert: {e}")
            raise IndexWriteFailed(f"bulk upsert of {len(unique)} record(s) failed: {e}") from e

        logger.info(
            f"📊 Bulk upsert: {result.written_count} written, {result.failed_count} failed",
            extra={'custom_dimensions': {
                'written': result.written_count,
                'failed': result.failed_count,
                'duplicates_dropped': result.duplicates_dropped,
            }}
        )
        return result


def _key_of(record: Writable, key_field: str) -> Optional[str]:
    if isinstance(record, dict):
        value = record.get(key_field)
    else:
        value = getattr(record, key_field, None)
    return None if value is None else str(value)


def _item_payload(record: Writable) -> Dict[str, Any]:
    if isinstance(record, CatalogRecord):
        return record.to_stac_item()
    return dict(record)


def dedupe_last_wins(records: Sequence[Writable], key_field: str = "id") -> Dict[str, Writable]:
    """Keyed view of records; a later record replaces an earlier one with the same key."""
    unique: Dict[str, Writable] = {}
    for record in records:
        key = _key_of(record, key_field)
        if key is None:
            raise ValueError(f"record has no '{key_field}'")
        unique[key] = record
    return unique


def get_pgstac_repository() -> PgStacRepository:
    from config import get_config
    from infrastructure.connection_pool import get_connection_manager

    return PgStacRepository(get_connection_manager(), schema=get_config().database.pgstac_schema)
