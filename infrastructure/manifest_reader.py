"""
Manifest Reader - Chunked CSV Access.

Tile manifests are CSV files (optionally gzip-compressed) in Blob Storage
with one row per granule. A chunk is a contiguous slice of chunk_size data
rows; chunk k covers rows [k*chunk_size, (k+1)*chunk_size) and is stored as
its own blob once the manifest has been split.

All values are read as strings; typing happens in RawTileRecord.

Exports:
    ManifestReader: Row counting, splitting and chunk reads
    last_chunk_index_for: Index of the last chunk for a row count
    chunk_blob_path: Blob path of one chunk
"""

import math
from io import BytesIO
from typing import Any, Dict, List, Optional

import pandas as pd
from azure.core.exceptions import ResourceNotFoundError

from exceptions import ContractViolationError, ManifestNotFound
from infrastructure.blob import IBlobRepository
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "ManifestReader")

_COUNT_CHUNK_ROWS = 50_000

# Chunk blobs live beside the manifest: {key}.chunks/{chunk_size}/chunk-000000.csv
CHUNK_SUFFIX = ".chunks"


def last_chunk_index_for(row_count: int, chunk_size: int) -> int:
    """
    Example:
        >>> last_chunk_index_for(1000, 250)
        3
        >>> last_chunk_index_for(0, 250)
        0
    """
    if chunk_size < 1:
        raise ContractViolationError(f"chunk_size must be >= 1, got {chunk_size}")
    return max(0, math.ceil(row_count / chunk_size) - 1)


def chunk_blob_path(key: str, chunk_size: int, chunk_index: int) -> str:
    return f"{key}{CHUNK_SUFFIX}/{chunk_size}/chunk-{chunk_index:06d}.csv"


class ManifestReader:
    """
    Reads manifests through the blob repository.

    The measuring invocation splits the manifest into one CSV blob per chunk
    (split()); every later invocation downloads only its own chunk blob, so
    the cost of an invocation does not grow with the manifest.

    Synchronous (pandas + Azure SDK); async callers run it in an executor.
    """

    def __init__(self, blob_repo: IBlobRepository):
        self.blob_repo = blob_repo

    def _open(self, bucket: str, key: str) -> BytesIO:
        try:
            return self.blob_repo.read_blob_to_stream(bucket, key)
        except ResourceNotFoundError as e:
            raise ManifestNotFound(bucket, key) from e

    @staticmethod
    def _compression(key: str) -> Optional[str]:
        return "gzip" if key.lower().endswith(".gz") else None

    def count_rows(self, bucket: str, key: str) -> int:
        """Number of data rows (header excluded)."""
        stream = self._open(bucket, key)
        total = 0
        try:
            with pd.read_csv(
                stream,
                dtype=str,
                compression=self._compression(key),
                chunksize=_COUNT_CHUNK_ROWS,
            ) as reader:
                for frame in reader:
                    total += len(frame)
        except pd.errors.EmptyDataError:
            total = 0
        logger.info(f"📊 Manifest {bucket}/{key}: {total} rows")
        return total

    def split(self, bucket: str, key: str, chunk_size: int) -> int:
        """
        Write every chunk of the manifest to its own blob next to it.

        Chunk blobs are plain CSV with the manifest header and are
        overwritten on a re-split, so splitting is idempotent.

        Returns:
            Number of data rows (header excluded)

        Raises:
            ManifestNotFound: Manifest blob does not exist
        """
        if chunk_size < 1:
            raise ContractViolationError(f"chunk_size must be >= 1, got {chunk_size}")

        stream = self._open(bucket, key)
        total = 0
        chunks = 0
        try:
            with pd.read_csv(
                stream,
                dtype=str,
                compression=self._compression(key),
                chunksize=chunk_size,
                keep_default_na=False,
            ) as reader:
                for frame in reader:
                    self.blob_repo.write_blob(
                        bucket,
                        chunk_blob_path(key, chunk_size, chunks),
                        frame.to_csv(index=False).encode("utf-8"),
                        content_type="text/csv",
                    )
                    total += len(frame)
                    chunks += 1
        except pd.errors.EmptyDataError:
            logger.warning(f"⚠️ Manifest {bucket}/{key} is empty")

        logger.info(f"✂️ Split {bucket}/{key}: {total} rows into {chunks} chunk blob(s) of {chunk_size}")
        return total

    def last_chunk_index(self, bucket: str, key: str, chunk_size: int) -> int:
        """Split the manifest and return the index of its last chunk."""
        return last_chunk_index_for(self.split(bucket, key, chunk_size), chunk_size)

    def read_chunk(self, bucket: str, key: str, chunk_index: int, chunk_size: int) -> List[Dict[str, Any]]:
        """
        Rows of one chunk as dicts keyed by column name.

        Reads the chunk's own blob. When it is missing (a checkpoint that
        arrived with lastChunkIndex already set) the manifest is split first.

        Raises:
            ManifestNotFound: Manifest blob does not exist
        """
        if chunk_index < 0 or chunk_size < 1:
            raise ContractViolationError(f"invalid chunk {chunk_index} of size {chunk_size}")

        path = chunk_blob_path(key, chunk_size, chunk_index)
        data = self._read_chunk_blob(bucket, path)
        if data is None:
            logger.info(f"Chunk blob {bucket}/{path} missing, splitting manifest")
            self.split(bucket, key, chunk_size)
            data = self._read_chunk_blob(bucket, path)
        if data is None:
            logger.debug(f"Chunk {chunk_index} of {bucket}/{key} is past the end")
            return []

        frame = pd.read_csv(BytesIO(data), dtype=str, keep_default_na=False)
        rows = frame.to_dict(orient="records")
        logger.debug(f"Read chunk {chunk_index} of {bucket}/{key}: {len(rows)} rows")
        return rows

    def _read_chunk_blob(self, bucket: str, path: str) -> Optional[bytes]:
        try:
            return self.blob_repo.read_blob(bucket, path)
        except ResourceNotFoundError:
            return None
