"""
Randomized record factories and in-memory collaborators.

Factories randomize non-identity fields (cloud cover, product id suffixes)
so tests cannot lean on specific defaults. The fakes stand in for pgSTAC,
Blob Storage, Service Bus and the manifest reader.
"""

import json
import random
import string
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from core.models.grid import parse_mgrs
from core.models.records import CatalogRecord, RawTileRecord
from core.models.results import BulkWriteResult
from exceptions import EnrichmentFailed, IndexWriteFailed, ManifestNotFound
from infrastructure.blob import IBlobRepository
from infrastructure.manifest_reader import last_chunk_index_for
from interfaces.repository import IContinuationScheduler, IIndexWriter

UTM_33N = "urn:ogc:def:crs:EPSG:8.8.1:32633"
TILE_BASE = "https://tiles.example.com/sentinel-s2-l1c"
METADATA_BASE = "https://meta.example.com/sentinel-s2-l1c"


def _random_suffix(length: int = 6) -> str:
    return "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


# ============================================================================
# MANIFEST ROWS
# ============================================================================

def make_manifest_row(granule_id: Optional[str] = None, **overrides) -> Dict[str, str]:
    """One manifest row as read by ManifestReader (all strings)."""
    suffix = _random_suffix()
    row = {
        "GRANULE_ID": granule_id or f"L1C_T33UXP_A{suffix}",
        "PRODUCT_ID": f"S2A_MSIL1C_20200501T100031_N0209_R122_T33UXP_{suffix}",
        "MGRS_TILE": "33UXP",
        "SENSING_TIME": "2020-05-01T10:00:00Z",
        "CLOUD_COVER": str(random.randint(0, 100)),
        "TOTAL_SIZE": str(random.randint(1_000_000, 900_000_000)),
    }
    row.update(overrides)
    return row


def make_manifest_rows(count: int, prefix: str = "G") -> List[Dict[str, str]]:
    return [make_manifest_row(granule_id=f"{prefix}{i}") for i in range(count)]


def manifest_csv(rows: Sequence[Dict[str, str]]) -> bytes:
    """Serialize rows as a manifest CSV."""
    if not rows:
        return b""
    columns = list(rows[0].keys())
    lines = [",".join(columns)]
    for row in rows:
        lines.append(",".join(row.get(c, "") for c in columns))
    return ("\n".join(lines) + "\n").encode("utf-8")


# ============================================================================
# TILE INFO
# ============================================================================

def utm_polygon(x0: float = 600000.0, y0: float = 5400000.0, size: float = 109800.0,
                crs: str = UTM_33N) -> Dict[str, Any]:
    """Closed square ring in UTM metres, counter-clockwise."""
    return {
        "type": "Polygon",
        "crs": {"type": "name", "properties": {"name": crs}},
        "coordinates": [[
            [x0, y0 - size],
            [x0 + size, y0 - size],
            [x0 + size, y0],
            [x0, y0],
            [x0, y0 - size],
        ]],
    }


def make_tile_info(product_name: Optional[str] = None, **overrides) -> Dict[str, Any]:
    """tileInfo.json for tile 33UXP."""
    info = {
        "path": "tiles/33/U/XP/2020/5/1/0",
        "productName": product_name or f"S2A_MSIL1C_20200501T100031_N0209_R122_T33UXP_{_random_suffix()}",
        "utmZone": 33,
        "latitudeBand": "U",
        "gridSquare": "XP",
        "tileGeometry": utm_polygon(),
        "tileDataGeometry": utm_polygon(x0=620000.0, y0=5380000.0, size=60000.0),
        "tileOrigin": {
            "type": "Point",
            "crs": {"type": "name", "properties": {"name": UTM_33N}},
            "coordinates": [600000.0, 5400000.0],
        },
    }
    info.update(overrides)
    return info


def tile_info_transport(
    info: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
    handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
) -> httpx.MockTransport:
    """MockTransport answering every tileInfo.json request with the same document."""
    if handler is None:
        document = info if info is not None else make_tile_info()

        def handler(request: httpx.Request) -> httpx.Response:
            if status_code != 200:
                return httpx.Response(status_code, text="error")
            return httpx.Response(200, json=document)

    return httpx.MockTransport(handler)


# ============================================================================
# STAC ITEMS
# ============================================================================

def make_stac_item(item_id: Optional[str] = None, collection: str = "sentinel-2-l1c", **overrides) -> Dict[str, Any]:
    item = {
        "type": "Feature",
        "stac_version": "1.0.0",
        "id": item_id or f"item-{_random_suffix()}",
        "collection": collection,
        "geometry": {
            "type": "Polygon",
            "coordinates": [[[16.0, 48.0], [17.0, 48.0], [17.0, 49.0], [16.0, 49.0], [16.0, 48.0]]],
        },
        "bbox": [16.0, 48.0, 17.0, 49.0],
        "properties": {"datetime": "2020-05-01T10:00:00Z", "eo:cloud_cover": random.randint(0, 100)},
        "assets": {},
        "links": [],
    }
    item.update(overrides)
    return item


def notification_envelope(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"Type": "Notification", "MessageId": _random_suffix(), "Message": json.dumps(payload)}


# ============================================================================
# FAKES
# ============================================================================

class FakeNormalizer:
    """
    Normalizer without HTTP: parses the grid code and builds a minimal record.

    transient_failures: granule ids that raise a transient EnrichmentFailed
    """

    def __init__(self, collection_id: str = "sentinel-2-l1c", transient_failures: Sequence[str] = ()):
        self.collection_id = collection_id
        self.transient_failures = set(transient_failures)
        self.calls: List[str] = []

    async def normalize(self, raw: RawTileRecord) -> CatalogRecord:
        self.calls.append(raw.granule_id)
        grid = parse_mgrs(raw.mgrs_tile)
        if raw.granule_id in self.transient_failures:
            raise EnrichmentFailed(f"https://tiles/{raw.granule_id}", "HTTP 503", status_code=503, transient=True)
        return CatalogRecord(
            id=raw.granule_id,
            collection=self.collection_id,
            datetime=raw.sensing_time,
            bbox=[0.0, 0.0, 1.0, 1.0],
            geometry={"type": "Point", "coordinates": [0.5, 0.5]},
            properties={"eo:epsg": str(grid.epsg), "eo:cloud_cover": raw.cloud_cover},
        )


class InMemoryIndexWriter(IIndexWriter):
    """
    Index keyed by record id.

    fail_ids: ids the "database" rejects (per-record failure)
    connection_failures: number of bulk_upsert calls that raise IndexWriteFailed first
    """

    def __init__(self, fail_ids: Sequence[str] = (), connection_failures: int = 0):
        self.items: Dict[str, Dict[str, Any]] = {}
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.fail_ids = set(fail_ids)
        self.connection_failures = connection_failures
        self.bulk_calls: List[List[str]] = []
        self.upsert_collection_calls: List[str] = []
        self.ensure_calls: List[str] = []

    async def ensure_collection(self, descriptor) -> bool:
        self.ensure_calls.append(descriptor.id)
        if descriptor.id in self.collections:
            return False
        self.collections[descriptor.id] = descriptor.to_stac_collection()
        return True

    async def upsert_collection(self, collection) -> str:
        content = collection if isinstance(collection, dict) else collection.to_stac_collection()
        self.collections[content["id"]] = content
        self.upsert_collection_calls.append(content["id"])
        return content["id"]

    async def bulk_upsert(self, records, key_field: str = "id") -> BulkWriteResult:
        self.bulk_calls.append([getattr(r, key_field) for r in records])
        if self.connection_failures > 0:
            self.connection_failures -= 1
            raise IndexWriteFailed("connection refused")

        result = BulkWriteResult()
        unique = {getattr(r, key_field): r for r in records}
        result.duplicates_dropped = len(records) - len(unique)
        for key, record in unique.items():
            if key in self.fail_ids:
                result.failed[key] = "rejected"
                continue
            self.items[key] = record.to_stac_item()
            result.written.append(key)
        return result


class RecordingScheduler(IContinuationScheduler):
    def __init__(self):
        self.sent: List[tuple] = []

    def send_checkpoint(self, checkpoint, delay_seconds: int = 0, queue_name: Optional[str] = None) -> str:
        self.sent.append((checkpoint, delay_seconds, queue_name))
        return f"msg-{len(self.sent)}"


class InMemoryManifestReader:
    """ManifestReader over an in-memory row list, keyed by (bucket, key)."""

    def __init__(self, manifests: Dict[tuple, List[Dict[str, str]]]):
        self.manifests = manifests
        self.read_calls: List[tuple] = []
        self.count_calls = 0

    def _rows(self, bucket: str, key: str) -> List[Dict[str, str]]:
        if (bucket, key) not in self.manifests:
            raise ManifestNotFound(bucket, key)
        return self.manifests[(bucket, key)]

    def last_chunk_index(self, bucket: str, key: str, chunk_size: int) -> int:
        self.count_calls += 1
        return last_chunk_index_for(len(self._rows(bucket, key)), chunk_size)

    def read_chunk(self, bucket: str, key: str, chunk_index: int, chunk_size: int) -> List[Dict[str, str]]:
        self.read_calls.append((bucket, key, chunk_index))
        rows = self._rows(bucket, key)
        start = chunk_index * chunk_size
        return [dict(r) for r in rows[start:start + chunk_size]]


class InMemoryBlobRepository(IBlobRepository):
    def __init__(self, blobs: Optional[Dict[tuple, bytes]] = None):
        self.blobs = dict(blobs or {})
        self.reads: List[str] = []
        self.writes: List[str] = []

    def read_blob(self, container: str, blob_path: str) -> bytes:
        from azure.core.exceptions import ResourceNotFoundError

        self.reads.append(blob_path)
        if (container, blob_path) not in self.blobs:
            raise ResourceNotFoundError(f"{container}/{blob_path} not found")
        return self.blobs[(container, blob_path)]

    def write_blob(self, container: str, blob_path: str, data: bytes,
                   content_type: str = "application/octet-stream") -> None:
        self.writes.append(blob_path)
        self.blobs[(container, blob_path)] = bytes(data)

    def blob_exists(self, container: str, blob_path: str) -> bool:
        return (container, blob_path) in self.blobs
