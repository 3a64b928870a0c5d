"""
Record Normalizer - Manifest Row to Catalog Record.

Converts one RawTileRecord into a CatalogRecord:

    1. Parse the MGRS designator (zone, band, square, EPSG)
    2. Derive the tile path tiles/{zone}/{band}/{square}/{YYYY}/{M}/{D}/0
    3. Fetch tileInfo.json for the tile (async)
    4. Reproject the data footprint, tile footprint and tile origin to WGS84
    5. Compute the bbox from the reprojected footprint ring
    6. Build band, thumbnail, true-colour and metadata assets

Either a complete record is returned or an exception propagates; partial
records are never produced.

Exports:
    tile_path_for: Tile path for a grid and sensing time
    RecordNormalizer: Async normalizer
"""

from datetime import datetime
from typing import Any, Dict, Optional

from core.models.collection import CollectionDescriptor
from core.models.grid import ParsedGrid, parse_mgrs
from core.models.records import CatalogRecord, RawTileRecord
from services.geometry_reprojector import GeometryReprojector, get_reprojector
from services.sentinel_collection import JP2_MEDIA_TYPE, SENTINEL_2_L1C
from services.tile_info_client import TileInfoClient
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "RecordNormalizer")


def tile_path_for(grid: ParsedGrid, sensing_time: datetime) -> str:
    """
    Tile path in the public Sentinel-2 bucket layout (month and day unpadded).

    Example:
        >>> tile_path_for(parse_mgrs("33UXP"), datetime(2020, 5, 1, 10))
        'tiles/33/U/XP/2020/5/1/0'
    """
    return "/".join([
        "tiles",
        str(grid.utm_zone),
        grid.latitude_band,
        grid.grid_square,
        f"{sensing_time.year:04d}",
        str(sensing_time.month),
        str(sensing_time.day),
        "0",
    ])


class RecordNormalizer:
    """
    Stateless per-record transformer (besides the shared HTTP client).

    Usage:
        normalizer = RecordNormalizer(tile_client, tile_base_url=..., metadata_base_url=...)
        record = await normalizer.normalize(raw)
    """

    def __init__(
        self,
        tile_client: TileInfoClient,
        tile_base_url: str,
        metadata_base_url: str,
        collection: CollectionDescriptor = SENTINEL_2_L1C,
        reprojector: Optional[GeometryReprojector] = None
    ):
        self.tile_client = tile_client
        self.tile_base_url = tile_base_url.rstrip('/')
        self.metadata_base_url = metadata_base_url.rstrip('/')
        self.collection = collection
        self.reprojector = reprojector or get_reprojector()

    async def normalize(self, raw: RawTileRecord) -> CatalogRecord:
        """
        Build the catalog record for one manifest row.

        Raises:
            MalformedGridCode: Bad MGRS designator
            EnrichmentFailed: tileInfo.json unavailable
            UnknownCRS / SelfIntersectingGeometry / UnsupportedGeometry: Bad geometry
        """
        grid = parse_mgrs(raw.mgrs_tile)
        tile_path = tile_path_for(grid, raw.sensing_time)

        info = await self.tile_client.fetch(tile_path)

        geometry = self.reprojector.reproject(info.footprint)
        tile_geometry = self.reprojector.reproject(info.tile_geometry)
        tile_origin = self.reprojector.reproject(info.tile_origin) if info.tile_origin else None
        bbox = self.reprojector.compute_bbox(geometry)

        properties: Dict[str, Any] = {
            "eo:platform": info.platform,
            "eo:cloud_cover": raw.cloud_cover,
            "eo:epsg": str(grid.epsg),
            "sentinel:product_id": raw.product_id,
            "sentinel:utm_zone": grid.utm_zone,
            "sentinel:latitude_band": grid.latitude_band,
            "sentinel:grid_square": grid.grid_square,
            "sentinel:tile_geometry": tile_geometry,
        }
        if tile_origin is not None:
            properties["sentinel:tile_origin"] = tile_origin

        record = CatalogRecord(
            id=raw.granule_id,
            collection=self.collection.id,
            datetime=raw.sensing_time,
            bbox=bbox,
            geometry=geometry,
            properties=properties,
            assets=self._build_assets(tile_path),
            links=[],
        )
        logger.debug(f"✅ Normalized {raw.granule_id} ({grid.designator}, EPSG:{grid.epsg})")
        return record

    def _build_assets(self, tile_path: str) -> Dict[str, Dict[str, Any]]:
        tile_url = f"{self.tile_base_url}/{tile_path}"
        metadata_url = f"{self.metadata_base_url}/{tile_path}"

        assets: Dict[str, Dict[str, Any]] = {}
        # eo:bands indices follow the collection's band order
        for index, band in enumerate(self.collection.band_names):
            template = self.collection.item_assets.get(band, {})
            assets[band] = {
                "href": f"{tile_url}/{band}.jp2",
                "type": JP2_MEDIA_TYPE,
                "title": template.get("title", band),
                "eo:bands": [index],
            }

        assets["thumbnail"] = {
            "href": f"{metadata_url}/preview.jpg",
            "type": "image/jpeg",
            "title": "Thumbnail",
        }
        assets["tki"] = {
            "href": f"{tile_url}/TKI.jp2",
            "type": JP2_MEDIA_TYPE,
            "title": "True Color Image",
            "description": "True Color Image",
        }
        assets["metadata"] = {
            "href": f"{metadata_url}/metadata.xml",
            "type": "application/xml",
            "title": "Original XML metadata",
        }
        return assets
