"""
Record Data Models.

RawTileRecord is one row of a tile manifest as read from storage;
CatalogRecord is the canonical, index-ready form produced by the record
normalizer or resolved by the fan-in dispatcher.

Exports:
    STAC_VERSION: STAC version written to the index
    RawTileRecord: Manifest row
    CatalogRecord: Normalized catalog record
    format_datetime: UTC ISO-8601 with millisecond precision and Z suffix
"""

from datetime import datetime, timezone
from typing import Dict, Any, Optional, List

import pystac
from pydantic import BaseModel, ConfigDict, Field, field_validator
from shapely.geometry import shape

STAC_VERSION = "1.0.0"

# Alias so the CatalogRecord.datetime field does not shadow the type
Timestamp = datetime


def format_datetime(value: datetime) -> str:
    """
    Render a datetime as UTC ISO-8601, e.g. 2020-05-01T10:00:00.000Z.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class RawTileRecord(BaseModel):
    """
    One manifest row (a Sentinel-2 granule).

    Built from the manifest's upper-case column names; extra columns are
    ignored. The MGRS designator is kept verbatim and parsed later so that
    a malformed code fails that record only.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    sensing_time: datetime = Field(..., alias="SENSING_TIME")
    mgrs_tile: str = Field(..., alias="MGRS_TILE")
    cloud_cover: int = Field(..., alias="CLOUD_COVER", description="Whole percent, leading number truncated")
    product_id: str = Field(..., alias="PRODUCT_ID")
    granule_id: str = Field(..., alias="GRANULE_ID")

    @field_validator("sensing_time")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("cloud_cover", mode="before")
    @classmethod
    def _parse_cloud_cover(cls, v):
        # "12.7" -> 12, " 12 " -> 12
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("CLOUD_COVER is empty")
            return int(float(v))
        if isinstance(v, float):
            return int(v)
        return v

    @field_validator("mgrs_tile", "product_id", "granule_id", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class CatalogRecord(BaseModel):
    """
    Canonical catalog record.

    Invariants: datetime is UTC, bbox is [min_lon, min_lat, max_lon, max_lat]
    and geometry is WGS84. Immutable once built.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    collection: str = Field(..., min_length=1)
    datetime: Optional[Timestamp] = Field(default=None, description="Acquisition time (UTC)")
    bbox: Optional[List[float]] = Field(default=None)
    geometry: Optional[Dict[str, Any]] = Field(default=None)
    properties: Dict[str, Any] = Field(default_factory=dict)
    assets: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    links: List[Dict[str, Any]] = Field(default_factory=list)
    stac_extensions: List[str] = Field(default_factory=list)

    @field_validator("bbox")
    @classmethod
    def _check_bbox(cls, v):
        if v is not None and len(v) not in (4, 6):
            raise ValueError(f"bbox must have 4 or 6 values, got {len(v)}")
        return v

    def to_stac_item(self) -> Dict[str, Any]:
        """Render as a STAC Item dict (datetime moved into properties)."""
        properties = {"datetime": format_datetime(self.datetime) if self.datetime else None}
        properties.update(self.properties)
        return {
            "type": "Feature",
            "stac_version": STAC_VERSION,
            "stac_extensions": list(self.stac_extensions),
            "id": self.id,
            "collection": self.collection,
            "geometry": self.geometry,
            "bbox": self.bbox,
            "properties": properties,
            "assets": self.assets,
            "links": self.links,
        }

    @classmethod
    def from_stac_item(cls, payload: Dict[str, Any], default_collection: Optional[str] = None) -> "CatalogRecord":
        """
        Build a record from an inbound STAC Item dict.

        The payload is parsed with pystac so malformed items fail here, at the
        message that carried them.

        Raises:
            ValueError: No collection on the item and no default given
            KeyError / TypeError / pystac errors: Malformed item
        """
        item = pystac.Item.from_dict(payload, preserve_dict=True, migrate=False)

        collection = payload.get("collection") or item.collection_id or default_collection
        if not collection:
            raise ValueError(f"item {item.id!r} has no collection")

        properties = {k: v for k, v in payload.get("properties", {}).items() if k != "datetime"}

        bbox = payload.get("bbox")
        if bbox is None and item.geometry:
            bbox = list(shape(item.geometry).bounds)

        return cls(
            id=item.id,
            collection=collection,
            datetime=item.datetime,
            bbox=bbox,
            geometry=item.geometry,
            properties=properties,
            assets=payload.get("assets", {}),
            links=[link for link in payload.get("links", []) if link.get("rel") != "self"],
            stac_extensions=payload.get("stac_extensions", []),
        )
