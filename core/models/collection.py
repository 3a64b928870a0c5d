"""
Collection Descriptor Model.

Static description of a catalog collection (bands, providers, license,
asset templates) seeded into the index before records that reference it.

Exports:
    BandDescriptor: One spectral band
    ProviderDescriptor: One data provider
    CollectionDescriptor: Collection description with STAC rendering
"""

from typing import Dict, Any, Optional, List

import pystac
from pydantic import BaseModel, ConfigDict, Field

from .records import STAC_VERSION


class BandDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    common_name: Optional[str] = None
    gsd: float = Field(..., gt=0, description="Ground sample distance in metres")
    center_wavelength: float = Field(..., gt=0, description="Micrometres")
    full_width_half_max: float = Field(..., gt=0, description="Micrometres")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ProviderDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: Optional[str] = None
    roles: List[str] = Field(default_factory=list)


class CollectionDescriptor(BaseModel):
    """
    Collection seeded into the index.

    Band order is significant: item assets reference bands by index into
    this list through "eo:bands".
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str
    description: str
    license: str = "proprietary"
    instrument: Optional[str] = None
    platforms: List[str] = Field(default_factory=list)
    gsd: Optional[float] = None
    off_nadir: Optional[float] = None
    bands: List[BandDescriptor] = Field(default_factory=list)
    providers: List[ProviderDescriptor] = Field(default_factory=list)
    item_assets: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    links: List[Dict[str, Any]] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    spatial_extent: List[float] = Field(default_factory=lambda: [-180.0, -90.0, 180.0, 90.0])

    def band_index(self, name: str) -> int:
        """Position of a band in the band list (KeyError if absent)."""
        for i, band in enumerate(self.bands):
            if band.name == name:
                return i
        raise KeyError(f"band {name!r} not in collection {self.id!r}")

    @property
    def band_names(self) -> List[str]:
        return [band.name for band in self.bands]

    def to_stac_collection(self) -> Dict[str, Any]:
        """Render as a STAC Collection dict."""
        extent = pystac.Extent(
            spatial=pystac.SpatialExtent(bboxes=[list(self.spatial_extent)]),
            temporal=pystac.TemporalExtent(intervals=[[None, None]]),
        )

        summaries = {}
        if self.platforms:
            summaries["platform"] = list(self.platforms)
        if self.instrument:
            summaries["instruments"] = [self.instrument]
        if self.gsd is not None:
            summaries["gsd"] = [self.gsd]
        if self.bands:
            summaries["eo:bands"] = [band.to_dict() for band in self.bands]

        collection = pystac.Collection(
            id=self.id,
            title=self.title,
            description=self.description,
            extent=extent,
            license=self.license,
            keywords=list(self.keywords) or None,
            providers=[
                pystac.Provider(name=p.name, url=p.url, roles=list(p.roles) or None)
                for p in self.providers
            ],
            summaries=pystac.Summaries(summaries),
        )
        for link in self.links:
            collection.add_link(pystac.Link(
                rel=link["rel"],
                target=link["href"],
                media_type=link.get("type"),
                title=link.get("title"),
            ))

        result = collection.to_dict(include_self_link=False)
        result["stac_version"] = STAC_VERSION
        if self.item_assets:
            result["item_assets"] = self.item_assets
        return result
