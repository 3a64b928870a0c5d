"""
Sentinel-2 L1C Collection Descriptor and Collection Registry.

The descriptor is seeded into the index once per process before any
Sentinel-2 record is written. The registry maps collection ids to the
descriptors this service knows how to create, so the fan-in dispatcher can
ensure a collection exists before loading items that reference it.

Exports:
    SENTINEL_2_L1C: Sentinel-2 L1C CollectionDescriptor
    SENTINEL_2_BAND_ASSETS: Band asset key -> title
    CollectionRegistry: Id -> descriptor lookup
    get_collection_registry: Process-wide registry
"""

import threading
from typing import Dict, Optional, List

from core.models.collection import BandDescriptor, CollectionDescriptor, ProviderDescriptor
from config.defaults import SentinelDefaults


_BANDS = [
    BandDescriptor(name="B01", common_name="coastal", gsd=60.0, center_wavelength=0.4439, full_width_half_max=0.027),
    BandDescriptor(name="B02", common_name="blue", gsd=10.0, center_wavelength=0.4966, full_width_half_max=0.098),
    BandDescriptor(name="B03", common_name="green", gsd=10.0, center_wavelength=0.56, full_width_half_max=0.045),
    BandDescriptor(name="B04", common_name="red", gsd=10.0, center_wavelength=0.6645, full_width_half_max=0.038),
    BandDescriptor(name="B05", gsd=20.0, center_wavelength=0.7039, full_width_half_max=0.019),
    BandDescriptor(name="B06", gsd=20.0, center_wavelength=0.7402, full_width_half_max=0.018),
    BandDescriptor(name="B07", gsd=20.0, center_wavelength=0.7825, full_width_half_max=0.028),
    BandDescriptor(name="B08", common_name="nir", gsd=10.0, center_wavelength=0.8351, full_width_half_max=0.145),
    BandDescriptor(name="B8A", gsd=20.0, center_wavelength=0.8648, full_width_half_max=0.033),
    BandDescriptor(name="B09", gsd=60.0, center_wavelength=0.945, full_width_half_max=0.026),
    BandDescriptor(name="B10", common_name="cirrus", gsd=60.0, center_wavelength=1.3735, full_width_half_max=0.075),
    BandDescriptor(name="B11", common_name="swir16", gsd=20.0, center_wavelength=1.6137, full_width_half_max=0.143),
    BandDescriptor(name="B12", common_name="swir22", gsd=20.0, center_wavelength=2.22024, full_width_half_max=0.242),
]

SENTINEL_2_BAND_ASSETS: Dict[str, str] = {
    "B01": "Band 1 (coastal)",
    "B02": "Band 2 (blue)",
    "B03": "Band 3 (green)",
    "B04": "Band 4 (red)",
    "B05": "Band 5",
    "B06": "Band 6",
    "B07": "Band 7",
    "B08": "Band 8 (nir)",
    "B8A": "Band 8A",
    "B09": "Band 9",
    "B10": "Band 10 (cirrus)",
    "B11": "Band 11 (swir16)",
    "B12": "Band 12 (swir22)",
}

JP2_MEDIA_TYPE = "image/jp2"

SENTINEL_2_L1C = CollectionDescriptor(
    id=SentinelDefaults.COLLECTION_ID,
    title="Sentinel 2 L1C",
    description="Sentinel-2a and Sentinel-2b imagery",
    license="proprietary",
    instrument="MSI",
    platforms=["Sentinel-2A", "Sentinel-2B"],
    gsd=10.0,
    off_nadir=0.0,
    bands=_BANDS,
    providers=[
        ProviderDescriptor(name="ESA", url="https://sentinel.esa.int/web/sentinel/home", roles=["producer", "licensor"]),
        ProviderDescriptor(name="Sinergise", url="http://sentinel-pds.s3-website.eu-central-1.amazonaws.com/", roles=["processor"]),
        ProviderDescriptor(
            name="AWS",
            url="https://aws.amazon.com/blogs/publicsector/complete-sentinel-2-archives-freely-available-to-users/",
            roles=["host"]
        ),
        ProviderDescriptor(name="Development Seed", url="https://developmentseed.org/", roles=["processor"]),
    ],
    item_assets={
        **{
            name: {"type": JP2_MEDIA_TYPE, "title": title, "eo:bands": [i]}
            for i, (name, title) in enumerate(SENTINEL_2_BAND_ASSETS.items())
        },
        "thumbnail": {"type": "image/jpeg", "title": "Thumbnail"},
        "tki": {"type": JP2_MEDIA_TYPE, "title": "True Color Image"},
        "metadata": {"type": "application/xml", "title": "Original XML metadata"},
    },
    links=[
        {"rel": "license", "href": "https://sentinel.esa.int/documents/247904/690755/Sentinel_Data_Legal_Notice"},
    ],
    keywords=["sentinel", "copernicus", "msi", "l1c"],
)


class CollectionRegistry:
    """Thread-safe id -> CollectionDescriptor lookup."""

    def __init__(self, descriptors: Optional[List[CollectionDescriptor]] = None):
        self._lock = threading.Lock()
        self._descriptors: Dict[str, CollectionDescriptor] = {}
        for descriptor in descriptors or []:
            self.register(descriptor)

    def register(self, descriptor: CollectionDescriptor) -> None:
        with self._lock:
            self._descriptors[descriptor.id] = descriptor

    def get(self, collection_id: str) -> Optional[CollectionDescriptor]:
        return self._descriptors.get(collection_id)

    def __contains__(self, collection_id: str) -> bool:
        return collection_id in self._descriptors

    def ids(self) -> List[str]:
        return sorted(self._descriptors)


_registry: Optional[CollectionRegistry] = None
_registry_lock = threading.Lock()


def get_collection_registry() -> CollectionRegistry:
    """Process-wide registry, created on first use with the built-in descriptors."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = CollectionRegistry([SENTINEL_2_L1C])
    return _registry
