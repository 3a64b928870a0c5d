"""
Geometry Reprojector - Projected GeoJSON to WGS84.

Tile geometries arrive in the tile's UTM projection with a named CRS member:

    {"type": "Polygon",
     "crs": {"type": "name", "properties": {"name": "urn:ogc:def:crs:EPSG:8.8.1:32633"}},
     "coordinates": [[[399960.0, 5300040.0], ...]]}

Only Point and Polygon are accepted. Every vertex of the polygon's outer
ring is transformed; the transformed ring must be simple (no self
intersections) or the geometry is rejected. Rejected geometries are never
repaired.

Exports:
    CRSRegistry: Cached CRS and transformer lookup
    GeometryReprojector: reproject() and compute_bbox()
    normalize_crs_name: OGC URN -> "EPSG:nnnn"
    get_reprojector: Process-wide reprojector
"""

import math
import threading
from typing import Any, Dict, List, Optional, Union

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError
from shapely.geometry import LinearRing

from core.models.enums import GeometryType
from exceptions import GeometryError, SelfIntersectingGeometry, UnknownCRS, UnsupportedGeometry
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "GeometryReprojector")

TARGET_CRS = "EPSG:4326"

_URN_PREFIX = "urn:ogc:def:crs:"


def normalize_crs_name(name: Union[str, int, None]) -> Optional[str]:
    """
    Normalize a CRS reference to "AUTHORITY:CODE".

    Example:
        >>> normalize_crs_name("urn:ogc:def:crs:EPSG:8.8.1:32633")
        'EPSG:32633'
        >>> normalize_crs_name("urn:ogc:def:crs:EPSG::4326")
        'EPSG:4326'
        >>> normalize_crs_name(32633)
        'EPSG:32633'
    """
    if name is None:
        return None
    if isinstance(name, int):
        return f"EPSG:{name}"
    value = str(name).strip()
    if value.lower().startswith(_URN_PREFIX):
        value = value[len(_URN_PREFIX):]
    value = value.replace("8.8.1:", "").replace("::", ":")
    if value.isdigit():
        value = f"EPSG:{value}"
    return value


class CRSRegistry:
    """
    CRS and transformer cache.

    pyproj objects are expensive to build and safe to share, so each source
    CRS is resolved and given a transformer to WGS84 once per process.
    """

    def __init__(self, target: str = TARGET_CRS):
        self._target = CRS.from_user_input(target)
        self._lock = threading.Lock()
        self._crs: Dict[str, CRS] = {}
        self._transformers: Dict[str, Transformer] = {}

    def resolve(self, name: Optional[str]) -> CRS:
        """Resolve a normalized CRS name, raising UnknownCRS."""
        if not name:
            raise UnknownCRS(name, "geometry has no CRS")
        crs = self._crs.get(name)
        if crs is None:
            try:
                crs = CRS.from_user_input(name)
            except CRSError as e:
                raise UnknownCRS(name, str(e)) from e
            with self._lock:
                self._crs[name] = crs
        return crs

    def transformer_for(self, name: Optional[str]) -> Transformer:
        transformer = self._transformers.get(name) if name else None
        if transformer is None:
            source = self.resolve(name)
            transformer = Transformer.from_crs(source, self._target, always_xy=True)
            with self._lock:
                self._transformers[name] = transformer
            logger.debug(f"🔄 Transformer cached: {name} -> {TARGET_CRS}")
        return transformer


class GeometryReprojector:
    """
    Reprojects Point and Polygon GeoJSON to WGS84 longitude/latitude.

    Pure and deterministic for a given input; safe to share between tasks.
    """

    def __init__(self, registry: Optional[CRSRegistry] = None):
        self.registry = registry or CRSRegistry()

    def reproject(self, geometry: Dict[str, Any], source_crs: Union[str, int, None] = None) -> Dict[str, Any]:
        """
        Transform a geometry to WGS84.

        Args:
            geometry: GeoJSON Point or Polygon, optionally with a named "crs" member
            source_crs: Overrides the geometry's own CRS member

        Returns:
            New GeoJSON geometry without a "crs" member

        Raises:
            UnsupportedGeometry: Not a Point or Polygon
            UnknownCRS: CRS missing or not resolvable
            SelfIntersectingGeometry: Reprojected outer ring crosses itself
            GeometryError: Malformed coordinates
        """
        if not isinstance(geometry, dict):
            raise UnsupportedGeometry(type(geometry).__name__)

        geometry_type = geometry.get("type")
        if geometry_type not in (GeometryType.POINT.value, GeometryType.POLYGON.value):
            raise UnsupportedGeometry(geometry_type)

        crs_name = normalize_crs_name(source_crs) if source_crs is not None else _crs_member(geometry)
        transformer = self.registry.transformer_for(crs_name)

        coordinates = geometry.get("coordinates")
        if geometry_type == GeometryType.POINT.value:
            return {
                "type": GeometryType.POINT.value,
                "coordinates": self._transform_position(transformer, coordinates),
            }

        if not coordinates or not isinstance(coordinates, list) or not coordinates[0]:
            raise GeometryError("polygon has no outer ring")
        ring = [self._transform_position(transformer, position) for position in coordinates[0]]
        _check_simple(ring)
        return {"type": GeometryType.POLYGON.value, "coordinates": [ring]}

    @staticmethod
    def _transform_position(transformer: Transformer, position: Any) -> List[float]:
        if not isinstance(position, (list, tuple)) or len(position) < 2:
            raise GeometryError(f"invalid position: {position!r}")
        try:
            lon, lat = transformer.transform(float(position[0]), float(position[1]))
        except (TypeError, ValueError) as e:
            raise GeometryError(f"invalid position {position!r}: {e}") from e
        if not (math.isfinite(lon) and math.isfinite(lat)):
            raise GeometryError(f"position {position!r} outside the source CRS domain")
        return [lon, lat]

    @staticmethod
    def compute_bbox(geometry: Dict[str, Any]) -> List[float]:
        """
        [min_lon, min_lat, max_lon, max_lat] of a Point or of a Polygon's
        outer ring, closing vertex included.
        """
        geometry_type = geometry.get("type")
        if geometry_type == GeometryType.POINT.value:
            x, y = geometry["coordinates"][:2]
            return [x, y, x, y]
        if geometry_type == GeometryType.POLYGON.value:
            ring = geometry["coordinates"][0]
            lons = [position[0] for position in ring]
            lats = [position[1] for position in ring]
            return [min(lons), min(lats), max(lons), max(lats)]
        raise UnsupportedGeometry(geometry_type)


def _crs_member(geometry: Dict[str, Any]) -> Optional[str]:
    crs = geometry.get("crs")
    if not isinstance(crs, dict):
        return None
    return normalize_crs_name((crs.get("properties") or {}).get("name"))


def _check_simple(ring: List[List[float]]) -> None:
    try:
        linear_ring = LinearRing(ring)
    except ValueError as e:
        raise GeometryError(f"degenerate polygon ring: {e}") from e
    if not linear_ring.is_simple:
        raise SelfIntersectingGeometry("self-intersecting polygon")


_reprojector: Optional[GeometryReprojector] = None
_reprojector_lock = threading.Lock()


def get_reprojector() -> GeometryReprojector:
    """Process-wide reprojector (shared CRS/transformer cache)."""
    global _reprojector
    if _reprojector is None:
        with _reprojector_lock:
            if _reprojector is None:
                _reprojector = GeometryReprojector()
    return _reprojector
