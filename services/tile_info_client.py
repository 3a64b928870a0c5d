"""
Tile Metadata Enrichment Client.

Fetches tileInfo.json for a Sentinel-2 tile from the public metadata
bucket:

    {metadata_base_url}/tiles/33/U/XP/2020/5/1/0/tileInfo.json

The document carries the product name and the tile geometries (tile
footprint, data footprint, origin) in the tile's UTM projection.

Every failure is raised as EnrichmentFailed; network errors, timeouts and
5xx responses are flagged transient so the transform stream can detect an
outage.

Exports:
    TileInfo: Parsed tileInfo.json
    TileInfoClient: Async HTTP client
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from exceptions import EnrichmentFailed
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "TileInfoClient")


@dataclass
class TileInfo:
    """Parsed tileInfo.json."""
    product_name: str
    tile_geometry: Dict[str, Any]
    tile_origin: Optional[Dict[str, Any]] = None
    tile_data_geometry: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def footprint(self) -> Dict[str, Any]:
        """Data footprint when present, otherwise the full tile footprint."""
        return self.tile_data_geometry or self.tile_geometry

    @property
    def platform(self) -> str:
        """"S2A_OPER_PRD_..." -> "Sentinel-2A"."""
        return f"Sentinel-2{self.product_name[:3][-1:]}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TileInfo":
        """Raises KeyError/TypeError on a document missing productName or tileGeometry."""
        return cls(
            product_name=str(data["productName"]),
            tile_geometry=dict(data["tileGeometry"]),
            tile_origin=data.get("tileOrigin"),
            tile_data_geometry=data.get("tileDataGeometry"),
            raw=data,
        )


class TileInfoClient:
    """
    Async tileInfo.json client.

    Usage:
        client = TileInfoClient("https://roda.sentinel-hub.com/sentinel-s2-l1c")
        info = await client.fetch("tiles/33/U/XP/2020/5/1/0")
        await client.close()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Args:
            base_url: Metadata bucket base URL
            timeout: Request timeout in seconds
            client: Pre-built client (tests pass one with httpx.MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True
            )
            self._owns_client = True
        return self._client

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    def url_for(self, tile_path: str) -> str:
        return f"{self.base_url}/{tile_path.strip('/')}/tileInfo.json"

    async def fetch(self, tile_path: str) -> TileInfo:
        """
        Fetch and parse tileInfo.json for a tile path.

        Raises:
            EnrichmentFailed: Network error, timeout, non-2xx, bad JSON or
                a document without the required members
        """
        url = self.url_for(tile_path)
        client = await self._get_client()

        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            raise EnrichmentFailed(url, f"timeout after {self.timeout}s", transient=True) from e
        except httpx.RequestError as e:
            raise EnrichmentFailed(url, f"request error: {e}", transient=True) from e

        if response.status_code == 404:
            raise EnrichmentFailed(url, "tile metadata not found", status_code=404)
        if response.status_code >= 400:
            raise EnrichmentFailed(
                url,
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                transient=response.status_code >= 500 or response.status_code == 429,
            )

        try:
            return TileInfo.from_dict(response.json())
        except ValueError as e:
            raise EnrichmentFailed(url, f"invalid JSON: {e}", status_code=response.status_code) from e
        except (KeyError, TypeError) as e:
            raise EnrichmentFailed(url, f"incomplete tile metadata: missing {e}", status_code=response.status_code) from e
