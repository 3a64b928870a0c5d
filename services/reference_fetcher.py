"""
Reference Fetcher.

Dereferences `{href: uri}` messages for the fan-in dispatcher:

    az://container/path/item.json    -> Blob Storage (read_blob_json)
    https://host/path/item.json      -> httpx GET, JSON body
    anything else                    -> UnsupportedSource

Blob reads use the sync Azure SDK and run in the default executor.
"""

import asyncio
from typing import Any, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import httpx
from azure.core.exceptions import AzureError, ResourceNotFoundError

from exceptions import ReferenceFetchFailed, UnsupportedSource
from infrastructure.blob import IBlobRepository
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "ReferenceFetcher")

HTTP_SCHEMES = ("http", "https")


def split_object_url(href: str) -> Tuple[str, str]:
    """`az://container/a/b.json` -> ("container", "a/b.json")."""
    parts = urlsplit(href)
    container = parts.netloc
    blob_path = parts.path.lstrip("/")
    if not container or not blob_path:
        raise ReferenceFetchFailed(href, "object URL needs a container and a blob path")
    return container, blob_path


class ReferenceFetcher:
    """Resolve a reference URI to its decoded JSON payload."""

    def __init__(
        self,
        blob_repo: Optional[IBlobRepository] = None,
        object_storage_schemes: Sequence[str] = ("az", "abfs", "blob"),
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.blob_repo = blob_repo
        self.object_storage_schemes = tuple(s.lower() for s in object_storage_schemes)
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True
            )
            self._owns_client = True
        return self._client

    async def close(self):
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    async def fetch(self, href: str) -> Any:
        """
        Raises:
            UnsupportedSource: Scheme is neither object storage nor http(s)
            ReferenceFetchFailed: Source reachable in principle but the read
                or JSON decode failed
        """
        scheme = urlsplit(href).scheme.lower() if isinstance(href, str) else ""
        if scheme in self.object_storage_schemes:
            return await self._fetch_object(href)
        if scheme in HTTP_SCHEMES:
            return await self._fetch_http(href)
        raise UnsupportedSource(str(href))

    async def _fetch_object(self, href: str) -> Any:
        if self.blob_repo is None:
            raise ReferenceFetchFailed(href, "no blob repository configured")

        container, blob_path = split_object_url(href)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.blob_repo.read_blob_json, container, blob_path)
        except ResourceNotFoundError as e:
            raise ReferenceFetchFailed(href, "blob not found") from e
        except AzureError as e:
            raise ReferenceFetchFailed(href, f"storage error: {e}") from e
        except ValueError as e:
            raise ReferenceFetchFailed(href, str(e)) from e

    async def _fetch_http(self, href: str) -> Any:
        client = await self._get_client()
        try:
            response = await client.get(href)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ReferenceFetchFailed(href, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ReferenceFetchFailed(href, f"request error: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise ReferenceFetchFailed(href, f"invalid JSON: {e}") from e


def create_reference_fetcher(config=None) -> ReferenceFetcher:
    if config is None:
        from config import get_config
        config = get_config()

    from infrastructure.blob import BlobRepository

    return ReferenceFetcher(
        blob_repo=BlobRepository.instance(),
        object_storage_schemes=config.storage.object_storage_schemes,
        timeout=config.ingest.http_timeout_seconds,
    )
