"""
ReferenceFetcher tests: object storage via the blob repository, http(s) via MockTransport.
"""

import asyncio

import httpx
import pytest

from exceptions import ReferenceFetchFailed, UnsupportedSource
from services.reference_fetcher import ReferenceFetcher, split_object_url
from tests.factories.record_factories import InMemoryBlobRepository


def _fetcher(blobs=None, handler=None, blob_repo=...):
    if handler is None:
        def handler(request):
            return httpx.Response(404)
    repo = InMemoryBlobRepository(blobs) if blob_repo is ... else blob_repo
    return ReferenceFetcher(
        blob_repo=repo,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestSplitObjectUrl:

    def test_container_and_path(self):
        assert split_object_url("az://items/2020/05/a.json") == ("items", "2020/05/a.json")

    @pytest.mark.parametrize("href", ["az://items", "az:///a.json", "az://"])
    def test_incomplete(self, href):
        with pytest.raises(ReferenceFetchFailed):
            split_object_url(href)


class TestObjectStorage:

    @pytest.mark.parametrize("scheme", ["az", "abfs", "blob", "AZ"])
    def test_reads_json_blob(self, scheme):
        fetcher = _fetcher(blobs={("items", "a.json"): b'{"id": "a"}'})
        assert asyncio.run(fetcher.fetch(f"{scheme}://items/a.json")) == {"id": "a"}

    def test_missing_blob(self):
        with pytest.raises(ReferenceFetchFailed, match="not found"):
            asyncio.run(_fetcher().fetch("az://items/missing.json"))

    def test_invalid_json(self):
        fetcher = _fetcher(blobs={("items", "bad.json"): b"{not json"})
        with pytest.raises(ReferenceFetchFailed):
            asyncio.run(fetcher.fetch("az://items/bad.json"))

    def test_no_blob_repository(self):
        with pytest.raises(ReferenceFetchFailed, match="no blob repository"):
            asyncio.run(_fetcher(blob_repo=None).fetch("az://items/a.json"))


class TestHttp:

    def test_reads_json(self):
        def handler(request):
            assert str(request.url) == "https://example.com/a.json"
            return httpx.Response(200, json={"id": "a"})

        assert asyncio.run(_fetcher(handler=handler).fetch("https://example.com/a.json")) == {"id": "a"}

    @pytest.mark.parametrize("status_code", [403, 404, 500])
    def test_error_status(self, status_code):
        def handler(request):
            return httpx.Response(status_code)

        with pytest.raises(ReferenceFetchFailed, match=f"HTTP {status_code}"):
            asyncio.run(_fetcher(handler=handler).fetch("http://example.com/a.json"))

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ReferenceFetchFailed, match="request error"):
            asyncio.run(_fetcher(handler=handler).fetch("https://example.com/a.json"))

    def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(ReferenceFetchFailed, match="invalid JSON"):
            asyncio.run(_fetcher(handler=handler).fetch("https://example.com/a.json"))


class TestUnsupported:

    @pytest.mark.parametrize("href", ["ftp://host/a.json", "s3://bucket/a.json", "file:///tmp/a.json", "a.json"])
    def test_unsupported_scheme(self, href):
        with pytest.raises(UnsupportedSource) as exc_info:
            asyncio.run(_fetcher().fetch(href))
        assert str(exc_info.value) == f"Unsupported source: {href}"
