"""
Unit test fixtures: factory-built rows, tile metadata and in-memory collaborators.
"""

import httpx
import pytest

from services.record_normalizer import RecordNormalizer
from services.sentinel_collection import SENTINEL_2_L1C
from services.tile_info_client import TileInfoClient
from tests.factories.record_factories import (
    METADATA_BASE,
    TILE_BASE,
    InMemoryIndexWriter,
    RecordingScheduler,
    make_manifest_row,
    make_tile_info,
    tile_info_transport,
)


@pytest.fixture
def manifest_row():
    """Randomized manifest row for tile 33UXP."""
    return make_manifest_row()


@pytest.fixture
def tile_info():
    """tileInfo.json document for tile 33UXP."""
    return make_tile_info()


@pytest.fixture
def make_normalizer():
    """Build a RecordNormalizer whose tileInfo requests hit a MockTransport."""

    def _make(transport: httpx.MockTransport = None, **kwargs) -> RecordNormalizer:
        client = httpx.AsyncClient(transport=transport or tile_info_transport())
        return RecordNormalizer(
            TileInfoClient(METADATA_BASE, client=client),
            tile_base_url=TILE_BASE,
            metadata_base_url=METADATA_BASE,
            collection=kwargs.pop("collection", SENTINEL_2_L1C),
            **kwargs
        )

    return _make


@pytest.fixture
def index_writer():
    return InMemoryIndexWriter()


@pytest.fixture
def scheduler():
    return RecordingScheduler()
