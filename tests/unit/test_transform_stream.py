"""
Transform stream tests: per-record failure isolation and outage detection.
"""

import asyncio
import logging

import pytest

from exceptions import ContractViolationError, EnrichmentUnavailable, MalformedGridCode
from services.transform_stream import TransformStream
from tests.factories.record_factories import FakeNormalizer, make_manifest_row, make_manifest_rows


async def _collect(stream, rows):
    return [record async for record in stream.records(rows)]


async def _results(stream, rows):
    return [result async for result in stream.results(rows)]


class TestRecordIsolation:

    def test_one_bad_row_is_skipped_and_order_kept(self, caplog):
        rows = make_manifest_rows(6)
        rows[3]["MGRS_TILE"] = "99QQQ"
        stream = TransformStream(FakeNormalizer())

        with caplog.at_level(logging.WARNING):
            records = asyncio.run(_collect(stream, rows))

        assert [r.id for r in records] == ["G0", "G1", "G2", "G4", "G5"]
        assert stream.stats.to_dict() == {"processed": 6, "succeeded": 5, "failed": 1}
        messages = [r.getMessage() for r in caplog.records]
        assert any("error processing G3" in m for m in messages)

    def test_row_failing_validation_is_per_record(self, caplog):
        rows = make_manifest_rows(3)
        del rows[1]["CLOUD_COVER"]
        stream = TransformStream(FakeNormalizer())

        with caplog.at_level(logging.WARNING):
            records = asyncio.run(_collect(stream, rows))

        assert [r.id for r in records] == ["G0", "G2"]
        assert any("error processing G1" in r.getMessage() for r in caplog.records)

    def test_row_without_granule_id_reported_by_position(self):
        rows = make_manifest_rows(2)
        rows[1]["GRANULE_ID"] = ""
        results = asyncio.run(_results(TransformStream(FakeNormalizer()), rows))
        assert results[1].record_id == "row-1"
        assert not results[1].success

    def test_results_carry_errors(self):
        rows = [make_manifest_row(granule_id="bad", MGRS_TILE="XYZ")]
        results = asyncio.run(_results(TransformStream(FakeNormalizer()), rows))
        assert len(results) == 1
        assert results[0].record_id == "bad"
        assert isinstance(results[0].error, MalformedGridCode)

    def test_empty_input(self):
        stream = TransformStream(FakeNormalizer())
        assert asyncio.run(_collect(stream, [])) == []
        assert stream.stats.processed == 0


class TestEnrichmentOutage:

    def test_consecutive_transient_failures_end_the_stream(self):
        rows = make_manifest_rows(6)
        normalizer = FakeNormalizer(transient_failures=["G1", "G2", "G3"])
        stream = TransformStream(normalizer, max_consecutive_enrichment_failures=3)

        with pytest.raises(EnrichmentUnavailable) as exc_info:
            asyncio.run(_collect(stream, rows))

        assert exc_info.value.consecutive_failures == 3
        assert exc_info.value.transient
        assert normalizer.calls == ["G0", "G1", "G2", "G3"]

    def test_success_resets_the_counter(self):
        rows = make_manifest_rows(6)
        normalizer = FakeNormalizer(transient_failures=["G0", "G1", "G3", "G4"])
        stream = TransformStream(normalizer, max_consecutive_enrichment_failures=3)

        records = asyncio.run(_collect(stream, rows))

        assert [r.id for r in records] == ["G2", "G5"]
        assert stream.stats.failed == 4


class TestSinglePass:

    def test_second_consumption_rejected(self):
        stream = TransformStream(FakeNormalizer())
        asyncio.run(_collect(stream, make_manifest_rows(2)))
        with pytest.raises(ContractViolationError):
            asyncio.run(_collect(stream, make_manifest_rows(2)))
