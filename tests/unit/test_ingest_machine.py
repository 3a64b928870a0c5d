"""
Chunked ingestion controller tests.

The controller is driven invocation by invocation: every checkpoint it
schedules is fed back in, the way the ingest queue would deliver it.
"""

import asyncio

import pytest

from config.ingest_config import IngestConfig
from core.ingest_machine import ChunkedIngestionController
from core.models.checkpoint import IngestionCheckpoint
from core.models.enums import IngestionState
from services.sentinel_collection import SENTINEL_2_L1C
from tests.factories.record_factories import (
    FakeNormalizer,
    InMemoryIndexWriter,
    InMemoryManifestReader,
    RecordingScheduler,
    make_manifest_rows,
)

S, P, C, R, D, F = (
    IngestionState.START,
    IngestionState.PROCESSING,
    IngestionState.CONTINUE,
    IngestionState.RETRY,
    IngestionState.DONE,
    IngestionState.FAILED,
)

BUCKET, KEY = "sentinel", "manifests/l1c.csv"
QUEUE = "catalog-ingest"


def _config(**overrides) -> IngestConfig:
    values = dict(chunk_size=3, index_batch_size=2, max_retries=2,
                  retry_base_delay_seconds=5, retry_max_delay_seconds=300)
    values.update(overrides)
    return IngestConfig(**values)


def _controller(rows, writer=None, scheduler=None, normalizer=None, **config):
    return ChunkedIngestionController(
        writer=writer or InMemoryIndexWriter(),
        manifest_reader=InMemoryManifestReader({(BUCKET, KEY): rows}),
        scheduler=scheduler or RecordingScheduler(),
        normalizer=normalizer or FakeNormalizer(),
        collection=SENTINEL_2_L1C,
        config=_config(**config),
        default_queue=QUEUE,
    )


def _first(last_chunk_index=None, **overrides) -> IngestionCheckpoint:
    data = {"bucket": BUCKET, "key": KEY, "lastChunkIndex": last_chunk_index, "invocationReference": QUEUE}
    data.update(overrides)
    return IngestionCheckpoint.model_validate(data)


def _drive(controller, checkpoint, limit=20):
    """Run invocations until nothing is scheduled; return the outcomes."""
    outcomes = []
    scheduler = controller.scheduler
    for _ in range(limit):
        sent_before = len(scheduler.sent)
        outcomes.append(asyncio.run(controller.run(checkpoint)))
        if len(scheduler.sent) == sent_before:
            return outcomes
        checkpoint = scheduler.sent[-1][0]
    raise AssertionError("controller did not terminate")


# ============================================================================
# HAPPY PATH
# ============================================================================

class TestChunkWalk:

    def test_four_chunk_run(self):
        # 10 rows / 3 per chunk -> chunks 0..3
        controller = _controller(make_manifest_rows(10))
        outcomes = _drive(controller, _first(last_chunk_index=3))

        walked = [state for outcome in outcomes for state in outcome.transitions]
        assert walked == [S, P, C, C, P, C, C, P, C, C, P, D]
        assert [o.state for o in outcomes] == [C, C, C, D]
        assert sorted(controller.writer.items) == sorted(f"G{i}" for i in range(10))

    def test_continuations_are_immediate_and_ordered(self):
        scheduler = RecordingScheduler()
        controller = _controller(make_manifest_rows(10), scheduler=scheduler)
        _drive(controller, _first(last_chunk_index=3))

        assert [cp.current_chunk_index for cp, _, _ in scheduler.sent] == [1, 2, 3]
        assert all(delay == 0 for _, delay, _ in scheduler.sent)
        assert all(queue == QUEUE for _, _, queue in scheduler.sent)

    def test_records_written_in_index_batches(self):
        writer = InMemoryIndexWriter()
        controller = _controller(make_manifest_rows(3), writer=writer)
        outcome = asyncio.run(controller.run(_first(last_chunk_index=0)))

        assert outcome.state is D
        assert outcome.records_written == 3
        assert writer.bulk_calls == [["G0", "G1"], ["G2"]]

    def test_single_chunk_manifest(self):
        controller = _controller(make_manifest_rows(2))
        outcome = asyncio.run(controller.run(_first(last_chunk_index=0)))
        assert outcome.transitions == [S, P, D]
        assert controller.scheduler.sent == []

    def test_collection_seeded_once(self):
        writer = InMemoryIndexWriter()
        controller = _controller(make_manifest_rows(10), writer=writer)
        _drive(controller, _first(last_chunk_index=3))
        assert writer.upsert_collection_calls == [SENTINEL_2_L1C.id]

    def test_per_record_failures_do_not_stop_the_chunk(self):
        rows = make_manifest_rows(3)
        rows[1]["MGRS_TILE"] = "not-a-tile"
        controller = _controller(rows)
        outcome = asyncio.run(controller.run(_first(last_chunk_index=0)))

        assert outcome.state is D
        assert outcome.records_written == 2
        assert outcome.records_failed == 1

    def test_index_rejections_reported(self):
        writer = InMemoryIndexWriter(fail_ids=["G1"])
        controller = _controller(make_manifest_rows(3), writer=writer)
        outcome = asyncio.run(controller.run(_first(last_chunk_index=0)))
        assert outcome.state is D
        assert outcome.write_failures == 1
        assert "G1" not in writer.items


# ============================================================================
# MEASUREMENT AND BOUNDARIES
# ============================================================================

class TestMeasurement:

    def test_missing_last_chunk_index_is_measured(self):
        scheduler = RecordingScheduler()
        controller = _controller(make_manifest_rows(7), scheduler=scheduler)
        outcome = asyncio.run(controller.run(_first()))

        assert controller.manifest_reader.count_calls == 1
        assert outcome.checkpoint.last_chunk_index == 2
        assert scheduler.sent[0][0].last_chunk_index == 2

    def test_measured_once_per_run(self):
        controller = _controller(make_manifest_rows(7))
        _drive(controller, _first())
        assert controller.manifest_reader.count_calls == 1

    def test_exhausted_checkpoint_is_done(self):
        controller = _controller(make_manifest_rows(3))
        outcome = asyncio.run(controller.run(_first(last_chunk_index=0, currentChunkIndex=1)))
        assert outcome.transitions == [C, D]
        assert controller.manifest_reader.read_calls == []

    def test_empty_manifest_is_done(self):
        controller = _controller([])
        outcome = asyncio.run(controller.run(_first()))
        assert outcome.state is D
        assert controller.writer.items == {}
        assert controller.scheduler.sent == []


# ============================================================================
# RETRY AND FAILURE
# ============================================================================

class TestRetry:

    def test_transient_failure_schedules_retry_with_backoff(self):
        scheduler = RecordingScheduler()
        writer = InMemoryIndexWriter(connection_failures=1)
        controller = _controller(make_manifest_rows(3), writer=writer, scheduler=scheduler)

        outcome = asyncio.run(controller.run(_first(last_chunk_index=0)))

        assert outcome.transitions == [S, P, R]
        checkpoint, delay, queue = scheduler.sent[0]
        assert (checkpoint.current_chunk_index, checkpoint.retry_count) == (0, 1)
        assert delay == 5
        assert queue == QUEUE

    def test_backoff_grows_per_retry(self):
        scheduler = RecordingScheduler()
        writer = InMemoryIndexWriter(connection_failures=2)
        controller = _controller(make_manifest_rows(3), writer=writer, scheduler=scheduler)
        _drive(controller, _first(last_chunk_index=0))
        assert [delay for _, delay, _ in scheduler.sent] == [5, 10]

    def test_retry_is_idempotent(self):
        writer = InMemoryIndexWriter(connection_failures=1)
        controller = _controller(make_manifest_rows(3), writer=writer)

        outcomes = _drive(controller, _first(last_chunk_index=0))

        assert [o.state for o in outcomes] == [R, D]
        assert outcomes[1].transitions == [R, P, D]
        assert sorted(writer.items) == ["G0", "G1", "G2"]

    def test_retry_ceiling_fails_the_run(self):
        writer = InMemoryIndexWriter(connection_failures=10)
        controller = _controller(make_manifest_rows(3), writer=writer, max_retries=2)

        outcomes = _drive(controller, _first(last_chunk_index=0))

        assert [o.state for o in outcomes] == [R, R, F]
        assert outcomes[-1].checkpoint.retry_count == 2
        assert "retry ceiling" in outcomes[-1].error

    def test_enrichment_outage_is_retried(self):
        normalizer = FakeNormalizer(transient_failures=["G0", "G1"])
        controller = _controller(make_manifest_rows(3), normalizer=normalizer,
                                 max_consecutive_enrichment_failures=2)
        outcome = asyncio.run(controller.run(_first(last_chunk_index=0)))
        assert outcome.state is R

    def test_continue_after_retry_resets_retry_count(self):
        scheduler = RecordingScheduler()
        writer = InMemoryIndexWriter(connection_failures=1)
        controller = _controller(make_manifest_rows(6), writer=writer, scheduler=scheduler)
        _drive(controller, _first(last_chunk_index=1))

        retry_counts = [(cp.current_chunk_index, cp.retry_count) for cp, _, _ in scheduler.sent]
        assert retry_counts == [(0, 1), (1, 0)]


class TestFatal:

    def test_missing_manifest_fails_without_retry(self):
        scheduler = RecordingScheduler()
        controller = _controller(make_manifest_rows(3), scheduler=scheduler)
        checkpoint = _first(last_chunk_index=0, key="manifests/missing.csv")

        outcome = asyncio.run(controller.run(checkpoint))

        assert outcome.transitions == [S, P, F]
        assert "manifest not found" in outcome.error
        assert scheduler.sent == []

    def test_missing_manifest_while_measuring(self):
        controller = _controller(make_manifest_rows(3))
        outcome = asyncio.run(controller.run(_first(key="manifests/missing.csv")))
        assert outcome.state is F

    def test_failed_outcome_summary(self):
        controller = _controller(make_manifest_rows(3))
        outcome = asyncio.run(controller.run(_first(last_chunk_index=0, key="nope.csv")))
        summary = outcome.summary()
        assert summary["state"] == "failed"
        assert summary["next_chunk"] is None


class TestScheduling:

    def test_default_queue_when_checkpoint_names_none(self):
        scheduler = RecordingScheduler()
        controller = _controller(make_manifest_rows(6), scheduler=scheduler)
        asyncio.run(controller.run(_first(last_chunk_index=1, invocationReference=None)))
        assert scheduler.sent[0][2] == QUEUE

    def test_send_failure_propagates(self):
        class BrokenScheduler(RecordingScheduler):
            def send_checkpoint(self, checkpoint, delay_seconds=0, queue_name=None):
                raise ConnectionError("service bus down")

        controller = _controller(make_manifest_rows(6), scheduler=BrokenScheduler())
        with pytest.raises(ConnectionError):
            asyncio.run(controller.run(_first(last_chunk_index=1)))
