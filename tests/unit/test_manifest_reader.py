"""
ManifestReader tests over an in-memory blob repository (pandas CSV parsing).
"""

import gzip

import pytest

from exceptions import ContractViolationError, ManifestNotFound
from infrastructure.manifest_reader import ManifestReader, chunk_blob_path, last_chunk_index_for
from tests.factories.record_factories import InMemoryBlobRepository, make_manifest_rows, manifest_csv


def _reader(rows, key="manifests/l1c.csv", compress=False):
    data = manifest_csv(rows)
    if compress:
        data = gzip.compress(data)
    return ManifestReader(InMemoryBlobRepository({("sentinel", key): data}))


class TestLastChunkIndex:

    @pytest.mark.parametrize("rows, size, expected", [
        (0, 3, 0),
        (1, 3, 0),
        (3, 3, 0),
        (4, 3, 1),
        (10, 3, 3),
        (1000, 250, 3),
        (1001, 250, 4),
    ])
    def test_formula(self, rows, size, expected):
        assert last_chunk_index_for(rows, size) == expected

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ContractViolationError):
            last_chunk_index_for(10, 0)


class TestReadChunk:

    def test_chunks_partition_the_manifest(self):
        reader = _reader(make_manifest_rows(10))
        ids = []
        for index in range(last_chunk_index_for(10, 3) + 1):
            ids.extend(row["GRANULE_ID"] for row in reader.read_chunk("sentinel", "manifests/l1c.csv", index, 3))
        assert ids == [f"G{i}" for i in range(10)]

    def test_last_chunk_is_short(self):
        rows = _reader(make_manifest_rows(10)).read_chunk("sentinel", "manifests/l1c.csv", 3, 3)
        assert [r["GRANULE_ID"] for r in rows] == ["G9"]

    def test_values_stay_strings(self):
        source = make_manifest_rows(1)
        source[0]["CLOUD_COVER"] = "07"
        rows = _reader(source).read_chunk("sentinel", "manifests/l1c.csv", 0, 5)
        assert rows[0]["CLOUD_COVER"] == "07"

    def test_chunk_past_the_end_is_empty(self):
        assert _reader(make_manifest_rows(2)).read_chunk("sentinel", "manifests/l1c.csv", 5, 3) == []

    def test_gzip_manifest(self):
        reader = _reader(make_manifest_rows(4), key="manifests/l1c.csv.gz", compress=True)
        assert reader.count_rows("sentinel", "manifests/l1c.csv.gz") == 4
        assert len(reader.read_chunk("sentinel", "manifests/l1c.csv.gz", 1, 2)) == 2

    def test_missing_manifest(self):
        reader = _reader(make_manifest_rows(1))
        with pytest.raises(ManifestNotFound):
            reader.read_chunk("sentinel", "manifests/other.csv", 0, 3)

    def test_invalid_chunk_arguments(self):
        with pytest.raises(ContractViolationError):
            _reader(make_manifest_rows(1)).read_chunk("sentinel", "manifests/l1c.csv", -1, 3)


class TestCountRows:

    def test_header_excluded(self):
        assert _reader(make_manifest_rows(7)).count_rows("sentinel", "manifests/l1c.csv") == 7

    def test_empty_blob(self):
        reader = ManifestReader(InMemoryBlobRepository({("sentinel", "empty.csv"): b""}))
        assert reader.count_rows("sentinel", "empty.csv") == 0
        assert reader.last_chunk_index("sentinel", "empty.csv", 3) == 0

    def test_missing_manifest(self):
        with pytest.raises(ManifestNotFound):
            _reader([]).last_chunk_index("sentinel", "nope.csv", 3)


class TestSplit:

    KEY = "manifests/l1c.csv"

    def test_one_blob_per_chunk(self):
        reader = _reader(make_manifest_rows(10))
        assert reader.split("sentinel", self.KEY, 3) == 10
        assert reader.blob_repo.writes == [chunk_blob_path(self.KEY, 3, k) for k in range(4)]

    def test_measured_chunk_read_touches_only_its_blob(self):
        reader = _reader(make_manifest_rows(10))
        assert reader.last_chunk_index("sentinel", self.KEY, 3) == 3
        reader.blob_repo.reads.clear()

        rows = reader.read_chunk("sentinel", self.KEY, 2, 3)

        assert [r["GRANULE_ID"] for r in rows] == ["G6", "G7", "G8"]
        assert reader.blob_repo.reads == [chunk_blob_path(self.KEY, 3, 2)]

    def test_unsplit_manifest_split_on_first_read(self):
        reader = _reader(make_manifest_rows(5))
        first = reader.read_chunk("sentinel", self.KEY, 0, 2)
        reader.blob_repo.reads.clear()
        second = reader.read_chunk("sentinel", self.KEY, 1, 2)

        assert [r["GRANULE_ID"] for r in first + second] == ["G0", "G1", "G2", "G3"]
        assert self.KEY not in reader.blob_repo.reads

    def test_chunk_size_is_part_of_the_path(self):
        assert chunk_blob_path(self.KEY, 3, 0) != chunk_blob_path(self.KEY, 4, 0)
        assert chunk_blob_path(self.KEY, 3, 12) == "manifests/l1c.csv.chunks/3/chunk-000012.csv"

    def test_empty_values_survive_the_split(self):
        source = make_manifest_rows(2)
        source[1]["CLOUD_COVER"] = ""
        reader = _reader(source)
        rows = reader.read_chunk("sentinel", self.KEY, 0, 5)
        assert rows[1]["CLOUD_COVER"] == ""

    def test_resplit_overwrites(self):
        reader = _reader(make_manifest_rows(4))
        reader.split("sentinel", self.KEY, 2)
        before = dict(reader.blob_repo.blobs)
        reader.split("sentinel", self.KEY, 2)
        assert reader.blob_repo.blobs == before
