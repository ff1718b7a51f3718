"""
Ingestion Pipeline Test

Validates quota-enforced ingestion:
1. Packed payloads are authoritative for bytes and key count
2. Decode and quota failures reject the whole batch with no writes
3. Storage keys are flat and deterministic; re-ingesting overwrites
4. The index is upserted, never duplicated, and keeps uploaded_at
5. Cache projection failures are swallowed; storage/index failures surface
"""

import base64
import hashlib
import json
import sqlite3
import threading
from datetime import datetime, timezone

import msgpack
import pytest
from pydantic import ValidationError

from compute.fingerprint import fingerprint
from core.config import QuotaLimits
from core.errors import ClientInputError, IndexFailure, QuotaExceededError, StorageFailure
from core.models.sync import FileToUpload
from core.observability.metrics import MetricsCollector
from core.storage.index import SQLiteIndex
from core.storage.objects import FilesystemObjectStore
from ingestion.keys import cache_key, misc_storage_key, sanitize_filename, storage_key
from ingestion.misc import upload_misc_git
from ingestion.payload import count_keys, decode_file
from ingestion.pipeline import IngestionPipeline


def pack(document) -> str:
    return base64.b64encode(msgpack.packb(document, use_bin_type=True)).decode("ascii")


def packed_file(filename="common.json", lang="en", keys=2, source_hash="abc123") -> FileToUpload:
    raw = {f"k{i}": f"v{i}" for i in range(keys)}
    return FileToUpload(lang=lang, filename=filename, source_hash=source_hash, packed_data=pack({"raw": raw}))


@pytest.fixture
def store(tmp_path):
    return FilesystemObjectStore(tmp_path / "objects")


@pytest.fixture
def index(tmp_path):
    idx = SQLiteIndex(tmp_path / "index.db")
    idx.init_schema()
    return idx


@pytest.fixture
def pipeline(store, index):
    return IngestionPipeline(store=store, index=index, metrics=MetricsCollector())


class FailingStore:
    """Wraps a store and fails puts whose key matches a predicate."""

    def __init__(self, inner, should_fail):
        self.inner = inner
        self.should_fail = should_fail
        self.attempts = []

    def put(self, key, data, content_type, custom_metadata=None):
        self.attempts.append(key)
        if self.should_fail(key):
            raise OSError(f"simulated write failure for {key}")
        self.inner.put(key, data, content_type, custom_metadata)

    def get(self, key):
        return self.inner.get(key)


class FailingIndex:
    def execute(self, statement):
        raise sqlite3.OperationalError("database is locked")


class TestKeys:
    """Test deterministic key derivation."""

    def test_storage_key_flattens_paths(self):
        assert storage_key("web", "en", "locales/en/common.json") == "web-en-locales-en-common.json"
        assert sanitize_filename("a\\b/c.json") == "a-b-c.json"

    def test_storage_key_is_deterministic(self):
        assert storage_key("web", "fr", "x/y.json") == storage_key("web", "fr", "x/y.json")

    def test_cache_and_misc_keys(self):
        assert cache_key("web", "en", "dir/common.json") == "meta-web-en-dir-common.json"
        assert misc_storage_key("web-en-common.json") == "web-en-common.json-misc-git"


class TestPayloadDecoding:
    """Test packed payload decoding and key counting."""

    def test_count_keys_prefers_raw(self):
        assert count_keys({"raw": {"a": 1, "b": 2}, "meta": {}}) == 2
        assert count_keys({"a": 1, "b": 2, "c": 3}) == 3
        assert count_keys(["not", "a", "map"]) == 0

    def test_packed_bytes_are_authoritative(self):
        document = {"raw": {"k1": "v1", "k2": "v2"}}
        raw_bytes = msgpack.packb(document, use_bin_type=True)
        f = FileToUpload(
            lang="en",
            filename="common.json",
            source_hash="abc123",
            contents={"ignored": "x", "also": "y", "more": "z"},
            packed_data=base64.b64encode(raw_bytes).decode(),
        )

        decoded = decode_file(f)

        assert decoded.packed
        assert decoded.data == raw_bytes
        assert decoded.size_bytes == len(raw_bytes)
        assert decoded.key_count == 2

    def test_contents_without_packed_data(self):
        f = FileToUpload(lang="en", filename="common.json", source_hash="abc123", contents={"a": "A", "b": "B"})
        decoded = decode_file(f)
        assert not decoded.packed
        assert decoded.key_count == 2
        assert msgpack.unpackb(decoded.data, raw=False) == {"a": "A", "b": "B"}

    def test_large_file_key_count(self):
        decoded = decode_file(packed_file(keys=10_001))
        assert decoded.key_count == 10_001

    def test_invalid_base64(self):
        f = FileToUpload(lang="en", filename="bad.json", source_hash="abc123", packed_data="not base64!!")
        with pytest.raises(ClientInputError) as exc_info:
            decode_file(f)
        assert exc_info.value.status_code == 400
        assert "bad.json" in str(exc_info.value)

    def test_invalid_msgpack(self):
        f = FileToUpload(lang="en", filename="bad.json", source_hash="abc123", packed_data=base64.b64encode(b"\xc1").decode())
        with pytest.raises(ClientInputError):
            decode_file(f)

    def test_contents_outside_msgpack_range(self):
        f = FileToUpload(lang="en", filename="big.json", source_hash="abc123", contents={"n": 10**30})
        with pytest.raises(ClientInputError) as exc_info:
            decode_file(f)
        assert exc_info.value.status_code == 400
        assert "big.json" in str(exc_info.value)

    def test_source_hash_is_required(self):
        with pytest.raises(ValidationError):
            FileToUpload(lang="en", filename="common.json", contents={"a": "A"})


class TestFilesystemObjectStore:
    """Test object records and overwrite behaviour."""

    def test_put_and_get(self, store):
        data = b"line one\nline two\n\x00\xff"
        store.put("web-en-a.json", data, "application/msgpack", {"lang": "en"})

        obj = store.get("web-en-a.json")

        assert obj.data == data
        assert obj.size_bytes == len(data)
        assert obj.content_hash == hashlib.sha256(data).hexdigest()
        assert obj.content_type == "application/msgpack"
        assert obj.custom_metadata == {"lang": "en"}

    def test_missing_key_returns_none(self, store):
        assert store.get("web-en-missing.json") is None
        assert not store.exists("web-en-missing.json")

    def test_hierarchical_key_rejected(self, store):
        with pytest.raises(ValueError):
            store.put("web/en/a.json", b"x")

    def test_last_write_wins(self, store):
        store.put("web-en-a.json", b"first", custom_metadata={"commitSha": "c1"})
        store.put("web-en-a.json", b"second", custom_metadata={"commitSha": "c2"})

        obj = store.get("web-en-a.json")

        assert obj.data == b"second"
        assert obj.custom_metadata == {"commitSha": "c2"}
        assert store.list_keys() == ["web-en-a.json"]

    def test_concurrent_writers_leave_consistent_object(self, store):
        payloads = [bytes([i]) * (1000 + i) for i in range(16)]

        def write(data):
            for _ in range(20):
                store.put("meta-web-en-a.json", data)

        threads = [threading.Thread(target=write, args=(p,)) for p in payloads]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        obj = store.get("meta-web-en-a.json")
        assert obj.data in payloads
        assert obj.size_bytes == len(obj.data)
        assert store.list_keys() == ["meta-web-en-a.json"]
        assert list(store.staging_path.iterdir()) == []

    def test_tampered_object_fails_integrity_check(self, store):
        store.put("web-en-a.json", b"original")
        path = store.objects_path / "web-en-a.json"
        path.write_bytes(path.read_bytes().replace(b"original", b"modified"))

        with pytest.raises(StorageFailure) as exc_info:
            store.get("web-en-a.json")

        assert exc_info.value.status_code == 500
        assert store.get("web-en-a.json", validate_hash=False).data == b"modified"


class TestIngestion:
    """Test the ingestion pipeline end to end against local stores."""

    def test_ingest_writes_objects_cache_and_index(self, pipeline, store, index):
        files = [
            packed_file("locales/en/common.json", "en", keys=3, source_hash="src1"),
            packed_file("locales/fr/common.json", "fr", keys=2, source_hash="src2"),
        ]

        result = pipeline.ingest("web", "main", "commit1", files)

        assert result.uploaded_files == ["en/locales/en/common.json", "fr/locales/fr/common.json"]
        assert result.storage_keys == ["web-en-locales-en-common.json", "web-fr-locales-fr-common.json"]

        obj = store.get("web-en-locales-en-common.json")
        assert obj.content_type == "application/msgpack"
        assert obj.data == base64.b64decode(files[0].packed_data)
        assert obj.custom_metadata["project"] == "web"
        assert obj.custom_metadata["lang"] == "en"
        assert obj.custom_metadata["filename"] == "locales/en/common.json"
        assert obj.custom_metadata["commitSha"] == "commit1"
        assert obj.custom_metadata["sourceHash"] == "src1"
        assert obj.custom_metadata["contentHash"] == fingerprint(obj.data)
        assert "uploadedAt" in obj.custom_metadata

        meta = json.loads(store.get("meta-web-en-locales-en-common.json").data)
        assert meta["keys"] == 3
        assert meta["source_hash"] == "src1"

        record = index.get_record("web", "main", "en", "locales/en/common.json")
        assert record.storage_key == "web-en-locales-en-common.json"
        assert record.total_keys == 3
        assert record.commit_sha == "commit1"
        assert index.count() == 2

    def test_reingest_overwrites_and_updates_index(self, store, index):
        times = iter([
            datetime(2026, 1, 1, tzinfo=timezone.utc),
            datetime(2026, 1, 2, tzinfo=timezone.utc),
        ])
        pipeline = IngestionPipeline(store=store, index=index, metrics=MetricsCollector(), clock=lambda: next(times))

        first = pipeline.ingest("web", "main", "commit1", [packed_file(keys=2, source_hash="old")])
        second = pipeline.ingest("web", "main", "commit2", [packed_file(keys=4, source_hash="new")])

        assert first.storage_keys == second.storage_keys
        assert index.count() == 1

        record = index.get_record("web", "main", "en", "common.json")
        assert record.commit_sha == "commit2"
        assert record.source_hash == "new"
        assert record.total_keys == 4
        assert record.uploaded_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert record.last_updated == datetime(2026, 1, 2, tzinfo=timezone.utc)

        obj = store.get(second.storage_keys[0])
        assert obj.custom_metadata["commitSha"] == "commit2"
        assert store.list_keys("web-") == ["web-en-common.json"]

    def test_branches_are_indexed_separately(self, pipeline, index):
        pipeline.ingest("web", "main", "c1", [packed_file()])
        pipeline.ingest("web", "develop", "c2", [packed_file()])
        assert index.count() == 2
        assert [r.branch for r in index.list_records("web")] == ["develop", "main"]

    def test_too_many_keys_rejects_whole_batch(self, pipeline, store, index):
        files = [packed_file("ok.json", keys=5), packed_file("big.json", keys=10_001)]

        with pytest.raises(QuotaExceededError) as exc_info:
            pipeline.ingest("web", "main", "c1", files)

        assert exc_info.value.status_code == 413
        assert exc_info.value.filename == "big.json"
        assert store.list_keys() == []
        assert index.count() == 0

    def test_file_too_large(self, store, index):
        limits = QuotaLimits(max_bytes_per_file=16)
        pipeline = IngestionPipeline(store=store, index=index, limits=limits, metrics=MetricsCollector())

        with pytest.raises(QuotaExceededError) as exc_info:
            pipeline.ingest("web", "main", "c1", [packed_file(keys=10)])

        assert "too large" in str(exc_info.value)
        assert store.list_keys() == []

    def test_aggregate_key_limit(self, store, index):
        limits = QuotaLimits(max_total_keys=3)
        pipeline = IngestionPipeline(store=store, index=index, limits=limits, metrics=MetricsCollector())

        with pytest.raises(QuotaExceededError) as exc_info:
            pipeline.ingest("web", "main", "c1", [packed_file("a.json", keys=2), packed_file("b.json", keys=2)])

        assert exc_info.value.filename is None
        assert exc_info.value.actual == 4
        assert store.list_keys() == []

    def test_aggregate_byte_limit(self, store, index):
        size = decode_file(packed_file("a.json")).size_bytes
        limits = QuotaLimits(max_bytes_per_file=size, max_total_bytes=size * 2)
        pipeline = IngestionPipeline(store=store, index=index, limits=limits, metrics=MetricsCollector())
        files = [packed_file("a.json"), packed_file("b.json"), packed_file("c.json")]

        with pytest.raises(QuotaExceededError) as exc_info:
            pipeline.ingest("web", "main", "c1", files)

        assert exc_info.value.status_code == 413
        assert exc_info.value.filename is None
        assert exc_info.value.limit == size * 2
        assert exc_info.value.actual == size * 3
        assert store.list_keys() == []
        assert index.count() == 0

    def test_any_flat_filename_is_stored(self, pipeline, store, index):
        files = [packed_file("a.json"), packed_file("notes.meta.json"), packed_file("a.json.meta.json")]

        result = pipeline.ingest("web", "main", "c1", files)

        assert result.storage_keys == ["web-en-a.json", "web-en-notes.meta.json", "web-en-a.json.meta.json"]
        assert index.count() == 3
        assert store.get("web-en-a.json").data == base64.b64decode(files[0].packed_data)
        assert store.get("web-en-a.json.meta.json").data == base64.b64decode(files[2].packed_data)

    def test_malformed_payload_rejects_whole_batch(self, pipeline, store, index):
        bad = FileToUpload(lang="en", filename="bad.json", source_hash="abc123", packed_data="%%%")
        files = [packed_file("a.json"), packed_file("b.json"), bad]

        with pytest.raises(ClientInputError):
            pipeline.ingest("web", "main", "c1", files)

        assert store.list_keys() == []
        assert index.count() == 0

    def test_non_flat_project_rejected_before_writes(self, pipeline, store):
        with pytest.raises(ClientInputError):
            pipeline.ingest("team/web", "main", "c1", [packed_file()])
        assert store.list_keys() == []

    def test_cache_failure_is_swallowed(self, store, index):
        failing = FailingStore(store, lambda key: key.startswith("meta-"))
        metrics = MetricsCollector()
        pipeline = IngestionPipeline(store=failing, index=index, metrics=metrics)

        result = pipeline.ingest("web", "main", "c1", [packed_file("a.json"), packed_file("b.json")])

        assert len(result.storage_keys) == 2
        assert store.list_keys() == ["web-en-a.json", "web-en-b.json"]
        assert index.count() == 2
        assert metrics.get_summary()["ingestion"]["cache_failures"] == 2

    def test_storage_failure_keeps_earlier_files(self, store, index):
        failing = FailingStore(store, lambda key: key == "web-en-b.json")
        pipeline = IngestionPipeline(store=failing, index=index, metrics=MetricsCollector())
        files = [packed_file("a.json"), packed_file("b.json"), packed_file("c.json")]

        with pytest.raises(StorageFailure) as exc_info:
            pipeline.ingest("web", "main", "c1", files)

        assert exc_info.value.key == "web-en-b.json"
        assert store.exists("web-en-a.json")
        assert not store.exists("web-en-c.json")
        assert "web-en-c.json" not in failing.attempts
        assert index.count() == 0

    def test_index_failure_after_objects_stored(self, store):
        pipeline = IngestionPipeline(store=store, index=FailingIndex(), metrics=MetricsCollector())

        with pytest.raises(IndexFailure) as exc_info:
            pipeline.ingest("web", "main", "c1", [packed_file("a.json")])

        assert exc_info.value.status_code == 500
        assert store.exists("web-en-a.json")

    def test_retry_after_index_failure_converges(self, store, index):
        with pytest.raises(IndexFailure):
            IngestionPipeline(store=store, index=FailingIndex(), metrics=MetricsCollector()).ingest(
                "web", "main", "c1", [packed_file("a.json")]
            )

        IngestionPipeline(store=store, index=index, metrics=MetricsCollector()).ingest(
            "web", "main", "c1", [packed_file("a.json")]
        )
        assert index.get_record("web", "main", "en", "a.json").storage_key == "web-en-a.json"

    def test_empty_batch(self, pipeline, index):
        result = pipeline.ingest("web", "main", "c1", [])
        assert result.uploaded_files == []
        assert index.count() == 0

    def test_ingestion_metrics(self, store, index):
        metrics = MetricsCollector()
        pipeline = IngestionPipeline(store=store, index=index, metrics=metrics)
        pipeline.ingest("web", "main", "c1", [packed_file(keys=3)])

        summary = metrics.get_summary()["ingestion"]
        assert summary["files"] == 1
        assert summary["keys"] == 3
        assert summary["bytes"] > 0


class TestMiscGitUpload:
    """Test misc-git metadata attachment."""

    def test_stores_object_and_links_index(self, pipeline, store, index):
        result = pipeline.ingest("web", "main", "c1", [packed_file()])
        file_key = result.storage_keys[0]

        key = upload_misc_git(
            store, index, "web", file_key,
            base64.b64encode(b"\x81\xa3sha\xa2c1").decode(),
            lang="en", filename="common.json",
        )

        assert key == f"{file_key}-misc-git"
        obj = store.get(key)
        assert obj.data == b"\x81\xa3sha\xa2c1"
        assert obj.custom_metadata == {"project": "web", "lang": "en", "filename": "common.json"}
        assert index.get_record("web", "main", "en", "common.json").misc_storage_key == key

    def test_unknown_file_still_stores(self, store, index):
        key = upload_misc_git(store, index, "web", "web-en-missing.json", base64.b64encode(b"x").decode())
        assert store.exists(key)

    def test_index_failure_is_not_fatal(self, store):
        key = upload_misc_git(store, FailingIndex(), "web", "web-en-a.json", base64.b64encode(b"x").decode())
        assert store.exists(key)

    def test_bad_base64(self, store, index):
        with pytest.raises(ClientInputError):
            upload_misc_git(store, index, "web", "web-en-a.json", "***")
        assert store.list_keys() == []
