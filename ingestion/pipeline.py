"""Quota-enforced ingestion of translation files.

Flow for one request:
1. Decode every file and count its keys (ClientInputError -> nothing written)
2. Enforce per-file and batch quotas (QuotaExceededError -> nothing written)
3. Write each file to the object store under its deterministic key,
   followed by a best-effort cache metadata projection
4. Upsert one index row per file once all objects are stored

Files are written one at a time without a cross-file transaction. A
storage failure stops the loop and leaves earlier files in place; an
index failure leaves every object stored but unindexed. Retrying the same
request rewrites the same keys and upserts the same rows.
"""

import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence
from uuid import uuid4

from compute.fingerprint import fingerprint
from core.config import QuotaLimits
from core.errors import (
    AdvisoryFailure,
    ClientInputError,
    IndexFailure,
    QuotaExceededError,
    StorageFailure,
)
from core.models.sync import CacheMetadata, FileToUpload, IndexRecord, IngestResult
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import MetricsCollector, get_metrics
from core.storage.index import RelationalIndex, build_file_upsert
from core.storage.objects import ObjectStore
from ingestion.keys import cache_key, is_flat_key, storage_key
from ingestion.payload import MSGPACK_CONTENT_TYPE, DecodedFile, decode_file
from ingestion.quotas import enforce_quotas


logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionPipeline:
    """Writes translation batches to an object store and reconciles the index.

    Usage:
        pipeline = IngestionPipeline(store=FilesystemObjectStore(root), index=SQLiteIndex(db))
        result = pipeline.ingest("web", "main", "abc123", files)
    """

    def __init__(
        self,
        store: ObjectStore,
        index: RelationalIndex,
        limits: Optional[QuotaLimits] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the pipeline.

        Args:
            store: Object store receiving file bytes and cache projections
            index: Relational index receiving the batch upsert
            limits: Quota limits (defaults to the standard limits)
            metrics: Metrics collector (defaults to the global one)
            clock: Source of the ingestion timestamp
        """
        self.store = store
        self.index = index
        self.limits = limits or QuotaLimits()
        self.metrics = metrics or get_metrics()
        self.clock = clock

    # =========================================================================
    # Pre-flight
    # =========================================================================

    def prepare(self, project_id: str, files: Sequence[FileToUpload]) -> List[DecodedFile]:
        """Decode and quota-check the whole batch without writing anything.

        Raises:
            ClientInputError: If a payload cannot be decoded or a key is not flat
            QuotaExceededError: If any per-file or batch limit is exceeded
        """
        try:
            decoded = [decode_file(f) for f in files]
            for item in decoded:
                key = storage_key(project_id, item.file.lang, item.file.filename)
                if not is_flat_key(key):
                    raise ClientInputError(
                        f"Invalid storage key for {item.file.filename}: {key!r}"
                    )
            usage = enforce_quotas(decoded, self.limits)
        except (ClientInputError, QuotaExceededError) as e:
            self.metrics.record_rejected_batch()
            logger.warning(f"Rejected upload batch: {e}", extra_fields={"files": len(files)})
            raise

        logger.debug(
            "Upload batch accepted",
            extra_fields={"files": len(decoded), "total_keys": usage.total_keys, "total_bytes": usage.total_bytes},
        )
        return decoded

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest(
        self,
        project_id: str,
        branch: str,
        commit_sha: str,
        files: Sequence[FileToUpload],
    ) -> IngestResult:
        """Ingest a batch of translation files.

        Args:
            project_id: Project the files belong to
            branch: Source branch
            commit_sha: Commit the files were taken from
            files: Files to ingest

        Returns:
            IngestResult with one uploaded identifier and storage key per file

        Raises:
            ClientInputError: Malformed payload; nothing written
            QuotaExceededError: Limits exceeded; nothing written
            StorageFailure: Object write failed; earlier files stay written
            IndexFailure: Index upsert failed; all objects stay written
        """
        with with_correlation(project_id=project_id, branch=branch, commit_sha=commit_sha):
            started = time.perf_counter()
            logger.info(f"Ingesting {len(files)} file(s)")

            decoded = self.prepare(project_id, files)

            now = self.clock()
            result = IngestResult()
            records: List[IndexRecord] = []

            for item in decoded:
                f = item.file
                key = storage_key(project_id, f.lang, f.filename)

                with with_correlation(lang=f.lang, filename=f.filename):
                    self._write_object(key, item, project_id, commit_sha, now)
                    result.uploaded_files.append(f"{f.lang}/{f.filename}")
                    result.storage_keys.append(key)
                    self._precache_metadata(project_id, item, now)

                records.append(IndexRecord(
                    id=str(uuid4()),
                    project_id=project_id,
                    branch=branch,
                    commit_sha=commit_sha,
                    lang=f.lang,
                    filename=f.filename,
                    storage_key=key,
                    source_hash=f.source_hash,
                    total_keys=item.key_count,
                    uploaded_at=now,
                    last_updated=now,
                ))

            self._reconcile_index(records)

            duration_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"Ingested {len(records)} file(s)",
                extra_fields={"duration_ms": round(duration_ms, 2)},
            )
            return result

    def _write_object(
        self,
        key: str,
        item: DecodedFile,
        project_id: str,
        commit_sha: str,
        now: datetime,
    ) -> None:
        f = item.file
        metadata = {
            "project": project_id,
            "lang": f.lang,
            "filename": f.filename,
            "commitSha": commit_sha,
            "sourceHash": f.source_hash,
            "contentHash": fingerprint(item.data),
            "uploadedAt": now.isoformat(),
        }
        try:
            self.store.put(key, item.data, MSGPACK_CONTENT_TYPE, metadata)
        except Exception as e:
            logger.error(f"Failed to store object {key}: {e}")
            raise StorageFailure(f"Failed to store {f.lang}/{f.filename}: {e}", key=key) from e

        self.metrics.record_file_ingested(item.key_count, item.size_bytes)
        logger.info(
            f"Stored object {key}",
            extra_fields={"bytes": item.size_bytes, "keys": item.key_count},
        )

    def _write_cache_projection(self, project_id: str, item: DecodedFile, now: datetime) -> None:
        f = item.file
        projection = CacheMetadata(
            project_id=project_id,
            lang=f.lang,
            filename=f.filename,
            keys=item.key_count,
            source_hash=f.source_hash,
            updated_at=now,
        )
        key = cache_key(project_id, f.lang, f.filename)
        try:
            self.store.put(key, projection.model_dump_json().encode("utf-8"), "application/json", {})
        except Exception as e:
            raise AdvisoryFailure(f"Failed to pre-cache metadata for {f.filename}: {e}") from e

    def _precache_metadata(self, project_id: str, item: DecodedFile, now: datetime) -> None:
        """Best-effort projection write; failures are logged and dropped."""
        try:
            self._write_cache_projection(project_id, item, now)
        except AdvisoryFailure as e:
            self.metrics.record_cache_failure()
            logger.warning(e.message)

    def _reconcile_index(self, records: Sequence[IndexRecord]) -> None:
        if not records:
            return
        statement = build_file_upsert(records)
        try:
            changed = self.index.execute(statement)
        except Exception as e:
            logger.error(f"Index upsert failed after storing {len(records)} object(s): {e}")
            raise IndexFailure(
                f"Index update failed; {len(records)} object(s) were stored but not indexed: {e}"
            ) from e
        logger.info(f"Upserted {len(records)} index row(s)", extra_fields={"changed": changed})


def ingest(
    project_id: str,
    branch: str,
    commit_sha: str,
    files: Sequence[FileToUpload],
    store: ObjectStore,
    index: RelationalIndex,
    limits: Optional[QuotaLimits] = None,
) -> IngestResult:
    """Ingest a batch with a one-off pipeline."""
    return IngestionPipeline(store=store, index=index, limits=limits).ingest(
        project_id, branch, commit_sha, files
    )
