"""Ingestion - quota-enforced upload of translation files.

Decodes packed payloads, enforces per-file and batch quotas before any
write, stores each file under a deterministic flat key, projects a
lightweight cache record, and upserts the file index.

Usage:
    from ingestion import IngestionPipeline

    pipeline = IngestionPipeline(store=store, index=index)
    result = pipeline.ingest("web", "main", commit_sha, files)
    print(result.storage_keys)
"""

from ingestion.pipeline import IngestionPipeline, ingest
from ingestion.payload import DecodedFile, decode_file, count_keys
from ingestion.quotas import QuotaUsage, enforce_quotas
from ingestion.keys import sanitize_filename, storage_key, cache_key, misc_storage_key
from ingestion.misc import upload_misc_git

__all__ = [
    # Pipeline
    "IngestionPipeline",
    "ingest",
    # Payloads
    "DecodedFile",
    "decode_file",
    "count_keys",
    # Quotas
    "QuotaUsage",
    "enforce_quotas",
    # Keys
    "sanitize_filename",
    "storage_key",
    "cache_key",
    "misc_storage_key",
    # Misc
    "upload_misc_git",
]
