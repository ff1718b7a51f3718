"""Error taxonomy for the compute service.

Each error carries the HTTP status the request boundary reports for it.
Decode and quota errors are raised before any store write happens;
storage and index errors are raised after some writes may have landed.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for request-processing errors."""
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(SyncError):
    """Malformed request payload (400)."""
    status_code = 400


class QuotaExceededError(SyncError):
    """Per-file or aggregate ingestion quota exceeded (413)."""
    status_code = 413

    def __init__(self, message: str, limit: int, actual: int, filename: Optional[str] = None):
        super().__init__(message)
        self.limit = limit
        self.actual = actual
        self.filename = filename


class StorageFailure(SyncError):
    """Object store failure. Earlier files in an ingestion request stay written."""
    status_code = 500

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class IndexFailure(SyncError):
    """Index upsert failed after the objects were stored."""
    status_code = 500


class AdvisoryFailure(SyncError):
    """Best-effort cache projection failed. Never surfaced to callers."""
