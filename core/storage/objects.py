"""Object store capability and its filesystem implementation.

Objects live under flat keys. Any flat key is storable; the object bytes
and their metadata are kept together in a single record per key.
"""

import hashlib
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, Field

from core.errors import StorageFailure


class StoredObject(BaseModel):
    """An object read back from the store with its metadata.

    Attributes:
        key: Flat storage key
        data: Raw object bytes
        content_type: MIME type given at write time
        custom_metadata: String metadata given at write time
        content_hash: SHA256 hash of the bytes
        size_bytes: Size of the object in bytes
        stored_at: Timestamp of the last write
    """
    key: str
    data: bytes
    content_type: str = Field(default="application/octet-stream")
    custom_metadata: Dict[str, str] = Field(default_factory=dict)
    content_hash: str
    size_bytes: int
    stored_at: datetime


class ObjectStore(Protocol):
    """Capability consumed by ingestion: a flat-keyed blob store."""

    def put(self, key: str, data: bytes, content_type: str,
            custom_metadata: Optional[Dict[str, str]] = None) -> None:
        ...

    def get(self, key: str) -> Optional[StoredObject]:
        ...


def _compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


class FilesystemObjectStore:
    """Object store backed by a local directory.

    Each object is one record file under ``<root>/objects/<key>``: a single
    JSON header line (content type, custom metadata, hash, size, timestamp)
    followed by the raw bytes. Records are staged in ``<root>/tmp`` and
    moved into place with ``os.replace``, so concurrent writers of the same
    key leave exactly one complete record (last write wins).
    """

    def __init__(self, base_path: Union[str, Path]):
        """Initialize object store.

        Args:
            base_path: Directory holding all objects
        """
        self.base_path = Path(base_path)
        self.objects_path = self.base_path / "objects"
        self.staging_path = self.base_path / "tmp"
        self.objects_path.mkdir(parents=True, exist_ok=True)
        self.staging_path.mkdir(parents=True, exist_ok=True)

    def _object_path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise ValueError(f"Invalid object key: {key!r}")
        return self.objects_path / key

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream",
            custom_metadata: Optional[Dict[str, str]] = None) -> None:
        """Store bytes under key, replacing any previous object.

        Raises:
            ValueError: If key is not a flat token
            OSError: If the write fails
        """
        path = self._object_path(key)
        header = {
            "content_type": content_type,
            "custom_metadata": dict(custom_metadata or {}),
            "content_hash": _compute_sha256(data),
            "size_bytes": len(data),
            "stored_at": datetime.now(timezone.utc).isoformat(),
        }
        record = json.dumps(header).encode("utf-8") + b"\n" + data

        with tempfile.NamedTemporaryFile(dir=self.staging_path, delete=False) as tmp:
            tmp.write(record)
            tmp_path = Path(tmp.name)
        try:
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    def get(self, key: str, validate_hash: bool = True) -> Optional[StoredObject]:
        """Read an object back.

        Args:
            key: Flat storage key
            validate_hash: Verify the bytes still match the recorded hash

        Returns:
            StoredObject, or None if the key does not exist

        Raises:
            ValueError: If key is not a flat token
            StorageFailure: If the record is corrupt or hash validation fails
        """
        path = self._object_path(key)
        try:
            record = path.read_bytes()
        except FileNotFoundError:
            return None

        header_line, sep, data = record.partition(b"\n")
        try:
            header = json.loads(header_line)
        except ValueError as e:
            raise StorageFailure(f"Corrupt object record for {key}: {e}", key) from e
        if not sep:
            raise StorageFailure(f"Corrupt object record for {key}: missing header", key)

        if validate_hash:
            actual_hash = _compute_sha256(data)
            if actual_hash != header["content_hash"]:
                raise StorageFailure(
                    f"Hash mismatch for {key}: "
                    f"expected {header['content_hash']}, got {actual_hash}",
                    key,
                )

        return StoredObject(key=key, data=data, **header)

    def exists(self, key: str) -> bool:
        return self._object_path(key).exists()

    def list_keys(self, prefix: str = "") -> List[str]:
        """List object keys starting with prefix, sorted."""
        return sorted(
            p.name for p in self.objects_path.iterdir()
            if p.is_file() and p.name.startswith(prefix)
        )
