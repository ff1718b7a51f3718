"""Data models for translation sync: drift validation, ingestion and the file index."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Drift Validation
# =============================================================================

class DriftReason(str, Enum):
    """Why a translation no longer matches its source string."""
    KEY_REMOVED = "key no longer exists in source"
    MISSING_SOURCE_TRACKING = "translation missing source tracking"
    SOURCE_CHANGED = "source value changed"


class TranslationToValidate(BaseModel):
    """A translation's last-known binding to a source string fingerprint.

    Attributes:
        id: Translation identifier, echoed back in the result
        key: Source key the translation belongs to
        source_hash: Fingerprint of the source value the translation was made from
    """
    id: str = Field(..., description="Translation identifier")
    key: str = Field(..., description="Source string key")
    source_hash: Optional[str] = Field(None, description="Recorded source fingerprint")


class ValidationResult(BaseModel):
    """Outcome of validating one translation against the current source."""
    id: str = Field(..., description="Translation identifier")
    is_valid: bool = Field(..., description="Whether the translation is still in sync")
    reason: Optional[str] = Field(None, description="Drift reason when invalid")

    @property
    def valid(self) -> bool:
        return self.is_valid


# =============================================================================
# Ingestion
# =============================================================================

class FileToUpload(BaseModel):
    """A translation file submitted for ingestion.

    When ``packed_data`` (base64 MessagePack) is present it is the source of
    truth for the stored bytes, byte size and key count; ``contents`` is then
    ignored.
    """
    lang: str = Field(..., description="Language code")
    filename: str = Field(..., description="Path of the file in the source repository")
    contents: Dict[str, Any] = Field(default_factory=dict, description="Structured key/value content")
    source_hash: str = Field(..., description="Fingerprint of the source file this translation tracks")
    packed_data: Optional[str] = Field(None, description="Base64 MessagePack payload")


class IngestResult(BaseModel):
    """Identifiers and storage keys written by one ingestion request."""
    uploaded_files: list[str] = Field(default_factory=list, description="'{lang}/{filename}' per file")
    storage_keys: list[str] = Field(default_factory=list, description="Object store key per file")


class IndexRecord(BaseModel):
    """One row of the file index, unique per (project, branch, lang, filename)."""
    id: str
    project_id: str
    branch: str
    commit_sha: str
    lang: str
    filename: str
    storage_key: str
    misc_storage_key: Optional[str] = None
    source_hash: str
    total_keys: int
    uploaded_at: datetime
    last_updated: datetime


class CacheMetadata(BaseModel):
    """Lightweight projection of an index row kept beside the stored object.

    Advisory only: used for fast existence/listing checks, never for
    correctness decisions.
    """
    project_id: str
    lang: str
    filename: str
    keys: int
    source_hash: str
    updated_at: datetime
