"""Core data models for translation sync."""

from core.models.sync import (
    # Drift validation
    DriftReason,
    TranslationToValidate,
    ValidationResult,

    # Ingestion
    FileToUpload,
    IngestResult,
    IndexRecord,
    CacheMetadata,
)

__all__ = [
    # Drift validation
    "DriftReason",
    "TranslationToValidate",
    "ValidationResult",

    # Ingestion
    "FileToUpload",
    "IngestResult",
    "IndexRecord",
    "CacheMetadata",
]
