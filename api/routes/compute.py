"""Stateless compute endpoints: hashing, drift validation and sorting."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from compute.drift import validate
from compute.fingerprint import batch_fingerprint
from compute.sorting import SortDirection, sort
from core.models.sync import TranslationToValidate, ValidationResult
from core.observability.metrics import track_operation


router = APIRouter()


class HashRequest(BaseModel):
    """Values to fingerprint."""
    values: List[str] = Field(default_factory=list)


class HashResponse(BaseModel):
    """One fingerprint per input value, same order."""
    hashes: List[str]


class ValidationRequest(BaseModel):
    """Translations to check against current source fingerprints."""
    translations: List[TranslationToValidate] = Field(default_factory=list)
    source_hashes: Dict[str, str] = Field(default_factory=dict, description="Source key -> current fingerprint")


class ValidationResponse(BaseModel):
    """One result per translation, same order."""
    results: List[ValidationResult]


class SortRequest(BaseModel):
    """Records to order by one field."""
    items: List[Any] = Field(default_factory=list)
    sort_by: str = Field(..., description="Field to compare on")
    order: Optional[str] = Field(None, description="asc (default) or desc")


class SortResponse(BaseModel):
    """Reordered records."""
    sorted: List[Any]


@router.post("/hash", response_model=HashResponse)
async def hash_values(request: HashRequest) -> HashResponse:
    """Fingerprint a batch of strings."""
    with track_operation("hash"):
        return HashResponse(hashes=batch_fingerprint(request.values))


@router.post("/validate", response_model=ValidationResponse)
async def validate_translations(request: ValidationRequest) -> ValidationResponse:
    """Detect translations whose source string changed or disappeared."""
    with track_operation("validate"):
        return ValidationResponse(results=validate(request.translations, request.source_hashes))


@router.post("/sort", response_model=SortResponse)
async def sort_items(request: SortRequest) -> SortResponse:
    """Stable sort of records by a field."""
    try:
        order = SortDirection(request.order or SortDirection.ASC)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid sort order: {request.order}")

    with track_operation("sort"):
        return SortResponse(sorted=sort(request.items, request.sort_by, order))
