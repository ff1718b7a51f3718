"""Read-only views over the file index and the cached metadata projections."""

import json
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from api.routes.upload import get_index, get_store
from core.errors import StorageFailure
from core.models.sync import CacheMetadata, IndexRecord
from core.storage.index import SQLiteIndex
from core.storage.objects import FilesystemObjectStore
from ingestion.keys import cache_key


router = APIRouter()


class FileListResponse(BaseModel):
    files: List[IndexRecord]


@router.get("", response_model=FileListResponse)
def list_files(
    project_id: str = Query(..., min_length=1),
    branch: Optional[str] = None,
    index: SQLiteIndex = Depends(get_index),
) -> FileListResponse:
    """List indexed files of a project."""
    return FileListResponse(files=index.list_records(project_id, branch))


@router.get("/metadata", response_model=CacheMetadata)
def get_file_metadata(
    project_id: str = Query(..., min_length=1),
    lang: str = Query(..., min_length=1),
    filename: str = Query(..., min_length=1),
    store: FilesystemObjectStore = Depends(get_store),
) -> CacheMetadata:
    """Fast existence check from the cached projection, without the index."""
    key = cache_key(project_id, lang, filename)
    try:
        obj = store.get(key)
    except StorageFailure as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid metadata key: {key}")
    if obj is None:
        raise HTTPException(status_code=404, detail="Metadata not found")
    return CacheMetadata.model_validate(json.loads(obj.data))
