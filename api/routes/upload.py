"""Upload endpoints.

Handles quota-enforced ingestion of translation files and misc-git
metadata attachments.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from core.errors import SyncError
from core.models.sync import FileToUpload
from core.observability.metrics import track_operation
from core.storage.index import SQLiteIndex
from core.storage.objects import FilesystemObjectStore
from ingestion.misc import upload_misc_git
from ingestion.pipeline import IngestionPipeline


router = APIRouter()


class UploadRequest(BaseModel):
    """A batch of translation files from one commit."""
    project_id: str = Field(..., min_length=1)
    branch: str = Field(..., min_length=1)
    commit_sha: str = Field(..., min_length=1)
    files: List[FileToUpload] = Field(default_factory=list)


class UploadResponse(BaseModel):
    """Files written by an upload."""
    success: bool
    uploaded_files: List[str]
    storage_keys: List[str]


class MiscGitRequest(BaseModel):
    """Misc-git metadata for an already uploaded file."""
    project_id: str = Field(..., min_length=1)
    storage_key: str = Field(..., min_length=1)
    metadata_base64: str
    lang: Optional[str] = None
    filename: Optional[str] = None


class MiscGitResponse(BaseModel):
    success: bool
    storage_key: str


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline


def get_store(request: Request) -> FilesystemObjectStore:
    return request.app.state.store


def get_index(request: Request) -> SQLiteIndex:
    return request.app.state.index


@router.post("/upload", response_model=UploadResponse)
def upload_files(
    request: UploadRequest,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> UploadResponse:
    """Ingest a batch of translation files.

    Rejected batches (400 malformed payload, 413 quota exceeded) write
    nothing. A 500 may leave earlier files of the batch stored; retrying
    the same request is safe.
    """
    try:
        with track_operation("upload"):
            result = pipeline.ingest(request.project_id, request.branch, request.commit_sha, request.files)
    except SyncError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return UploadResponse(success=True, uploaded_files=result.uploaded_files, storage_keys=result.storage_keys)


@router.post("/upload-misc-git", response_model=MiscGitResponse)
def upload_misc(
    request: MiscGitRequest,
    store: FilesystemObjectStore = Depends(get_store),
    index: SQLiteIndex = Depends(get_index),
) -> MiscGitResponse:
    """Store misc-git metadata next to a file object."""
    try:
        with track_operation("upload_misc_git"):
            key = upload_misc_git(
                store,
                index,
                project_id=request.project_id,
                storage_key=request.storage_key,
                metadata_base64=request.metadata_base64,
                lang=request.lang,
                filename=request.filename,
            )
    except SyncError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return MiscGitResponse(success=True, storage_key=key)
