"""Core storage - object store and file index capabilities."""

from core.storage.objects import (
    ObjectStore,
    StoredObject,
    FilesystemObjectStore,
)
from core.storage.index import (
    IndexStatement,
    RelationalIndex,
    SQLiteIndex,
    build_file_upsert,
    build_misc_key_update,
)

__all__ = [
    "ObjectStore",
    "StoredObject",
    "FilesystemObjectStore",
    "IndexStatement",
    "RelationalIndex",
    "SQLiteIndex",
    "build_file_upsert",
    "build_misc_key_update",
]
