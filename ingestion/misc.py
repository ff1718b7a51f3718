"""Upload of misc-git metadata attached to an already stored file.

The attachment is stored next to the file object under
``{storage_key}-misc-git``. Linking it from the index row is best-effort:
the row may not exist yet, and a failed update is only logged.
"""

import binascii
from typing import Optional

from core.errors import ClientInputError, StorageFailure
from core.observability.logging import get_logger, with_correlation
from core.storage.index import RelationalIndex, build_misc_key_update
from core.storage.objects import ObjectStore
from ingestion.keys import is_flat_key, misc_storage_key
from ingestion.payload import MSGPACK_CONTENT_TYPE, decode_base64


logger = get_logger(__name__)


def upload_misc_git(
    store: ObjectStore,
    index: Optional[RelationalIndex],
    project_id: str,
    storage_key: str,
    metadata_base64: str,
    lang: Optional[str] = None,
    filename: Optional[str] = None,
) -> str:
    """Store misc-git metadata for a file and link it in the index.

    Args:
        store: Object store
        index: File index, or None to skip linking
        project_id: Project the file belongs to
        storage_key: Storage key of the file the metadata describes
        metadata_base64: Base64 MessagePack metadata payload
        lang: Optional language, recorded as object metadata
        filename: Optional filename, recorded as object metadata

    Returns:
        Storage key of the misc-git object

    Raises:
        ClientInputError: If the payload is not base64 or the key is not flat
        StorageFailure: If the object write fails
    """
    with with_correlation(project_id=project_id, lang=lang, filename=filename):
        if not is_flat_key(storage_key):
            raise ClientInputError(f"Invalid storage key: {storage_key!r}")

        try:
            data = decode_base64(metadata_base64)
        except (binascii.Error, ValueError) as e:
            raise ClientInputError(f"Failed to decode metadata_base64: {e}") from e

        key = misc_storage_key(storage_key)
        meta = {"project": project_id}
        if lang:
            meta["lang"] = lang
        if filename:
            meta["filename"] = filename

        try:
            store.put(key, data, MSGPACK_CONTENT_TYPE, meta)
        except Exception as e:
            raise StorageFailure(f"Failed to store misc metadata {key}: {e}", key=key) from e

        if index is None:
            logger.warning("Index not available; skipping misc key update")
            return key

        try:
            changed = index.execute(build_misc_key_update(key, storage_key))
        except Exception as e:
            logger.warning(f"[misc-git] failed to update index misc key: {e}")
        else:
            if not changed:
                logger.info(f"[misc-git] no indexed file for {storage_key}")

        return key
