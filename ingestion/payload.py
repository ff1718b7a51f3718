"""Decoding of submitted translation files into storable bytes.

A file either carries ``packed_data`` (base64 of a MessagePack document),
which is stored verbatim and is authoritative for size and key count, or
only structured ``contents``, which is packed here with MessagePack.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any

import msgpack

from core.errors import ClientInputError
from core.models.sync import FileToUpload


MSGPACK_CONTENT_TYPE = "application/msgpack"


@dataclass
class DecodedFile:
    """A submitted file together with the bytes that will be stored.

    Attributes:
        file: The file as submitted
        data: Bytes written to the object store
        key_count: Number of translation keys in the document
        packed: True when data came from packed_data
    """
    file: FileToUpload
    data: bytes
    key_count: int
    packed: bool

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def count_keys(document: Any) -> int:
    """Count translation keys, preferring a nested "raw" mapping."""
    if isinstance(document, dict):
        raw = document.get("raw")
        if isinstance(raw, dict):
            return len(raw)
        return len(document)
    return 0


def decode_base64(value: str) -> bytes:
    """Strict standard-alphabet base64 decode.

    Raises:
        binascii.Error: If the value is not valid base64
    """
    return base64.b64decode(value, validate=True)


def decode_file(file: FileToUpload) -> DecodedFile:
    """Resolve the bytes and key count for one submitted file.

    Raises:
        ClientInputError: If packed_data is not valid base64 MessagePack, or
            contents cannot be encoded as MessagePack
    """
    if file.packed_data is None:
        try:
            data = msgpack.packb(file.contents, use_bin_type=True)
        except (OverflowError, TypeError, ValueError) as e:
            raise ClientInputError(f"Invalid contents for {file.filename}: msgpack: {e}") from e
        return DecodedFile(file=file, data=data, key_count=count_keys(file.contents), packed=False)

    try:
        data = decode_base64(file.packed_data)
    except (binascii.Error, ValueError) as e:
        raise ClientInputError(f"Invalid packed data for {file.filename}: base64: {e}") from e

    try:
        document = msgpack.unpackb(data, raw=False)
    except (ValueError, TypeError, msgpack.UnpackException) as e:
        raise ClientInputError(f"Invalid packed data for {file.filename}: msgpack: {e}") from e

    return DecodedFile(file=file, data=data, key_count=count_keys(document), packed=True)
