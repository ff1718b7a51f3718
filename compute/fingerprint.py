"""Content fingerprinting.

A fingerprint is the first 16 hex characters of the SHA256 digest of a
value's UTF-8 bytes. It detects change; it is not a security identity.
"""

import hashlib
from typing import Iterable, List, Union

FINGERPRINT_LENGTH = 16


def fingerprint(value: Union[str, bytes]) -> str:
    """Fingerprint a single value.

    Args:
        value: Text (encoded as UTF-8) or raw bytes; empty is allowed

    Returns:
        16-character lowercase hex string
    """
    data = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    return hashlib.sha256(data).hexdigest()[:FINGERPRINT_LENGTH]


def batch_fingerprint(values: Iterable[Union[str, bytes]]) -> List[str]:
    """Fingerprint each value independently, preserving order."""
    return [fingerprint(v) for v in values]
