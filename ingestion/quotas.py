"""Pre-flight quota enforcement for ingestion batches.

Every check runs before the first store write, so a rejected batch
leaves nothing behind.
"""

from dataclasses import dataclass
from typing import Sequence

from core.config import QuotaLimits
from core.errors import QuotaExceededError
from ingestion.payload import DecodedFile


@dataclass
class QuotaUsage:
    """Totals of an accepted batch."""
    total_keys: int = 0
    total_bytes: int = 0


def enforce_quotas(files: Sequence[DecodedFile], limits: QuotaLimits) -> QuotaUsage:
    """Check per-file limits in order, then the batch totals.

    Returns:
        QuotaUsage for the batch

    Raises:
        QuotaExceededError: On the first violated limit
    """
    usage = QuotaUsage()

    for decoded in files:
        filename = decoded.file.filename
        if decoded.key_count > limits.max_keys_per_file:
            raise QuotaExceededError(
                f"File {filename} has too many keys: {decoded.key_count}",
                limit=limits.max_keys_per_file,
                actual=decoded.key_count,
                filename=filename,
            )
        if decoded.size_bytes > limits.max_bytes_per_file:
            raise QuotaExceededError(
                f"File {filename} is too large: {decoded.size_bytes}",
                limit=limits.max_bytes_per_file,
                actual=decoded.size_bytes,
                filename=filename,
            )
        usage.total_keys += decoded.key_count
        usage.total_bytes += decoded.size_bytes

    if usage.total_keys > limits.max_total_keys:
        raise QuotaExceededError(
            f"Total key count exceeds limit: {usage.total_keys}",
            limit=limits.max_total_keys,
            actual=usage.total_keys,
        )
    if usage.total_bytes > limits.max_total_bytes:
        raise QuotaExceededError(
            f"Total upload size too large: {usage.total_bytes}",
            limit=limits.max_total_bytes,
            actual=usage.total_bytes,
        )

    return usage
