"""Compute - stateless request operations.

- fingerprint / batch_fingerprint: deterministic 16-hex content fingerprints
- validate: drift detection of translations against source fingerprints
- sort: stable comparator-based ordering of records by a field

Usage:
    from compute import batch_fingerprint, validate

    source_hashes = dict(zip(keys, batch_fingerprint(values)))
    results = validate(translations, source_hashes)
    stale = [r.id for r in results if not r.is_valid]
"""

from compute.fingerprint import fingerprint, batch_fingerprint, FINGERPRINT_LENGTH
from compute.drift import validate, validate_one
from compute.sorting import sort, compare_values, SortDirection

__all__ = [
    # Fingerprints
    "fingerprint",
    "batch_fingerprint",
    "FINGERPRINT_LENGTH",
    # Drift
    "validate",
    "validate_one",
    # Sorting
    "sort",
    "compare_values",
    "SortDirection",
]
