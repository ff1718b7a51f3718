"""Drift validation of translations against current source fingerprints."""

from typing import Iterable, List, Mapping

from core.models.sync import DriftReason, TranslationToValidate, ValidationResult


def validate_one(translation: TranslationToValidate, source_hashes: Mapping[str, str]) -> ValidationResult:
    """Decide whether one translation still matches its source string.

    The source key must still exist, the translation must record which
    source fingerprint it was made from, and that fingerprint must equal
    the current one. Nothing else about the translation is considered.
    """
    current = source_hashes.get(translation.key)
    if current is None:
        reason = DriftReason.KEY_REMOVED
    elif translation.source_hash is None:
        reason = DriftReason.MISSING_SOURCE_TRACKING
    elif translation.source_hash != current:
        reason = DriftReason.SOURCE_CHANGED
    else:
        return ValidationResult(id=translation.id, is_valid=True)

    return ValidationResult(id=translation.id, is_valid=False, reason=reason.value)


def validate(
    translations: Iterable[TranslationToValidate],
    source_hashes: Mapping[str, str],
) -> List[ValidationResult]:
    """Validate a batch of translations; one result per input, same order."""
    return [validate_one(t, source_hashes) for t in translations]
