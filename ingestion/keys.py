"""Deterministic object store keys.

The same (project, lang, filename) always maps to the same flat key, so
re-ingesting a file overwrites its previous object.
"""

PATH_SEPARATORS = ("/", "\\")
SEPARATOR_SUBSTITUTE = "-"
MISC_GIT_SUFFIX = "-misc-git"


def sanitize_filename(filename: str) -> str:
    """Replace path separators so the name is a single flat token."""
    for sep in PATH_SEPARATORS:
        filename = filename.replace(sep, SEPARATOR_SUBSTITUTE)
    return filename


def storage_key(project_id: str, lang: str, filename: str) -> str:
    return f"{project_id}-{lang}-{sanitize_filename(filename)}"


def cache_key(project_id: str, lang: str, filename: str) -> str:
    """Key of the advisory metadata projection for a file."""
    return f"meta-{storage_key(project_id, lang, filename)}"


def misc_storage_key(file_storage_key: str) -> str:
    return f"{file_storage_key}{MISC_GIT_SUFFIX}"


def is_flat_key(key: str) -> bool:
    return bool(key) and not any(sep in key for sep in PATH_SEPARATORS)
