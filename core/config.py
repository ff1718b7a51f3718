"""Service configuration.

Reads settings from environment variables, optionally loaded from a
``.env`` file at the repository root:

- SYNC_STORAGE_ROOT: Directory backing the filesystem object store
- SYNC_INDEX_DB_PATH: SQLite database backing the file index
- SYNC_LOG_LEVEL / SYNC_LOG_JSON: Logging level and output format
- SYNC_MAX_*: Ingestion quota overrides
- COMPUTE_WORKER_URL: Remote compute service used by the client
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Load .env file if it exists
from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]
env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


DEFAULT_STORAGE_ROOT = REPO_ROOT / "object_store"
DEFAULT_INDEX_DB_PATH = REPO_ROOT / "sync_index.db"

MAX_KEYS_PER_FILE = 10_000
MAX_BYTES_PER_FILE = 5 * 1024 * 1024
MAX_TOTAL_KEYS = 200_000
MAX_TOTAL_BYTES = 50 * 1024 * 1024


@dataclass(frozen=True)
class QuotaLimits:
    """Per-file and per-request ingestion limits."""
    max_keys_per_file: int = MAX_KEYS_PER_FILE
    max_bytes_per_file: int = MAX_BYTES_PER_FILE
    max_total_keys: int = MAX_TOTAL_KEYS
    max_total_bytes: int = MAX_TOTAL_BYTES


@dataclass
class Settings:
    """Runtime settings for the compute service."""
    storage_root: Path = DEFAULT_STORAGE_ROOT
    index_db_path: Path = DEFAULT_INDEX_DB_PATH
    log_level: int = logging.INFO
    log_json: bool = False
    quotas: QuotaLimits = QuotaLimits()
    compute_worker_url: Optional[str] = None


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_level(name: str, default: int = logging.INFO) -> int:
    value = os.getenv(name)
    if not value:
        return default
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else default


def load_settings() -> Settings:
    """Build Settings from the current environment.

    Returns:
        Settings with every unset or unparsable value at its default
    """
    storage_root = os.getenv("SYNC_STORAGE_ROOT")
    index_db_path = os.getenv("SYNC_INDEX_DB_PATH")

    quotas = QuotaLimits(
        max_keys_per_file=_env_int("SYNC_MAX_KEYS_PER_FILE", MAX_KEYS_PER_FILE),
        max_bytes_per_file=_env_int("SYNC_MAX_BYTES_PER_FILE", MAX_BYTES_PER_FILE),
        max_total_keys=_env_int("SYNC_MAX_TOTAL_KEYS", MAX_TOTAL_KEYS),
        max_total_bytes=_env_int("SYNC_MAX_TOTAL_BYTES", MAX_TOTAL_BYTES),
    )

    return Settings(
        storage_root=Path(storage_root) if storage_root else DEFAULT_STORAGE_ROOT,
        index_db_path=Path(index_db_path) if index_db_path else DEFAULT_INDEX_DB_PATH,
        log_level=_env_level("SYNC_LOG_LEVEL"),
        log_json=_env_bool("SYNC_LOG_JSON"),
        quotas=quotas,
        compute_worker_url=os.getenv("COMPUTE_WORKER_URL") or None,
    )
