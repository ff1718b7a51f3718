"""File index database operations.

This module handles all database operations for the translation file index:
- Schema initialization
- Statement execution (the capability ingestion writes through)
- Upsert/update statement builders
- Read helpers for listing and lookups

The translation_files table holds one row per
(project_id, branch, lang, filename); re-ingesting a file updates its row
in place.
"""

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence, Tuple, Union

from core.models.sync import IndexRecord


@dataclass
class IndexStatement:
    """A parameterised SQL statement applied to one or more rows.

    Attributes:
        sql: SQL text with ``?`` placeholders
        rows: One parameter tuple per execution
    """
    sql: str
    rows: List[Tuple[Any, ...]] = field(default_factory=list)


class RelationalIndex(Protocol):
    """Capability consumed by ingestion: executes index statements."""

    def execute(self, statement: IndexStatement) -> int:
        ...


# =============================================================================
# Statement Builders
# =============================================================================

UPSERT_FILE_SQL = """
    INSERT INTO translation_files
    (id, project_id, branch, commit_sha, lang, filename, storage_key,
     source_hash, total_keys, uploaded_at, last_updated)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(project_id, branch, lang, filename) DO UPDATE SET
        commit_sha = excluded.commit_sha,
        storage_key = excluded.storage_key,
        source_hash = excluded.source_hash,
        total_keys = excluded.total_keys,
        last_updated = excluded.last_updated
"""

UPDATE_MISC_KEY_SQL = """
    UPDATE translation_files SET misc_storage_key = ? WHERE storage_key = ?
"""


def build_file_upsert(records: Sequence[IndexRecord]) -> IndexStatement:
    """Build one insert-or-update statement covering every record.

    On conflict the row keeps its id and uploaded_at; everything that
    describes the latest ingestion is overwritten.
    """
    rows = [
        (
            r.id,
            r.project_id,
            r.branch,
            r.commit_sha,
            r.lang,
            r.filename,
            r.storage_key,
            r.source_hash,
            r.total_keys,
            r.uploaded_at.isoformat(),
            r.last_updated.isoformat(),
        )
        for r in records
    ]
    return IndexStatement(sql=UPSERT_FILE_SQL, rows=rows)


def build_misc_key_update(misc_storage_key: str, storage_key: str) -> IndexStatement:
    """Build the statement linking a misc-git object to its file row."""
    return IndexStatement(sql=UPDATE_MISC_KEY_SQL, rows=[(misc_storage_key, storage_key)])


# =============================================================================
# SQLite Index
# =============================================================================

class SQLiteIndex:
    """File index stored in a SQLite database."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def init_schema(self) -> None:
        """Create the translation_files table and its indexes if missing."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS translation_files (
                    id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    branch TEXT NOT NULL,
                    commit_sha TEXT NOT NULL,
                    lang TEXT NOT NULL,
                    filename TEXT NOT NULL,
                    storage_key TEXT NOT NULL,
                    misc_storage_key TEXT,
                    source_hash TEXT NOT NULL,
                    total_keys INTEGER NOT NULL DEFAULT 0,
                    uploaded_at TEXT NOT NULL,
                    last_updated TEXT NOT NULL,
                    UNIQUE(project_id, branch, lang, filename)
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_translation_files_project
                ON translation_files(project_id, branch)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_translation_files_storage_key
                ON translation_files(storage_key)
            """)
            conn.commit()
        finally:
            conn.close()

    def execute(self, statement: IndexStatement) -> int:
        """Run a statement for all of its rows in a single transaction.

        Returns:
            Number of rows changed

        Raises:
            sqlite3.Error: If any row fails; the whole statement is rolled back
        """
        if not statement.rows:
            return 0
        conn = self._connect()
        try:
            cursor = conn.cursor()
            try:
                cursor.executemany(statement.sql, statement.rows)
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise
            return cursor.rowcount
        finally:
            conn.close()

    def get_record(
        self,
        project_id: str,
        branch: str,
        lang: str,
        filename: str,
    ) -> Optional[IndexRecord]:
        """Look up the row for one file, or None."""
        conn = self._connect()
        conn.row_factory = sqlite3.Row
        try:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM translation_files
                WHERE project_id = ? AND branch = ? AND lang = ? AND filename = ?
            """, (project_id, branch, lang, filename))
            row = cursor.fetchone()
            if row:
                return _row_to_record(row)
            return None
        finally:
            conn.close()

    def list_records(self, project_id: str, branch: Optional[str] = None) -> List[IndexRecord]:
        """List rows for a project, optionally narrowed to one branch."""
        conn = self._connect()
        conn.row_factory = sqlite3.Row
        try:
            cursor = conn.cursor()
            if branch is None:
                cursor.execute("""
                    SELECT * FROM translation_files
                    WHERE project_id = ?
                    ORDER BY branch, lang, filename
                """, (project_id,))
            else:
                cursor.execute("""
                    SELECT * FROM translation_files
                    WHERE project_id = ? AND branch = ?
                    ORDER BY lang, filename
                """, (project_id, branch))
            return [_row_to_record(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def count(self) -> int:
        conn = self._connect()
        try:
            return conn.execute("SELECT COUNT(*) FROM translation_files").fetchone()[0]
        finally:
            conn.close()


def _row_to_record(row: sqlite3.Row) -> IndexRecord:
    """Convert a database row to IndexRecord."""
    return IndexRecord(
        id=row["id"],
        project_id=row["project_id"],
        branch=row["branch"],
        commit_sha=row["commit_sha"],
        lang=row["lang"],
        filename=row["filename"],
        storage_key=row["storage_key"],
        misc_storage_key=row["misc_storage_key"],
        source_hash=row["source_hash"],
        total_keys=row["total_keys"],
        uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
        last_updated=datetime.fromisoformat(row["last_updated"]),
    )
