"""SQLite implementation of the index store."""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from repo_index.extraction.models import ContentChunk
from repo_index.index.errors import (
    CheckpointConflictError,
    CheckpointOwnershipError,
    IndexSchemaUnsupportedError,
    StoreError,
)
from repo_index.index.models import (
    SUMMARY_LENGTH,
    AnalysisWrite,
    FileAnalysisRecord,
    IndexCheckpoint,
)
from repo_index.index.store import INDEX_SCHEMA_VERSION, facts_from_json, facts_to_json

BUSY_TIMEOUT_MS = 5000
_IN_CLAUSE_BATCH = 500

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS schema_meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS index_checkpoints (
        id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL,
        stage TEXT NOT NULL,
        processed_files TEXT NOT NULL,
        failed_files TEXT NOT NULL,
        last_processed_file TEXT,
        retry_count INTEGER NOT NULL DEFAULT 0,
        error_message TEXT,
        total_files INTEGER NOT NULL DEFAULT 0,
        batch_size INTEGER NOT NULL,
        owner_token TEXT,
        owner_pid INTEGER,
        start_time TEXT NOT NULL,
        last_update_time TEXT NOT NULL,
        completed_at TEXT
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_checkpoints_live
    ON index_checkpoints (project_id)
    WHERE stage IN ('scanning', 'analyzing')
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_checkpoints_project
    ON index_checkpoints (project_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS file_analyses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id TEXT NOT NULL,
        file_path TEXT NOT NULL,
        language TEXT NOT NULL,
        summary TEXT NOT NULL,
        size INTEGER NOT NULL,
        line_count INTEGER NOT NULL,
        char_count INTEGER NOT NULL,
        complexity INTEGER NOT NULL,
        nesting_depth INTEGER NOT NULL,
        facts TEXT NOT NULL,
        checksum TEXT NOT NULL,
        analysis_count INTEGER NOT NULL DEFAULT 1,
        chunk_count INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL,
        UNIQUE (project_id, file_path)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS file_chunks (
        analysis_id INTEGER NOT NULL
            REFERENCES file_analyses (id) ON DELETE CASCADE,
        chunk_index INTEGER NOT NULL,
        chunk_number INTEGER NOT NULL,
        chunk_count INTEGER NOT NULL,
        start_offset INTEGER NOT NULL,
        end_offset INTEGER NOT NULL,
        content BLOB NOT NULL,
        chunk_id TEXT NOT NULL,
        PRIMARY KEY (analysis_id, chunk_index)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS file_checksums (
        project_id TEXT NOT NULL,
        file_path TEXT NOT NULL,
        checksum TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (project_id, file_path)
    )
    """,
)

_CHECKPOINT_COLUMNS = (
    "id, project_id, stage, processed_files, failed_files, last_processed_file, "
    "retry_count, error_message, total_files, batch_size, owner_token, owner_pid, "
    "start_time, last_update_time, completed_at"
)
_ANALYSIS_COLUMNS = (
    "project_id, file_path, language, summary, size, line_count, char_count, complexity, "
    "nesting_depth, facts, checksum, analysis_count, chunk_count, updated_at"
)


class SqliteIndexStore:
    """Durable index store on one SQLite file.

    The connection runs in autocommit mode and every write goes through an
    explicit ``BEGIN IMMEDIATE`` transaction so a batch is either fully
    visible or not at all. WAL with ``synchronous=FULL`` makes a commit
    durable before the call returns.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            str(path),
            isolation_level=None,
            check_same_thread=False,
            timeout=BUSY_TIMEOUT_MS / 1000,
        )
        self._conn.row_factory = sqlite3.Row
        self._closed = False
        try:
            self._configure()
            self._init_schema()
        except Exception:
            self._conn.close()
            self._closed = True
            raise

    @property
    def path(self) -> Path:
        return self._path

    def __enter__(self) -> SqliteIndexStore:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    # Checkpoints

    def create_checkpoint(self, checkpoint: IndexCheckpoint) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    f"INSERT INTO index_checkpoints ({_CHECKPOINT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    _checkpoint_row(checkpoint),
                )
        except sqlite3.IntegrityError as exc:
            raise CheckpointConflictError(
                f"Project {checkpoint.project_id} already has a live checkpoint."
            ) from exc

    def get_checkpoint(self, checkpoint_id: str) -> IndexCheckpoint | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_CHECKPOINT_COLUMNS} FROM index_checkpoints WHERE id = ?",
                (checkpoint_id,),
            ).fetchone()
        return _checkpoint_from_row(row) if row is not None else None

    def latest_checkpoint(self, project_id: str) -> IndexCheckpoint | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_CHECKPOINT_COLUMNS} FROM index_checkpoints "
                "WHERE project_id = ? ORDER BY rowid DESC LIMIT 1",
                (project_id,),
            ).fetchone()
        return _checkpoint_from_row(row) if row is not None else None

    def update_checkpoint(self, checkpoint: IndexCheckpoint) -> None:
        with self._transaction() as conn:
            self._write_checkpoint(conn, checkpoint)

    def claim_checkpoint(
        self,
        checkpoint_id: str,
        expected_token: str | None,
        new_token: str,
        owner_pid: int,
        stage: str,
    ) -> IndexCheckpoint | None:
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "UPDATE index_checkpoints SET owner_token = ?, owner_pid = ?, stage = ?, "
                    "error_message = NULL, last_update_time = ? "
                    "WHERE id = ? AND owner_token IS ?",
                    (new_token, owner_pid, stage, _utc_now_iso(), checkpoint_id, expected_token),
                )
                if cursor.rowcount == 0:
                    return None
        except sqlite3.IntegrityError as exc:
            raise CheckpointConflictError(
                f"Checkpoint {checkpoint_id} cannot become live; another run is live."
            ) from exc
        return self.get_checkpoint(checkpoint_id)

    def delete_checkpoints(self, project_id: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM index_checkpoints WHERE project_id = ?", (project_id,)
            )
            return cursor.rowcount

    # Batch commit

    def commit_batch(
        self,
        project_id: str,
        analyses: Sequence[AnalysisWrite],
        checkpoint: IndexCheckpoint,
    ) -> int:
        """Upsert analyses, replace chunks, upsert checksums and save the checkpoint.

        Returns the number of chunk rows written. Nothing is visible unless the
        whole batch, checkpoint included, commits.
        """
        now = _utc_now_iso()
        chunks_written = 0
        try:
            with self._transaction() as conn:
                for write in analyses:
                    analysis_id = self._upsert_analysis(conn, project_id, write, now)
                    conn.execute("DELETE FROM file_chunks WHERE analysis_id = ?", (analysis_id,))
                    if write.chunks:
                        conn.executemany(
                            "INSERT INTO file_chunks (analysis_id, chunk_index, chunk_number, "
                            "chunk_count, start_offset, end_offset, content, chunk_id) "
                            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                            [
                                (
                                    analysis_id,
                                    chunk.chunk_index,
                                    chunk.chunk_number,
                                    chunk.chunk_count,
                                    chunk.start_offset,
                                    chunk.end_offset,
                                    chunk.payload,
                                    chunk.chunk_id,
                                )
                                for chunk in write.chunks
                            ],
                        )
                        chunks_written += len(write.chunks)
                if analyses:
                    conn.executemany(
                        "INSERT INTO file_checksums (project_id, file_path, checksum, updated_at) "
                        "VALUES (?, ?, ?, ?) "
                        "ON CONFLICT (project_id, file_path) DO UPDATE SET "
                        "checksum = excluded.checksum, updated_at = excluded.updated_at",
                        [
                            (project_id, write.record.file_path, write.record.checksum, now)
                            for write in analyses
                        ],
                    )
                self._write_checkpoint(conn, checkpoint)
        except StoreError:
            raise
        except sqlite3.Error as exc:
            raise StoreError(f"Batch commit failed for {project_id}: {exc}") from exc
        return chunks_written

    # Analyses

    def delete_analyses(self, project_id: str, paths: Sequence[str]) -> int:
        deleted = 0
        with self._transaction() as conn:
            for group in _groups(list(paths)):
                marks = ", ".join("?" for _ in group)
                cursor = conn.execute(
                    f"DELETE FROM file_analyses WHERE project_id = ? AND file_path IN ({marks})",
                    (project_id, *group),
                )
                deleted += cursor.rowcount
                conn.execute(
                    f"DELETE FROM file_checksums WHERE project_id = ? AND file_path IN ({marks})",
                    (project_id, *group),
                )
        return deleted

    def get_analysis(self, project_id: str, file_path: str) -> FileAnalysisRecord | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_ANALYSIS_COLUMNS} FROM file_analyses "
                "WHERE project_id = ? AND file_path = ?",
                (project_id, file_path),
            ).fetchone()
        return _analysis_from_row(row) if row is not None else None

    def list_analyses(self, project_id: str) -> list[FileAnalysisRecord]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_ANALYSIS_COLUMNS} FROM file_analyses "
                "WHERE project_id = ? ORDER BY file_path",
                (project_id,),
            ).fetchall()
        return [_analysis_from_row(row) for row in rows]

    def get_chunks(self, project_id: str, file_path: str) -> list[ContentChunk]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT c.chunk_index, c.chunk_number, c.chunk_count, c.start_offset, "
                "c.end_offset, c.content, c.chunk_id "
                "FROM file_chunks c JOIN file_analyses a ON a.id = c.analysis_id "
                "WHERE a.project_id = ? AND a.file_path = ? ORDER BY c.chunk_index",
                (project_id, file_path),
            ).fetchall()
        return [
            ContentChunk(
                chunk_index=row["chunk_index"],
                chunk_number=row["chunk_number"],
                chunk_count=row["chunk_count"],
                start_offset=row["start_offset"],
                end_offset=row["end_offset"],
                content=bytes(row["content"]).decode("utf-8", errors="surrogateescape"),
                chunk_id=row["chunk_id"],
            )
            for row in rows
        ]

    def count_chunks(self, project_id: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM file_chunks c JOIN file_analyses a "
                "ON a.id = c.analysis_id WHERE a.project_id = ?",
                (project_id,),
            ).fetchone()
        return int(row[0])

    # Checksums

    def get_checksum(self, project_id: str, file_path: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT checksum FROM file_checksums WHERE project_id = ? AND file_path = ?",
                (project_id, file_path),
            ).fetchone()
        return str(row["checksum"]) if row is not None else None

    def get_checksums(self, project_id: str, paths: Sequence[str]) -> dict[str, str]:
        output: dict[str, str] = {}
        with self._lock:
            for group in _groups(list(paths)):
                marks = ", ".join("?" for _ in group)
                rows = self._conn.execute(
                    "SELECT file_path, checksum FROM file_checksums "
                    f"WHERE project_id = ? AND file_path IN ({marks})",
                    (project_id, *group),
                ).fetchall()
                for row in rows:
                    output[str(row["file_path"])] = str(row["checksum"])
        return output

    def store_checksum(self, project_id: str, file_path: str, checksum: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO file_checksums (project_id, file_path, checksum, updated_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT (project_id, file_path) DO UPDATE SET "
                "checksum = excluded.checksum, updated_at = excluded.updated_at",
                (project_id, file_path, checksum, _utc_now_iso()),
            )

    # Internals

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._closed:
                raise StoreError(f"Index store {self._path} is closed.")
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
                self._conn.execute("COMMIT")
            except BaseException:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise

    def _configure(self) -> None:
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA synchronous = FULL")
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")

    def _init_schema(self) -> None:
        with self._transaction() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
            row = conn.execute(
                "SELECT value FROM schema_meta WHERE key = 'schema_version'"
            ).fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO schema_meta (key, value) VALUES ('schema_version', ?)",
                    (str(INDEX_SCHEMA_VERSION),),
                )
                return
            try:
                found = int(row["value"])
            except ValueError:
                found = -1
            if found != INDEX_SCHEMA_VERSION:
                raise IndexSchemaUnsupportedError(found=found, expected=INDEX_SCHEMA_VERSION)

    @staticmethod
    def _write_checkpoint(conn: sqlite3.Connection, checkpoint: IndexCheckpoint) -> None:
        cursor = conn.execute(
            "UPDATE index_checkpoints SET stage = ?, processed_files = ?, failed_files = ?, "
            "last_processed_file = ?, retry_count = ?, error_message = ?, total_files = ?, "
            "batch_size = ?, owner_pid = ?, last_update_time = ?, completed_at = ? "
            "WHERE id = ? AND owner_token IS ?",
            (
                checkpoint.stage,
                json.dumps(list(checkpoint.processed_files)),
                json.dumps(list(checkpoint.failed_files)),
                checkpoint.last_processed_file,
                checkpoint.retry_count,
                checkpoint.error_message,
                checkpoint.total_files,
                checkpoint.batch_size,
                checkpoint.owner_pid,
                checkpoint.last_update_time,
                checkpoint.completed_at,
                checkpoint.id,
                checkpoint.owner_token,
            ),
        )
        if cursor.rowcount == 0:
            raise CheckpointOwnershipError(
                f"Checkpoint {checkpoint.id} is missing or owned by another run."
            )

    @staticmethod
    def _upsert_analysis(
        conn: sqlite3.Connection, project_id: str, write: AnalysisWrite, now: str
    ) -> int:
        record = write.record
        conn.execute(
            f"INSERT INTO file_analyses ({_ANALYSIS_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?) "
            "ON CONFLICT (project_id, file_path) DO UPDATE SET "
            "language = excluded.language, summary = excluded.summary, size = excluded.size, "
            "line_count = excluded.line_count, char_count = excluded.char_count, "
            "complexity = excluded.complexity, nesting_depth = excluded.nesting_depth, "
            "facts = excluded.facts, checksum = excluded.checksum, "
            "analysis_count = file_analyses.analysis_count + 1, "
            "chunk_count = excluded.chunk_count, updated_at = excluded.updated_at",
            (
                project_id,
                record.file_path,
                record.language,
                record.summary[:SUMMARY_LENGTH],
                record.size,
                record.line_count,
                record.char_count,
                record.complexity,
                record.nesting_depth,
                facts_to_json(record),
                record.checksum,
                len(write.chunks),
                now,
            ),
        )
        row = conn.execute(
            "SELECT id FROM file_analyses WHERE project_id = ? AND file_path = ?",
            (project_id, record.file_path),
        ).fetchone()
        return int(row["id"])


def _checkpoint_row(checkpoint: IndexCheckpoint) -> tuple[object, ...]:
    return (
        checkpoint.id,
        checkpoint.project_id,
        checkpoint.stage,
        json.dumps(list(checkpoint.processed_files)),
        json.dumps(list(checkpoint.failed_files)),
        checkpoint.last_processed_file,
        checkpoint.retry_count,
        checkpoint.error_message,
        checkpoint.total_files,
        checkpoint.batch_size,
        checkpoint.owner_token,
        checkpoint.owner_pid,
        checkpoint.start_time,
        checkpoint.last_update_time,
        checkpoint.completed_at,
    )


def _checkpoint_from_row(row: sqlite3.Row) -> IndexCheckpoint:
    return IndexCheckpoint(
        id=row["id"],
        project_id=row["project_id"],
        stage=row["stage"],
        processed_files=tuple(_json_list(row["processed_files"])),
        failed_files=tuple(_json_list(row["failed_files"])),
        last_processed_file=row["last_processed_file"],
        retry_count=int(row["retry_count"]),
        error_message=row["error_message"],
        total_files=int(row["total_files"]),
        batch_size=int(row["batch_size"]),
        owner_token=row["owner_token"],
        owner_pid=row["owner_pid"],
        start_time=row["start_time"],
        last_update_time=row["last_update_time"],
        completed_at=row["completed_at"],
    )


def _analysis_from_row(row: sqlite3.Row) -> FileAnalysisRecord:
    facts = facts_from_json(row["facts"])
    return FileAnalysisRecord(
        project_id=row["project_id"],
        file_path=row["file_path"],
        language=row["language"],
        summary=row["summary"],
        size=int(row["size"]),
        line_count=int(row["line_count"]),
        char_count=int(row["char_count"]),
        complexity=int(row["complexity"]),
        nesting_depth=int(row["nesting_depth"]),
        functions=facts["functions"],
        classes=facts["classes"],
        imports=facts["imports"],
        exports=facts["exports"],
        checksum=row["checksum"],
        analysis_count=int(row["analysis_count"]),
        chunk_count=int(row["chunk_count"]),
        updated_at=row["updated_at"],
    )


def _json_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    value = json.loads(raw)
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def _groups(paths: list[str]) -> Iterator[list[str]]:
    for start in range(0, len(paths), _IN_CLAUSE_BATCH):
        yield paths[start : start + _IN_CLAUSE_BATCH]


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
