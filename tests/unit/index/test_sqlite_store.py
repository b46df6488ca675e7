from __future__ import annotations

import sqlite3
from dataclasses import replace
from pathlib import Path

import pytest

from repo_index.adapters import ExportInfo, FunctionInfo, ImportInfo
from repo_index.extraction import chunk_content
from repo_index.index import (
    AnalysisWrite,
    CheckpointConflictError,
    CheckpointOwnershipError,
    FileAnalysisRecord,
    IndexSchemaUnsupportedError,
    SqliteIndexStore,
    StoreError,
)
from repo_index.index.checkpoints import mark_complete, new_checkpoint, record_outcomes

NOW = "2026-01-01T00:00:00.000Z"


def _record(path: str, checksum: str = "c1") -> FileAnalysisRecord:
    return FileAnalysisRecord(
        project_id="proj",
        file_path=path,
        language="TypeScript",
        summary="x" * 800,
        size=10,
        line_count=2,
        char_count=10,
        complexity=1,
        nesting_depth=0,
        functions=(FunctionInfo(name="run", line=1, parameters=("a",), is_exported=True),),
        classes=(),
        imports=(ImportInfo(module="./b", items=("x",), line=1, kind="named"),),
        exports=(ExportInfo(name="run", line=1),),
        checksum=checksum,
    )


def test_commit_batch_persists_analyses_chunks_checksums_and_checkpoint(tmp_path: Path) -> None:
    with SqliteIndexStore(tmp_path / "index.sqlite3") as store:
        checkpoint = new_checkpoint("proj", 10, "tok", NOW)
        store.create_checkpoint(checkpoint)
        chunks = chunk_content("a.ts", "abcdefgh" * 4, chunk_size=10)
        advanced = record_outcomes(checkpoint, processed=["a.ts", "b.ts"], now=NOW)

        written = store.commit_batch(
            "proj",
            [AnalysisWrite(_record("a.ts"), chunks), AnalysisWrite(_record("b.ts"))],
            advanced,
        )

        assert written == len(chunks) == 4
        record = store.get_analysis("proj", "a.ts")
        assert record is not None
        assert record.chunk_count == 4
        assert record.analysis_count == 1
        assert len(record.summary) == 500
        assert record.functions == _record("a.ts").functions
        assert record.imports == _record("a.ts").imports
        assert "".join(chunk.content for chunk in store.get_chunks("proj", "a.ts")) == (
            "abcdefgh" * 4
        )
        assert store.get_checksums("proj", ["a.ts", "b.ts", "c.ts"]) == {
            "a.ts": "c1",
            "b.ts": "c1",
        }
        stored = store.get_checkpoint(checkpoint.id)
        assert stored is not None
        assert stored.processed_files == ("a.ts", "b.ts")
        assert stored.stage == "analyzing"


def test_reanalysis_replaces_chunks_and_counts_analyses(tmp_path: Path) -> None:
    with SqliteIndexStore(tmp_path / "index.sqlite3") as store:
        checkpoint = new_checkpoint("proj", 10, "tok", NOW)
        store.create_checkpoint(checkpoint)
        first = chunk_content("a.ts", "x" * 50, chunk_size=10)
        store.commit_batch("proj", [AnalysisWrite(_record("a.ts"), first)], checkpoint)

        store.commit_batch("proj", [AnalysisWrite(_record("a.ts", "c2"))], checkpoint)

        record = store.get_analysis("proj", "a.ts")
        assert record is not None
        assert record.analysis_count == 2
        assert record.checksum == "c2"
        assert record.chunk_count == 0
        assert store.get_chunks("proj", "a.ts") == []
        assert store.count_chunks("proj") == 0
        assert len(store.list_analyses("proj")) == 1


def test_failed_batch_commit_leaves_no_partial_rows(tmp_path: Path) -> None:
    with SqliteIndexStore(tmp_path / "index.sqlite3") as store:
        checkpoint = new_checkpoint("proj", 10, "tok", NOW)
        store.create_checkpoint(checkpoint)
        stolen = replace(record_outcomes(checkpoint, processed=["a.ts"], now=NOW), owner_token="x")

        with pytest.raises(CheckpointOwnershipError):
            store.commit_batch("proj", [AnalysisWrite(_record("a.ts"))], stolen)

        assert store.get_analysis("proj", "a.ts") is None
        assert store.get_checksum("proj", "a.ts") is None
        stored = store.get_checkpoint(checkpoint.id)
        assert stored is not None
        assert stored.processed_files == ()


def test_only_one_live_checkpoint_per_project(tmp_path: Path) -> None:
    with SqliteIndexStore(tmp_path / "index.sqlite3") as store:
        first = new_checkpoint("proj", 10, "tok-1", NOW)
        store.create_checkpoint(first)

        with pytest.raises(CheckpointConflictError):
            store.create_checkpoint(new_checkpoint("proj", 10, "tok-2", NOW))
        store.create_checkpoint(new_checkpoint("other", 10, "tok-3", NOW))

        store.update_checkpoint(mark_complete(first, NOW))
        second = new_checkpoint("proj", 10, "tok-2", NOW)
        store.create_checkpoint(second)

        latest = store.latest_checkpoint("proj")
        assert latest is not None
        assert latest.id == second.id
        assert store.delete_checkpoints("proj") == 2
        assert store.latest_checkpoint("proj") is None


def test_claim_checkpoint_is_compare_and_swap(tmp_path: Path) -> None:
    with SqliteIndexStore(tmp_path / "index.sqlite3") as store:
        checkpoint = new_checkpoint("proj", 10, "old", NOW)
        store.create_checkpoint(checkpoint)

        assert store.claim_checkpoint(checkpoint.id, "wrong", "new", 1, "analyzing") is None
        claimed = store.claim_checkpoint(checkpoint.id, "old", "new", 42, "analyzing")

        assert claimed is not None
        assert claimed.owner_token == "new"
        assert claimed.owner_pid == 42
        assert claimed.stage == "analyzing"
        with pytest.raises(CheckpointOwnershipError):
            store.update_checkpoint(checkpoint)


def test_delete_analyses_removes_rows_chunks_and_checksums(tmp_path: Path) -> None:
    with SqliteIndexStore(tmp_path / "index.sqlite3") as store:
        checkpoint = new_checkpoint("proj", 10, "tok", NOW)
        store.create_checkpoint(checkpoint)
        chunks = chunk_content("a.ts", "y" * 30, chunk_size=10)
        store.commit_batch(
            "proj",
            [AnalysisWrite(_record("a.ts"), chunks), AnalysisWrite(_record("b.ts"))],
            checkpoint,
        )

        assert store.delete_analyses("proj", ["a.ts", "missing.ts"]) == 1

        assert store.get_analysis("proj", "a.ts") is None
        assert store.get_checksum("proj", "a.ts") is None
        assert store.count_chunks("proj") == 0
        assert store.get_analysis("proj", "b.ts") is not None


def test_store_checksum_upserts(tmp_path: Path) -> None:
    with SqliteIndexStore(tmp_path / "index.sqlite3") as store:
        store.store_checksum("proj", "a.ts", "one")
        store.store_checksum("proj", "a.ts", "two")

        assert store.get_checksum("proj", "a.ts") == "two"


def test_schema_version_mismatch_raises(tmp_path: Path) -> None:
    db_path = tmp_path / "index.sqlite3"
    SqliteIndexStore(db_path).close()
    conn = sqlite3.connect(db_path)
    conn.execute("UPDATE schema_meta SET value = '999' WHERE key = 'schema_version'")
    conn.commit()
    conn.close()

    with pytest.raises(IndexSchemaUnsupportedError) as excinfo:
        SqliteIndexStore(db_path)

    assert excinfo.value.found == 999
    assert excinfo.value.expected == 1


def test_closed_store_rejects_writes(tmp_path: Path) -> None:
    store = SqliteIndexStore(tmp_path / "index.sqlite3")
    store.close()
    store.close()

    with pytest.raises(StoreError, match="closed"):
        store.store_checksum("proj", "a.ts", "one")


def test_chunk_payloads_round_trip_undecodable_bytes(tmp_path: Path) -> None:
    data = b"# caf\xe9\n" * 8
    with SqliteIndexStore(tmp_path / "index.sqlite3") as store:
        checkpoint = new_checkpoint("proj", 10, "tok", NOW)
        store.create_checkpoint(checkpoint)
        chunks = chunk_content("legacy.py", data, chunk_size=16)

        store.commit_batch(
            "proj",
            [AnalysisWrite(_record("legacy.py"), chunks)],
            record_outcomes(checkpoint, processed=["legacy.py"], now=NOW),
        )

        stored = store.get_chunks("proj", "legacy.py")
        assert [chunk.chunk_id for chunk in stored] == [chunk.chunk_id for chunk in chunks]
        assert b"".join(chunk.payload for chunk in stored) == data
