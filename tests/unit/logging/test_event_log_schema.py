from __future__ import annotations

import json
from pathlib import Path

from repo_index.index import IndexFailure, IndexProgress
from repo_index.logging import IndexEvent, JsonlEventLogger


def test_progress_events_write_jsonl_schema(tmp_path: Path) -> None:
    logger = JsonlEventLogger(tmp_path / "logs" / "events.jsonl", run_id="run-1")
    logger.log_progress(
        IndexProgress(
            stage="analyzing",
            total_files=4,
            processed_files=2,
            failed_files=0,
            current_file="src/a.ts",
            percentage=50.0,
            message="Committed batch 0",
        )
    )

    lines = logger.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])

    assert set(event.keys()) == {"kind", "payload", "run_id", "stage", "timestamp"}
    assert event["kind"] == "progress"
    assert event["run_id"] == "run-1"
    assert event["stage"] == "analyzing"
    assert event["payload"]["current_file"] == "src/a.ts"
    assert event["payload"]["percentage"] == 50.0
    assert isinstance(event["timestamp"], str)


def test_error_events_keep_failure_timestamp(tmp_path: Path) -> None:
    logger = JsonlEventLogger(tmp_path / "events.jsonl")
    logger.log_error(
        IndexFailure(
            stage="analyzing",
            file_path="src/b.ts",
            error="Checksum mismatch for src/b.ts",
            timestamp="2026-01-01T00:00:00.000Z",
        )
    )

    event = logger.read()[0]

    assert event["kind"] == "error"
    assert event["timestamp"] == "2026-01-01T00:00:00.000Z"
    assert event["payload"] == {
        "error": {"message": "Checksum mismatch for src/b.ts", "type": "Error"},
        "file_path": "src/b.ts",
    }
    assert len(logger.run_id) == 32


def test_read_filters_by_since_and_limit(tmp_path: Path) -> None:
    logger = JsonlEventLogger(tmp_path / "events.jsonl", run_id="r")
    for second in range(5):
        logger.append(
            IndexEvent(
                timestamp=f"2026-01-01T00:00:0{second}.000Z",
                run_id="r",
                kind="progress",
                stage="analyzing",
                payload={"n": second},
            )
        )
    with logger.path.open("a", encoding="utf-8") as handle:
        handle.write("not json\n\n")

    assert [item["payload"]["n"] for item in logger.read(limit=2)] == [3, 4]
    since = logger.read(since="2026-01-01T00:00:02.000Z")
    assert [item["payload"]["n"] for item in since] == [2, 3, 4]
    assert logger.read(limit=0) == []


def test_read_missing_file_returns_empty(tmp_path: Path) -> None:
    assert JsonlEventLogger(tmp_path / "none.jsonl").read() == []
