"""Structured JSONL event log for index builds."""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

from repo_index.index.models import IndexFailure, IndexProgress

EVENT_PROGRESS = "progress"
EVENT_ERROR = "error"
MAX_ERROR_LENGTH = 500


@dataclass(slots=True, frozen=True)
class IndexEvent:
    """One progress or error event of a build run."""

    timestamp: str
    run_id: str
    kind: str
    stage: str
    payload: dict[str, object]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_error(error: BaseException | str) -> dict[str, object]:
    """Reduce an error to its type name and a bounded message."""
    if isinstance(error, BaseException):
        error_type = type(error).__name__
        message = str(error)
    else:
        error_type = "Error"
        message = error
    if len(message) > MAX_ERROR_LENGTH:
        message = message[:MAX_ERROR_LENGTH] + "..."
    return {"type": error_type, "message": message}


class JsonlEventLogger:
    """Append-only JSONL event logger and bounded reader."""

    def __init__(self, path: Path, run_id: str | None = None) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._run_id = run_id or uuid.uuid4().hex

    @property
    def path(self) -> Path:
        """Return on-disk JSONL path."""
        return self._path

    @property
    def run_id(self) -> str:
        return self._run_id

    def append(self, event: IndexEvent) -> None:
        """Append one event as one JSON object per line."""
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(asdict(event), sort_keys=True))
            handle.write("\n")

    def log_progress(self, progress: IndexProgress) -> None:
        """Progress sink for ``IndexBuilder``."""
        self.append(
            IndexEvent(
                timestamp=utc_timestamp(),
                run_id=self._run_id,
                kind=EVENT_PROGRESS,
                stage=progress.stage,
                payload={
                    "total_files": progress.total_files,
                    "processed_files": progress.processed_files,
                    "failed_files": progress.failed_files,
                    "current_file": progress.current_file,
                    "percentage": progress.percentage,
                    "message": progress.message,
                },
            )
        )

    def log_error(self, failure: IndexFailure) -> None:
        """Error sink for ``IndexBuilder``."""
        self.append(
            IndexEvent(
                timestamp=failure.timestamp,
                run_id=self._run_id,
                kind=EVENT_ERROR,
                stage=failure.stage,
                payload={"file_path": failure.file_path, "error": sanitize_error(failure.error)},
            )
        )

    def read(self, since: str | None = None, limit: int = 50) -> list[dict[str, object]]:
        """Read recent events, optionally filtered by timestamp lower bound."""
        if limit < 1:
            return []
        entries: list[dict[str, object]] = []
        if not self._path.exists():
            return entries
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    record = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                if since is not None:
                    ts = record.get("timestamp")
                    if not isinstance(ts, str) or ts < since:
                        continue
                entries.append(record)
        if len(entries) <= limit:
            return entries
        return entries[-limit:]
