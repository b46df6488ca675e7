"""Typed models for checkpoints, persisted analyses and build results."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from repo_index.adapters.base import ClassInfo, ExportInfo, FunctionInfo, ImportInfo
from repo_index.extraction.models import ContentChunk

STAGE_SCANNING = "scanning"
STAGE_ANALYZING = "analyzing"
STAGE_COMPLETE = "complete"
STAGE_FAILED = "failed"
LIVE_STAGES = (STAGE_SCANNING, STAGE_ANALYZING)
ALL_STAGES = (STAGE_SCANNING, STAGE_ANALYZING, STAGE_COMPLETE, STAGE_FAILED)

SUMMARY_LENGTH = 500


class FaultPoint:
    """Named seams where a fault hook may interrupt a build."""

    BEFORE_BATCH = "before_batch"
    BEFORE_COMMIT = "before_commit"


@dataclass(slots=True, frozen=True)
class IndexCheckpoint:
    """Durable progress record for one build of one project."""

    id: str
    project_id: str
    stage: str
    processed_files: tuple[str, ...]
    failed_files: tuple[str, ...]
    last_processed_file: str | None
    retry_count: int
    error_message: str | None
    total_files: int
    batch_size: int
    owner_token: str | None
    owner_pid: int | None
    start_time: str
    last_update_time: str
    completed_at: str | None = None

    @property
    def is_live(self) -> bool:
        return self.stage in LIVE_STAGES


@dataclass(slots=True, frozen=True)
class FileAnalysisRecord:
    """Persisted analysis of one file; unique per (project_id, file_path)."""

    project_id: str
    file_path: str
    language: str
    summary: str
    size: int
    line_count: int
    char_count: int
    complexity: int
    nesting_depth: int
    functions: tuple[FunctionInfo, ...]
    classes: tuple[ClassInfo, ...]
    imports: tuple[ImportInfo, ...]
    exports: tuple[ExportInfo, ...]
    checksum: str
    analysis_count: int = 1
    chunk_count: int = 0
    updated_at: str | None = None

    @property
    def path(self) -> str:
        return self.file_path


@dataclass(slots=True, frozen=True)
class AnalysisWrite:
    """One analysis row and its replacement chunks, written inside a batch commit."""

    record: FileAnalysisRecord
    chunks: tuple[ContentChunk, ...] = ()


@dataclass(slots=True, frozen=True)
class IndexProgress:
    stage: str
    total_files: int
    processed_files: int
    failed_files: int
    current_file: str | None
    percentage: float
    message: str


@dataclass(slots=True, frozen=True)
class IndexFailure:
    """One failed file (or ``callback`` sink failure) reported to the error sink."""

    stage: str
    file_path: str | None
    error: str
    timestamp: str


@dataclass(slots=True, frozen=True)
class IndexBuildResult:
    success: bool
    files_indexed: int
    files_processed: int
    files_unchanged: int
    files_skipped: int
    files_failed: int
    chunks_created: int
    duration_ms: int
    checkpoint_id: str | None
    resumed_from: str | None
    errors: tuple[IndexFailure, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "files_indexed": self.files_indexed,
            "files_processed": self.files_processed,
            "files_unchanged": self.files_unchanged,
            "files_skipped": self.files_skipped,
            "files_failed": self.files_failed,
            "chunks_created": self.chunks_created,
            "duration_ms": self.duration_ms,
            "checkpoint_id": self.checkpoint_id,
            "resumed_from": self.resumed_from,
            "errors": [
                {
                    "stage": item.stage,
                    "file_path": item.file_path,
                    "error": item.error,
                    "timestamp": item.timestamp,
                }
                for item in self.errors
            ],
        }


@dataclass(slots=True, frozen=True)
class IndexingStatus:
    """Status view of the latest checkpoint."""

    project_id: str
    checkpoint_id: str | None
    stage: str
    total_files: int
    processed_files: int
    failed_files: int
    percentage: float
    retry_count: int
    error_message: str | None
    last_processed_file: str | None
    start_time: str | None
    last_update_time: str | None
    completed_at: str | None

    def to_dict(self) -> dict[str, object]:
        return {
            "project_id": self.project_id,
            "checkpoint_id": self.checkpoint_id,
            "stage": self.stage,
            "total_files": self.total_files,
            "processed_files": self.processed_files,
            "failed_files": self.failed_files,
            "percentage": self.percentage,
            "retry_count": self.retry_count,
            "error_message": self.error_message,
            "last_processed_file": self.last_processed_file,
            "start_time": self.start_time,
            "last_update_time": self.last_update_time,
            "completed_at": self.completed_at,
        }


ProgressSink = Callable[[IndexProgress], None]
ErrorSink = Callable[[IndexFailure], None]
FaultHook = Callable[[str, dict[str, object]], None]
