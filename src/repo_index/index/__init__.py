"""Checkpointed index building and persistence."""

from .builder import IndexBuilder, scan_options_for
from .errors import (
    CheckpointConflictError,
    CheckpointOwnershipError,
    ChecksumMismatchError,
    IndexBusyError,
    IndexingAborted,
    IndexingError,
    IndexSchemaUnsupportedError,
    StoreError,
)
from .models import (
    LIVE_STAGES,
    STAGE_ANALYZING,
    STAGE_COMPLETE,
    STAGE_FAILED,
    STAGE_SCANNING,
    AnalysisWrite,
    FaultPoint,
    FileAnalysisRecord,
    IndexBuildResult,
    IndexCheckpoint,
    IndexFailure,
    IndexingStatus,
    IndexProgress,
)
from .sqlite_store import SqliteIndexStore
from .store import INDEX_SCHEMA_VERSION, IndexStore

__all__ = [
    "INDEX_SCHEMA_VERSION",
    "LIVE_STAGES",
    "STAGE_ANALYZING",
    "STAGE_COMPLETE",
    "STAGE_FAILED",
    "STAGE_SCANNING",
    "AnalysisWrite",
    "CheckpointConflictError",
    "CheckpointOwnershipError",
    "ChecksumMismatchError",
    "FaultPoint",
    "FileAnalysisRecord",
    "IndexBuildResult",
    "IndexBuilder",
    "IndexBusyError",
    "IndexCheckpoint",
    "IndexFailure",
    "IndexProgress",
    "IndexSchemaUnsupportedError",
    "IndexStore",
    "IndexingAborted",
    "IndexingError",
    "IndexingStatus",
    "SqliteIndexStore",
    "StoreError",
    "scan_options_for",
]
