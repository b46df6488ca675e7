"""Scanner data models."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True, frozen=True)
class FileMetadata:
    """Stat-level facts about one discovered file."""

    path: Path
    relative_path: str
    name: str
    extension: str
    size: int
    language: str
    mtime_ns: int
    is_binary: bool


@dataclass(slots=True, frozen=True)
class DirectoryMetadata:
    """Aggregate facts about one scanned directory."""

    path: Path
    relative_path: str
    name: str
    file_count: int
    size: int
    depth: int


@dataclass(slots=True, frozen=True)
class ScanProgress:
    """Cumulative counters emitted while a scan is running."""

    files_scanned: int
    directories_scanned: int
    total_size: int
    current_path: str
    is_complete: bool = False


@dataclass(slots=True, frozen=True)
class ScanError:
    """Recorded per-entry failure; the walk continues past it."""

    path: str
    message: str


@dataclass(slots=True)
class ScanStats:
    """Mutable accumulator threaded through one scan."""

    files_scanned: int = 0
    directories_scanned: int = 0
    total_size: int = 0
    start_time: float = 0.0

    def snapshot(self) -> ScanStats:
        return ScanStats(
            files_scanned=self.files_scanned,
            directories_scanned=self.directories_scanned,
            total_size=self.total_size,
            start_time=self.start_time,
        )


@dataclass(slots=True, frozen=True)
class ScanResult:
    """Deterministic output of one recursive scan."""

    root: Path
    files: tuple[FileMetadata, ...]
    directories: tuple[DirectoryMetadata, ...]
    languages: dict[str, int]
    total_size: int
    total_files: int
    duration_ms: int
    errors: tuple[ScanError, ...] = ()

    def indexable_files(self) -> tuple[FileMetadata, ...]:
        """Return non-binary files in discovery order."""
        return tuple(item for item in self.files if not item.is_binary)


ProgressCallback = Callable[[ScanProgress], None]


@dataclass(slots=True, frozen=True)
class ScanOptions:
    """Construction-time scanner options."""

    root: Path
    ignore_patterns: tuple[str, ...] = ()
    file_extensions: tuple[str, ...] | None = None
    include_hidden: bool = False
    max_depth: int = 100
    on_progress: ProgressCallback | None = field(default=None, compare=False)
