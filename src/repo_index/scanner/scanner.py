"""Deterministic recursive file scanner."""

from __future__ import annotations

import os
import stat as stat_module
import time
from pathlib import Path

from repo_index.scanner.ignore import IgnoreMatcher, is_always_ignored
from repo_index.scanner.languages import detect_language, is_binary
from repo_index.scanner.models import (
    DirectoryMetadata,
    FileMetadata,
    ScanError,
    ScanOptions,
    ScanProgress,
    ScanResult,
    ScanStats,
)

PROGRESS_INTERVAL = 100


class FileScanner:
    """Walk a source tree and classify files without reading their content.

    Counters for a full scan live in a per-call ``ScanStats`` accumulator that is
    published to the instance when the walk ends, so reusing one scanner for
    several roots never mixes counts. ``scan_file`` updates the instance
    counters directly.
    """

    def __init__(self, options: ScanOptions) -> None:
        self._options = options
        self._root = options.root.resolve()
        self._matcher = IgnoreMatcher(options.ignore_patterns)
        self._extensions = (
            frozenset(item.lower() for item in options.file_extensions)
            if options.file_extensions is not None
            else None
        )
        self._stats = ScanStats(start_time=time.time())
        self._closed = False

    def __enter__(self) -> FileScanner:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def root(self) -> Path:
        return self._root

    def scan_file(self, path: Path | str) -> FileMetadata | None:
        """Return metadata for one file, or None when it is filtered or unreadable."""
        self._ensure_open()
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self._root / candidate
        relative = _relative_to(candidate, self._root)
        if self._skip_file(candidate.name, relative) or self._in_skipped_directory(relative):
            return None
        try:
            stat = candidate.stat()
        except OSError:
            return None
        if not stat_module.S_ISREG(stat.st_mode):
            return None
        metadata = _build_metadata(candidate, relative, stat.st_size, stat.st_mtime_ns)
        self._stats.files_scanned += 1
        self._stats.total_size += stat.st_size
        return metadata

    def scan_batch(self, paths: list[Path | str]) -> list[FileMetadata | None]:
        """Point-wise ``scan_file`` over many paths."""
        return [self.scan_file(path) for path in paths]

    def scan(self, root: Path | None = None) -> ScanResult:
        """Walk ``root`` (default: the configured root) and return sorted results."""
        self._ensure_open()
        scan_root = (root or self._root).resolve()
        if not scan_root.is_dir():
            raise FileNotFoundError(f"Scan root is not a directory: {scan_root}")

        started = time.perf_counter()
        stats = ScanStats(start_time=time.time())
        errors: list[ScanError] = []
        files: list[FileMetadata] = []
        directories: list[DirectoryMetadata] = []
        root_stat = scan_root.stat()
        visited: set[tuple[int, int]] = {(root_stat.st_dev, root_stat.st_ino)}
        stack: list[tuple[Path, str, int]] = [(scan_root, "", 0)]

        while stack:
            current, relative_dir, depth = stack.pop()
            stats.directories_scanned += 1
            try:
                with os.scandir(current) as entries:
                    ordered_entries = sorted(entries, key=lambda item: item.name)
            except OSError as exc:
                errors.append(ScanError(path=relative_dir or ".", message=str(exc)))
                continue

            pending_dirs: list[tuple[Path, str, int]] = []
            dir_file_count = 0
            dir_size = 0
            for entry in ordered_entries:
                relative = f"{relative_dir}/{entry.name}" if relative_dir else entry.name
                try:
                    is_dir = entry.is_dir()
                    is_file = not is_dir and entry.is_file()
                    is_link = entry.is_symlink()
                except OSError as exc:
                    errors.append(ScanError(path=relative, message=str(exc)))
                    continue

                if is_dir:
                    if self._skip_directory(entry.name, relative) or depth + 1 > self._max_depth:
                        continue
                    target = Path(entry.path)
                    try:
                        if is_link:
                            target = target.resolve(strict=True)
                            if not _is_within(target, scan_root):
                                continue
                        target_stat = target.stat()
                    except OSError as exc:
                        errors.append(ScanError(path=relative, message=str(exc)))
                        continue
                    key = (target_stat.st_dev, target_stat.st_ino)
                    if key in visited:
                        continue
                    visited.add(key)
                    pending_dirs.append((target, relative, depth + 1))
                    continue

                if not is_file or self._skip_file(entry.name, relative):
                    continue
                full_path = Path(entry.path)
                try:
                    if is_link and not _is_within(full_path.resolve(strict=True), scan_root):
                        continue
                    stat = entry.stat()
                except OSError as exc:
                    errors.append(ScanError(path=relative, message=str(exc)))
                    continue

                files.append(_build_metadata(full_path, relative, stat.st_size, stat.st_mtime_ns))
                stats.files_scanned += 1
                stats.total_size += stat.st_size
                dir_file_count += 1
                dir_size += stat.st_size
                if stats.files_scanned % PROGRESS_INTERVAL == 0:
                    self._emit_progress(stats, relative, errors, is_complete=False)

            directories.append(
                DirectoryMetadata(
                    path=current,
                    relative_path=relative_dir or ".",
                    name=current.name,
                    file_count=dir_file_count,
                    size=dir_size,
                    depth=depth,
                )
            )
            stack.extend(reversed(pending_dirs))

        self._emit_progress(stats, "", errors, is_complete=True)
        self._stats = stats

        files.sort(key=lambda item: item.relative_path)
        directories.sort(key=lambda item: item.relative_path)
        languages: dict[str, int] = {}
        for item in files:
            languages[item.language] = languages.get(item.language, 0) + 1
        return ScanResult(
            root=scan_root,
            files=tuple(files),
            directories=tuple(directories),
            languages=dict(sorted(languages.items())),
            total_size=stats.total_size,
            total_files=len(files),
            duration_ms=int((time.perf_counter() - started) * 1000),
            errors=tuple(errors),
        )

    def get_stats(self) -> ScanStats:
        """Return a copy of the most recently published counters."""
        return self._stats.snapshot()

    def reset(self) -> None:
        self._stats = ScanStats(start_time=time.time())

    def close(self) -> None:
        """Release the scanner. Safe to call more than once."""
        self._closed = True

    @property
    def _max_depth(self) -> int:
        return self._options.max_depth

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("FileScanner is closed.")

    def _skip_directory(self, name: str, relative: str) -> bool:
        if is_always_ignored(name):
            return True
        if not self._options.include_hidden and name.startswith("."):
            return True
        return self._matcher.matches(relative, name)

    def _in_skipped_directory(self, relative: str) -> bool:
        """True when any parent directory of a root-relative path would be pruned by ``scan``."""
        if relative.startswith("/"):
            return False
        parents = relative.split("/")[:-1]
        for index, name in enumerate(parents):
            if self._skip_directory(name, "/".join(parents[: index + 1])):
                return True
        return False

    def _skip_file(self, name: str, relative: str) -> bool:
        if not self._options.include_hidden and name.startswith("."):
            return True
        if self._matcher.matches(relative, name):
            return True
        if self._extensions is not None:
            suffix = Path(name).suffix.lower()
            if suffix not in self._extensions:
                return True
        return False

    def _emit_progress(
        self,
        stats: ScanStats,
        current_path: str,
        errors: list[ScanError],
        *,
        is_complete: bool,
    ) -> None:
        callback = self._options.on_progress
        if callback is None:
            return
        progress = ScanProgress(
            files_scanned=stats.files_scanned,
            directories_scanned=stats.directories_scanned,
            total_size=stats.total_size,
            current_path=current_path,
            is_complete=is_complete,
        )
        try:
            callback(progress)
        except Exception as exc:
            errors.append(
                ScanError(
                    path=current_path,
                    message=f"progress callback failed: {type(exc).__name__}: {exc}",
                )
            )


def _build_metadata(path: Path, relative: str, size: int, mtime_ns: int) -> FileMetadata:
    return FileMetadata(
        path=path,
        relative_path=relative,
        name=path.name,
        extension=path.suffix.lower(),
        size=size,
        language=detect_language(path),
        mtime_ns=mtime_ns,
        is_binary=is_binary(path, size),
    )


def _relative_to(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _is_within(path: Path, root: Path) -> bool:
    return path == root or path.is_relative_to(root)
