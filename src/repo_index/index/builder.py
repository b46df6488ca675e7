"""Checkpointed, resumable index build orchestration."""

from __future__ import annotations

import hashlib
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path

from repo_index.config import AppConfig
from repo_index.dependencies.incremental import DependencyGraphCache
from repo_index.dependencies.models import DependencyGraph
from repo_index.extraction.extractor import ContentExtractor
from repo_index.extraction.models import ExtractedContent, ExtractionOptions
from repo_index.index.checkpoints import (
    is_owner_running,
    mark_complete,
    mark_failed,
    new_checkpoint,
    new_owner_token,
    record_batch_failure,
    record_outcomes,
    register_active,
    release_active,
    status_percentage,
)
from repo_index.index.errors import (
    ChecksumMismatchError,
    CheckpointConflictError,
    CheckpointOwnershipError,
    IndexBusyError,
    IndexingAborted,
)
from repo_index.index.models import (
    STAGE_ANALYZING,
    STAGE_COMPLETE,
    STAGE_FAILED,
    STAGE_SCANNING,
    SUMMARY_LENGTH,
    AnalysisWrite,
    ErrorSink,
    FaultHook,
    FaultPoint,
    FileAnalysisRecord,
    IndexBuildResult,
    IndexCheckpoint,
    IndexFailure,
    IndexingStatus,
    IndexProgress,
    ProgressSink,
)
from repo_index.index.store import IndexStore
from repo_index.scanner.ignore import load_gitignore_patterns
from repo_index.scanner.models import FileMetadata, ScanOptions
from repo_index.scanner.scanner import FileScanner

CALLBACK_STAGE = "callback"
_HASH_BLOCK_SIZE = 1024 * 1024


@dataclass(slots=True)
class _RunState:
    checkpoint: IndexCheckpoint
    resumed_from: str | None
    files_processed: int = 0
    files_unchanged: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    chunks_created: int = 0
    errors: list[IndexFailure] = field(default_factory=list)


@dataclass(slots=True)
class _BatchOutcome:
    writes: list[AnalysisWrite] = field(default_factory=list)
    unchanged: set[str] = field(default_factory=set)
    skipped: set[str] = field(default_factory=set)
    failures: dict[str, str] = field(default_factory=dict)


def scan_options_for(config: AppConfig) -> ScanOptions:
    """Scanner options derived from config; shared by builds and standalone scans."""
    patterns = list(config.scan.ignore_patterns)
    if config.scan.use_gitignore:
        for pattern in load_gitignore_patterns(config.project_root):
            if pattern not in patterns:
                patterns.append(pattern)
    return ScanOptions(
        root=config.project_root,
        ignore_patterns=tuple(patterns),
        file_extensions=config.scan.file_extensions,
        include_hidden=config.scan.include_hidden,
        max_depth=config.scan.max_depth,
    )


class IndexBuilder:
    """Drive scan, extraction and batch commits with durable checkpoints.

    Each batch is committed in one store transaction that also advances the
    checkpoint, so a run killed at any point resumes from the last committed
    batch. At most one live checkpoint exists per project; a second builder
    for a project with a running owner gets ``IndexBusyError``.
    """

    def __init__(
        self,
        store: IndexStore,
        config: AppConfig,
        *,
        on_progress: ProgressSink | None = None,
        on_error: ErrorSink | None = None,
        fault_hook: FaultHook | None = None,
        graph_cache: DependencyGraphCache | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._project_id = config.project_id
        self._on_progress = on_progress
        self._on_error = on_error
        self._fault_hook = fault_hook
        self._graph_cache = graph_cache or DependencyGraphCache(config.dependencies.root_alias)
        self._extractor = ContentExtractor(
            ExtractionOptions(
                max_file_size=config.index.max_file_size,
                chunk_size=config.index.chunk_size,
            )
        )

    @property
    def project_id(self) -> str:
        return self._project_id

    def build_index(self) -> IndexBuildResult:
        """Run or resume a build for the configured project.

        Raises ``IndexBusyError`` before touching any state when another live
        builder owns the project, and re-raises ``IndexingAborted`` after
        marking the checkpoint failed.
        """
        started = time.perf_counter()
        token = new_owner_token()
        register_active(token)
        try:
            checkpoint, resumed_from = self._acquire_checkpoint(token)
            state = _RunState(checkpoint=checkpoint, resumed_from=resumed_from)
            try:
                self._run(state)
            except IndexingAborted as exc:
                self._fail_run(state, str(exc))
                raise
            except Exception as exc:
                message = f"{type(exc).__name__}: {exc}"
                state.errors.append(_failure(STAGE_FAILED, None, message))
                self._fail_run(state, message)
                return self._result(state, started, success=False)
            return self._result(state, started, success=True)
        finally:
            release_active(token)

    def get_indexing_status(self) -> IndexingStatus:
        checkpoint = self._store.latest_checkpoint(self._project_id)
        if checkpoint is None:
            return IndexingStatus(
                project_id=self._project_id,
                checkpoint_id=None,
                stage="not_indexed",
                total_files=0,
                processed_files=0,
                failed_files=0,
                percentage=0.0,
                retry_count=0,
                error_message=None,
                last_processed_file=None,
                start_time=None,
                last_update_time=None,
                completed_at=None,
            )
        return IndexingStatus(
            project_id=self._project_id,
            checkpoint_id=checkpoint.id,
            stage=checkpoint.stage,
            total_files=checkpoint.total_files,
            processed_files=len(checkpoint.processed_files),
            failed_files=len(checkpoint.failed_files),
            percentage=status_percentage(checkpoint),
            retry_count=checkpoint.retry_count,
            error_message=checkpoint.error_message,
            last_processed_file=checkpoint.last_processed_file,
            start_time=checkpoint.start_time,
            last_update_time=checkpoint.last_update_time,
            completed_at=checkpoint.completed_at,
        )

    def calculate_checksum(self, path: Path | str) -> str:
        """SHA-256 of the file bytes; relative paths resolve against the project root."""
        target = self._absolute(path)
        digest = hashlib.sha256()
        with target.open("rb") as handle:
            while True:
                block = handle.read(_HASH_BLOCK_SIZE)
                if not block:
                    break
                digest.update(block)
        return digest.hexdigest()

    def get_stored_checksum(self, path: str) -> str | None:
        return self._store.get_checksum(self._project_id, path)

    def store_checksum(self, path: str, checksum: str) -> None:
        self._store.store_checksum(self._project_id, path, checksum)

    def clear_checkpoints(self) -> int:
        """Drop every checkpoint of the project unless a running builder owns one."""
        latest = self._store.latest_checkpoint(self._project_id)
        if latest is not None and latest.is_live and is_owner_running(latest):
            raise IndexBusyError(self._project_id, latest.id, latest.owner_pid)
        return self._store.delete_checkpoints(self._project_id)

    def build_dependency_graph(self) -> DependencyGraph:
        """Dependency graph over stored analyses, recomputed incrementally per project."""
        records = self._store.list_analyses(self._project_id)
        hashes = {record.file_path: record.checksum for record in records}
        return self._graph_cache.graph_for(self._project_id, records, hashes)

    # Run phases

    def _acquire_checkpoint(self, token: str) -> tuple[IndexCheckpoint, str | None]:
        latest = self._store.latest_checkpoint(self._project_id)
        if latest is not None and latest.is_live and is_owner_running(latest):
            raise IndexBusyError(self._project_id, latest.id, latest.owner_pid)

        if latest is not None and latest.stage != STAGE_COMPLETE:
            try:
                claimed = self._store.claim_checkpoint(
                    latest.id, latest.owner_token, token, os.getpid(), STAGE_SCANNING
                )
            except CheckpointConflictError as exc:
                raise IndexBusyError(self._project_id, latest.id, latest.owner_pid) from exc
            if claimed is None:
                raise IndexBusyError(self._project_id, latest.id, latest.owner_pid)
            return claimed, latest.id

        checkpoint = new_checkpoint(
            self._project_id, self._config.index.batch_size, token, _utc_now_iso()
        )
        try:
            self._store.create_checkpoint(checkpoint)
        except CheckpointConflictError as exc:
            current = self._store.latest_checkpoint(self._project_id)
            raise IndexBusyError(
                self._project_id,
                current.id if current is not None else checkpoint.id,
                current.owner_pid if current is not None else None,
            ) from exc
        return checkpoint, None

    def _run(self, state: _RunState) -> None:
        with FileScanner(scan_options_for(self._config)) as scanner:
            scan_result = scanner.scan()
        for scan_error in scan_result.errors:
            self._report_failure(state, STAGE_SCANNING, scan_error.path, scan_error.message)

        files = list(scan_result.indexable_files())
        state.checkpoint = replace(
            state.checkpoint,
            stage=STAGE_ANALYZING,
            total_files=len(files),
            batch_size=self._config.index.batch_size,
            last_update_time=_utc_now_iso(),
        )
        self._store.update_checkpoint(state.checkpoint)
        self._emit_progress(state, STAGE_SCANNING, None, f"Discovered {len(files)} files")

        processed = set(state.checkpoint.processed_files)
        pending = [metadata for metadata in files if metadata.relative_path not in processed]
        batch_size = self._config.index.batch_size
        for batch_index, start in enumerate(range(0, len(pending), batch_size)):
            batch = pending[start : start + batch_size]
            self._fault(
                FaultPoint.BEFORE_BATCH,
                state,
                batch_index=batch_index,
                paths=[metadata.relative_path for metadata in batch],
            )
            self._process_batch(state, batch, batch_index)

        if self._config.index.prune_missing:
            self._prune_missing({metadata.relative_path for metadata in files})
        state.checkpoint = mark_complete(state.checkpoint, _utc_now_iso())
        self._store.update_checkpoint(state.checkpoint)
        self._emit_progress(state, STAGE_COMPLETE, None, "Indexing complete")

    def _process_batch(
        self, state: _RunState, batch: list[FileMetadata], batch_index: int
    ) -> None:
        paths = [metadata.relative_path for metadata in batch]
        outcome = self._extract_batch(batch)

        # Unchanged and skipped files count as processed; only failures stay retryable.
        advanced = record_outcomes(
            state.checkpoint,
            processed=[path for path in paths if path not in outcome.failures],
            failed=[path for path in paths if path in outcome.failures],
            now=_utc_now_iso(),
        )
        self._fault(
            FaultPoint.BEFORE_COMMIT,
            state,
            batch_index=batch_index,
            paths=paths,
        )
        try:
            chunks = self._store.commit_batch(self._project_id, outcome.writes, advanced)
        except CheckpointOwnershipError as exc:
            raise IndexingAborted(str(exc)) from exc
        except Exception as exc:
            self._rollback_batch(state, paths, f"Batch {batch_index} commit failed: {exc}")
            return

        state.checkpoint = advanced
        state.files_processed += len(outcome.writes)
        state.files_unchanged += len(outcome.unchanged)
        state.files_skipped += len(outcome.skipped)
        state.files_failed += len(outcome.failures)
        state.chunks_created += chunks
        for path in paths:
            if path in outcome.failures:
                self._report_failure(state, STAGE_ANALYZING, path, outcome.failures[path])
        self._emit_progress(
            state, STAGE_ANALYZING, paths[-1] if paths else None, f"Committed batch {batch_index}"
        )

    def _extract_batch(self, batch: list[FileMetadata]) -> _BatchOutcome:
        outcome = _BatchOutcome()
        stored = self._store.get_checksums(
            self._project_id, [metadata.relative_path for metadata in batch]
        )
        candidates: list[FileMetadata] = []
        for metadata in batch:
            path = metadata.relative_path
            previous = stored.get(path)
            if previous is None:
                candidates.append(metadata)
                continue
            try:
                current = self.calculate_checksum(metadata.path)
            except OSError as exc:
                outcome.failures[path] = f"Failed to read {path}: {exc}"
                continue
            if current == previous:
                outcome.unchanged.add(path)
            elif self._config.index.verify_checksums:
                outcome.failures[path] = str(ChecksumMismatchError(path, previous, current))
            else:
                candidates.append(metadata)

        if not candidates:
            return outcome
        workers = max(1, min(self._config.index.extract_workers, len(candidates)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self._extractor.extract_and_chunk_file, metadata)
                for metadata in candidates
            ]
            for metadata, future in zip(candidates, futures, strict=True):
                path = metadata.relative_path
                try:
                    extracted = future.result()
                except Exception as exc:
                    outcome.failures[path] = str(exc)
                    continue
                if extracted is None:
                    outcome.skipped.add(path)
                    continue
                outcome.writes.append(
                    AnalysisWrite(
                        record=_record_from(self._project_id, extracted),
                        chunks=extracted.chunks,
                    )
                )
        return outcome

    def _rollback_batch(self, state: _RunState, paths: list[str], message: str) -> None:
        try:
            self._store.delete_analyses(self._project_id, paths)
        except Exception as exc:
            self._report_failure(state, STAGE_ANALYZING, None, f"Rollback failed: {exc}")
        state.checkpoint = record_batch_failure(state.checkpoint, paths, message, _utc_now_iso())
        self._store.update_checkpoint(state.checkpoint)
        state.files_failed += len(paths)
        for path in paths:
            self._report_failure(state, STAGE_ANALYZING, path, message)
        self._emit_progress(state, STAGE_ANALYZING, paths[-1] if paths else None, message)

    def _prune_missing(self, current_paths: set[str]) -> None:
        stale = [
            record.file_path
            for record in self._store.list_analyses(self._project_id)
            if record.file_path not in current_paths
        ]
        if stale:
            self._store.delete_analyses(self._project_id, stale)

    def _fail_run(self, state: _RunState, message: str) -> None:
        state.checkpoint = mark_failed(state.checkpoint, message, _utc_now_iso())
        try:
            self._store.update_checkpoint(state.checkpoint)
        except Exception as exc:
            state.errors.append(
                _failure(STAGE_FAILED, None, f"Failed to persist failed checkpoint: {exc}")
            )
        self._emit_progress(state, STAGE_FAILED, None, message)

    def _fault(self, point: str, state: _RunState, **context: object) -> None:
        if self._fault_hook is None:
            return
        payload: dict[str, object] = {
            "checkpoint_id": state.checkpoint.id,
            "project_id": self._project_id,
            **context,
        }
        try:
            self._fault_hook(point, payload)
        except IndexingAborted:
            raise
        except Exception as exc:
            raise IndexingAborted(f"Fault hook aborted run at {point}: {exc}") from exc

    # Sinks

    def _emit_progress(
        self, state: _RunState, stage: str, current_file: str | None, message: str
    ) -> None:
        if self._on_progress is None:
            return
        checkpoint = state.checkpoint
        progress = IndexProgress(
            stage=stage,
            total_files=checkpoint.total_files,
            processed_files=len(checkpoint.processed_files),
            failed_files=len(checkpoint.failed_files),
            current_file=current_file,
            percentage=status_percentage(checkpoint),
            message=message,
        )
        try:
            self._on_progress(progress)
        except Exception as exc:
            state.errors.append(_failure(CALLBACK_STAGE, None, f"Progress callback failed: {exc}"))

    def _report_failure(
        self, state: _RunState, stage: str, file_path: str | None, error: str
    ) -> None:
        failure = _failure(stage, file_path, error)
        state.errors.append(failure)
        if self._on_error is None:
            return
        try:
            self._on_error(failure)
        except Exception as exc:
            state.errors.append(
                _failure(CALLBACK_STAGE, file_path, f"Error callback failed: {exc}")
            )

    def _result(self, state: _RunState, started: float, *, success: bool) -> IndexBuildResult:
        return IndexBuildResult(
            success=success,
            files_indexed=len(state.checkpoint.processed_files),
            files_processed=state.files_processed,
            files_unchanged=state.files_unchanged,
            files_skipped=state.files_skipped,
            files_failed=state.files_failed,
            chunks_created=state.chunks_created,
            duration_ms=int((time.perf_counter() - started) * 1000),
            checkpoint_id=state.checkpoint.id,
            resumed_from=state.resumed_from,
            errors=tuple(state.errors),
        )

    def _absolute(self, path: Path | str) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self._config.project_root / candidate


def _record_from(project_id: str, extracted: ExtractedContent) -> FileAnalysisRecord:
    return FileAnalysisRecord(
        project_id=project_id,
        file_path=extracted.path,
        language=extracted.language,
        summary=extracted.content[:SUMMARY_LENGTH],
        size=extracted.size,
        line_count=extracted.line_count,
        char_count=extracted.char_count,
        complexity=extracted.structure.complexity,
        nesting_depth=extracted.structure.max_nesting_depth,
        functions=extracted.functions,
        classes=extracted.classes,
        imports=extracted.imports,
        exports=extracted.exports,
        checksum=extracted.content_hash,
        chunk_count=len(extracted.chunks),
    )


def _failure(stage: str, file_path: str | None, error: str) -> IndexFailure:
    return IndexFailure(stage=stage, file_path=file_path, error=error, timestamp=_utc_now_iso())


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
