"""Persistence store protocol consumed by the index builder."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import asdict
from typing import Protocol

from repo_index.adapters.base import ClassInfo, ExportInfo, FunctionInfo, ImportInfo
from repo_index.extraction.models import ContentChunk
from repo_index.index.models import AnalysisWrite, FileAnalysisRecord, IndexCheckpoint

INDEX_SCHEMA_VERSION = 1


class IndexStore(Protocol):
    """Transactional storage for checkpoints, analyses, chunks and checksums."""

    def create_checkpoint(self, checkpoint: IndexCheckpoint) -> None:
        """Insert a checkpoint; a second live checkpoint per project is rejected."""

    def get_checkpoint(self, checkpoint_id: str) -> IndexCheckpoint | None:
        """Return one checkpoint by id."""

    def latest_checkpoint(self, project_id: str) -> IndexCheckpoint | None:
        """Return the most recently created checkpoint for a project."""

    def update_checkpoint(self, checkpoint: IndexCheckpoint) -> None:
        """Persist checkpoint state; the stored owner token must match."""

    def claim_checkpoint(
        self,
        checkpoint_id: str,
        expected_token: str | None,
        new_token: str,
        owner_pid: int,
        stage: str,
    ) -> IndexCheckpoint | None:
        """Swap the owner token when it still equals ``expected_token``."""

    def delete_checkpoints(self, project_id: str) -> int:
        """Remove every checkpoint for a project."""

    def commit_batch(
        self,
        project_id: str,
        analyses: Sequence[AnalysisWrite],
        checkpoint: IndexCheckpoint,
    ) -> int:
        """Write analyses, chunks, checksums and the checkpoint all-or-nothing."""

    def delete_analyses(self, project_id: str, paths: Sequence[str]) -> int:
        """Delete analyses (cascading chunks) and checksums for paths."""

    def get_analysis(self, project_id: str, file_path: str) -> FileAnalysisRecord | None:
        """Return one stored analysis."""

    def list_analyses(self, project_id: str) -> list[FileAnalysisRecord]:
        """Return stored analyses ordered by path."""

    def get_chunks(self, project_id: str, file_path: str) -> list[ContentChunk]:
        """Return stored chunks of one file in index order."""

    def get_checksum(self, project_id: str, file_path: str) -> str | None:
        """Return the stored checksum of one file."""

    def get_checksums(self, project_id: str, paths: Sequence[str]) -> dict[str, str]:
        """Return stored checksums for the given paths that have one."""

    def store_checksum(self, project_id: str, file_path: str, checksum: str) -> None:
        """Upsert one checksum outside a batch."""

    def close(self) -> None:
        """Release the underlying connection."""


def facts_to_json(record: FileAnalysisRecord) -> str:
    payload = {
        "functions": [asdict(item) for item in record.functions],
        "classes": [asdict(item) for item in record.classes],
        "imports": [asdict(item) for item in record.imports],
        "exports": [asdict(item) for item in record.exports],
    }
    return json.dumps(payload, sort_keys=True)


def facts_from_json(raw: str) -> dict[str, tuple[object, ...]]:
    payload = json.loads(raw) if raw else {}
    if not isinstance(payload, dict):
        payload = {}
    return {
        "functions": tuple(
            FunctionInfo(
                name=str(item["name"]),
                line=int(item["line"]),
                parameters=tuple(item.get("parameters", ())),
                return_type=item.get("return_type"),
                is_async=bool(item.get("is_async", False)),
                is_exported=bool(item.get("is_exported", False)),
            )
            for item in _rows(payload, "functions")
        ),
        "classes": tuple(
            ClassInfo(
                name=str(item["name"]),
                line=int(item["line"]),
                extends=item.get("extends"),
                implements=tuple(item.get("implements", ())),
            )
            for item in _rows(payload, "classes")
        ),
        "imports": tuple(
            ImportInfo(
                module=str(item["module"]),
                items=tuple(item.get("items", ())),
                line=int(item["line"]),
                is_dynamic=bool(item.get("is_dynamic", False)),
                kind=str(item.get("kind", "static")),
            )
            for item in _rows(payload, "imports")
        ),
        "exports": tuple(
            ExportInfo(
                name=str(item["name"]),
                line=int(item["line"]),
                type=str(item.get("type", "named")),
            )
            for item in _rows(payload, "exports")
        ),
    }


def _rows(payload: dict[str, object], key: str) -> list[dict[str, object]]:
    value = payload.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]
