from __future__ import annotations

from pathlib import Path

import pytest

from repo_index.config import AppConfig, CliOverrides, load_effective_config
from repo_index.index import (
    FaultPoint,
    IndexBuilder,
    IndexingAborted,
    IndexProgress,
    SqliteIndexStore,
)


class SimulatedKill(BaseException):
    """Stands in for the process dying; nothing in the builder may catch it."""


def _write_repo(root: Path, count: int = 7) -> None:
    src = root / "src"
    src.mkdir(parents=True, exist_ok=True)
    for index in range(count):
        lines = [f"export function f{index}(x: number): number {{", "  return x;", "}"]
        if index > 0:
            lines.insert(0, f"import {{ f{index - 1} }} from './m{index - 1}';")
        (src / f"m{index}.ts").write_text("\n".join(lines) + "\n", encoding="utf-8")


def _config(repo: Path, data_dir: Path, batch_size: int = 2) -> AppConfig:
    return load_effective_config(repo, CliOverrides(data_dir=data_dir, batch_size=batch_size))


def _snapshot(store: SqliteIndexStore, project_id: str) -> dict[str, tuple[str, int, int]]:
    return {
        record.file_path: (record.checksum, record.chunk_count, record.analysis_count)
        for record in store.list_analyses(project_id)
    }


def _abort_at(point: str, batch: int):
    def hook(name: str, context: dict[str, object]) -> None:
        if name == point and context["batch_index"] == batch:
            raise IndexingAborted(f"abort at {point} {batch}")

    return hook


def test_rerun_after_completion_is_idempotent(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _write_repo(repo)
    config = _config(repo, tmp_path / "data")

    with SqliteIndexStore(config.store_path) as store:
        first = IndexBuilder(store, config).build_index()
        before = _snapshot(store, config.project_id)
        second = IndexBuilder(store, config).build_index()
        after = _snapshot(store, config.project_id)

    assert first.success and second.success
    assert first.files_processed == 7
    assert first.files_indexed == 7
    assert second.files_processed == 0
    assert second.files_unchanged == 7
    assert second.files_indexed == 7
    assert second.resumed_from is None
    assert second.checkpoint_id != first.checkpoint_id
    assert before == after
    assert {count for _, _, count in after.values()} == {1}


@pytest.mark.parametrize("batch", [0, 1, 2, 3])
@pytest.mark.parametrize("point", [FaultPoint.BEFORE_BATCH, FaultPoint.BEFORE_COMMIT])
def test_crash_at_any_batch_boundary_resumes_to_reference(
    tmp_path: Path, point: str, batch: int
) -> None:
    repo = tmp_path / "repo"
    _write_repo(repo)
    reference_config = _config(repo, tmp_path / "reference")
    with SqliteIndexStore(reference_config.store_path) as store:
        IndexBuilder(store, reference_config).build_index()
        reference = _snapshot(store, reference_config.project_id)

    config = _config(repo, tmp_path / "crash")
    with SqliteIndexStore(config.store_path) as store:
        with pytest.raises(IndexingAborted):
            IndexBuilder(store, config, fault_hook=_abort_at(point, batch)).build_index()
        crashed = store.latest_checkpoint(config.project_id)
        assert crashed is not None
        assert crashed.stage == "failed"
        assert len(crashed.processed_files) == 2 * batch
        assert len(store.list_analyses(config.project_id)) == 2 * batch

        resumed = IndexBuilder(store, config).build_index()
        snapshot = _snapshot(store, config.project_id)

    assert resumed.success
    assert resumed.resumed_from == crashed.id
    assert resumed.checkpoint_id == crashed.id
    assert resumed.files_processed == 7 - 2 * batch
    assert snapshot == reference


def test_simulated_kill_leaves_live_checkpoint_that_resumes(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _write_repo(repo)
    config = _config(repo, tmp_path / "data")

    def kill(name: str, context: dict[str, object]) -> None:
        if name == FaultPoint.BEFORE_BATCH and context["batch_index"] == 2:
            raise SimulatedKill()

    with SqliteIndexStore(config.store_path) as store:
        with pytest.raises(SimulatedKill):
            IndexBuilder(store, config, fault_hook=kill).build_index()
        orphan = store.latest_checkpoint(config.project_id)
        assert orphan is not None
        assert orphan.stage == "analyzing"
        assert len(orphan.processed_files) == 4

        resumed = IndexBuilder(store, config).build_index()
        records = store.list_analyses(config.project_id)

    assert resumed.resumed_from == orphan.id
    assert resumed.files_processed == 3
    assert len(records) == 7
    assert all(record.analysis_count == 1 for record in records)


def test_fault_hook_errors_abort_and_mark_failed(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _write_repo(repo, count=3)
    config = _config(repo, tmp_path / "data")

    def broken(name: str, context: dict[str, object]) -> None:
        raise RuntimeError("hook exploded")

    with SqliteIndexStore(config.store_path) as store:
        builder = IndexBuilder(store, config, fault_hook=broken)
        with pytest.raises(IndexingAborted, match="hook exploded"):
            builder.build_index()
        status = builder.get_indexing_status()

    assert status.stage == "failed"
    assert status.error_message is not None
    assert "hook exploded" in status.error_message
    assert status.total_files == 3


def test_progress_events_and_status(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _write_repo(repo, count=5)
    config = _config(repo, tmp_path / "data")
    events: list[IndexProgress] = []

    with SqliteIndexStore(config.store_path) as store:
        builder = IndexBuilder(store, config, on_progress=events.append)
        assert builder.get_indexing_status().stage == "not_indexed"
        builder.build_index()
        status = builder.get_indexing_status()

    assert [event.stage for event in events] == [
        "scanning",
        "analyzing",
        "analyzing",
        "analyzing",
        "complete",
    ]
    assert [event.processed_files for event in events[1:4]] == [2, 4, 5]
    assert events[-1].percentage == 100.0
    assert status.stage == "complete"
    assert status.percentage == 100.0
    assert status.processed_files == 5
    assert status.completed_at is not None


def test_failing_progress_callback_does_not_stop_the_build(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _write_repo(repo, count=2)
    config = _config(repo, tmp_path / "data")

    def explode(progress: IndexProgress) -> None:
        raise RuntimeError("ui gone")

    with SqliteIndexStore(config.store_path) as store:
        result = IndexBuilder(store, config, on_progress=explode).build_index()

    assert result.success
    assert result.files_indexed == 2
    assert {item.stage for item in result.errors} == {"callback"}
