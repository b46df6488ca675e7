from __future__ import annotations

from pathlib import Path

import pytest

from repo_index.config import AppConfig, CliOverrides, load_effective_config
from repo_index.index import IndexBuilder, IndexBusyError, SqliteIndexStore
from repo_index.index.checkpoints import (
    new_checkpoint,
    new_owner_token,
    register_active,
    release_active,
)

NOW = "2026-01-01T00:00:00.000Z"


def _config(tmp_path: Path) -> AppConfig:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "a.py").write_text("A = 1\n", encoding="utf-8")
    return load_effective_config(repo, CliOverrides(data_dir=tmp_path / "data"))


def test_second_builder_is_rejected_while_owner_runs(tmp_path: Path) -> None:
    config = _config(tmp_path)
    token = new_owner_token()

    with SqliteIndexStore(config.store_path) as store:
        live = new_checkpoint(config.project_id, 10, token, NOW)
        store.create_checkpoint(live)
        register_active(token)
        try:
            builder = IndexBuilder(store, config)
            with pytest.raises(IndexBusyError) as excinfo:
                builder.build_index()
            with pytest.raises(IndexBusyError):
                builder.clear_checkpoints()
        finally:
            release_active(token)
        untouched = store.get_checkpoint(live.id)

    assert excinfo.value.checkpoint_id == live.id
    assert excinfo.value.project_id == config.project_id
    assert untouched == live


def test_orphaned_live_checkpoint_is_adopted(tmp_path: Path) -> None:
    config = _config(tmp_path)

    with SqliteIndexStore(config.store_path) as store:
        orphan = new_checkpoint(config.project_id, 10, new_owner_token(), NOW)
        store.create_checkpoint(orphan)

        result = IndexBuilder(store, config).build_index()

    assert result.success
    assert result.resumed_from == orphan.id
    assert result.checkpoint_id == orphan.id


def test_clear_checkpoints_after_completion(tmp_path: Path) -> None:
    config = _config(tmp_path)

    with SqliteIndexStore(config.store_path) as store:
        builder = IndexBuilder(store, config)
        builder.build_index()
        builder.build_index()

        assert builder.clear_checkpoints() == 2
        assert builder.get_indexing_status().stage == "not_indexed"
