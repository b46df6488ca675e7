from __future__ import annotations

from pathlib import Path

from repo_index.config import CliOverrides, default_project_id, load_effective_config


def test_merge_order_defaults_then_repo_then_cli(tmp_path: Path) -> None:
    (tmp_path / "repo_index.toml").write_text(
        "\n".join(
            [
                'project_id = "demo"',
                "",
                "[index]",
                "batch_size = 42",
                "chunk_size = 2048",
                "verify_checksums = false",
                "",
                "[scan]",
                'ignore_patterns = ["*.log", "fixtures"]',
                'file_extensions = ["ts", ".PY"]',
            ]
        ),
        encoding="utf-8",
    )
    overrides = CliOverrides(batch_size=7, verify_checksums=True)

    config = load_effective_config(tmp_path, overrides)

    assert config.project_id == "demo"
    assert config.index.batch_size == 7
    assert config.index.chunk_size == 2048
    assert config.index.verify_checksums is True
    assert config.index.max_file_size == 1024 * 1024
    assert config.scan.ignore_patterns == ("*.log", "fixtures")
    assert config.scan.file_extensions == (".ts", ".py")
    assert config.scan.max_depth == 100


def test_defaults_without_repo_config(tmp_path: Path) -> None:
    config = load_effective_config(tmp_path)

    assert config.project_root == tmp_path.resolve()
    assert config.data_dir == tmp_path.resolve() / ".repo_index"
    assert config.store_path == config.data_dir / "index.sqlite3"
    assert config.events_path == config.data_dir / "events.jsonl"
    assert config.project_id == default_project_id(tmp_path)
    assert config.index.batch_size == 100
    assert config.index.chunk_size == 10 * 1024
    assert config.index.verify_checksums is True
    assert config.dependencies.root_alias == "@/"


def test_data_dir_and_project_id_overrides_have_highest_precedence(tmp_path: Path) -> None:
    (tmp_path / "repo_index.toml").write_text('project_id = "from-file"\n', encoding="utf-8")
    custom_data_dir = tmp_path / ".custom_data"

    config = load_effective_config(
        tmp_path,
        CliOverrides(data_dir=custom_data_dir, project_id="from-cli"),
    )

    public = config.to_public_dict()
    assert public["data_dir"] == str(custom_data_dir.resolve())
    assert public["project_id"] == "from-cli"


def test_default_project_id_is_stable_per_root(tmp_path: Path) -> None:
    first = default_project_id(tmp_path)
    second = default_project_id(tmp_path / ".")
    other = default_project_id(tmp_path / "other")

    assert first == second
    assert first.startswith(f"{tmp_path.name}-")
    assert len(first.rsplit("-", 1)[1]) == 8
    assert first != other
