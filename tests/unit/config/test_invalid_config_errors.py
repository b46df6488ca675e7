from __future__ import annotations

from pathlib import Path

import pytest

from repo_index.config import CliOverrides, load_effective_config


def test_invalid_batch_size_type_raises_value_error(tmp_path: Path) -> None:
    (tmp_path / "repo_index.toml").write_text(
        "\n".join(
            [
                "[index]",
                'batch_size = "not-an-int"',
            ]
        ),
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="index.batch_size"):
        load_effective_config(tmp_path)


def test_invalid_section_type_raises_value_error(tmp_path: Path) -> None:
    (tmp_path / "repo_index.toml").write_text('index = "not-a-table"\n', encoding="utf-8")

    with pytest.raises(ValueError, match="section 'index'"):
        load_effective_config(tmp_path)


def test_value_above_cap_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "repo_index.toml").write_text(
        "[index]\nextract_workers = 1000\n", encoding="utf-8"
    )

    with pytest.raises(ValueError, match="index.extract_workers' must be <= 64"):
        load_effective_config(tmp_path)


def test_non_boolean_flag_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "repo_index.toml").write_text(
        "[scan]\ninclude_hidden = 1\n", encoding="utf-8"
    )

    with pytest.raises(ValueError, match="scan.include_hidden"):
        load_effective_config(tmp_path)


def test_ignore_patterns_must_be_strings(tmp_path: Path) -> None:
    (tmp_path / "repo_index.toml").write_text(
        "[scan]\nignore_patterns = [1, 2]\n", encoding="utf-8"
    )

    with pytest.raises(ValueError, match="scan.ignore_patterns"):
        load_effective_config(tmp_path)


def test_zero_override_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="overrides.batch_size"):
        load_effective_config(tmp_path, CliOverrides(batch_size=0))
