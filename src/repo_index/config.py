"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import hashlib
import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILE_NAME = "repo_index.toml"
DATA_DIR_NAME = ".repo_index"

BATCH_SIZE_CAP = 10_000
CHUNK_SIZE_CAP = 1024 * 1024
MAX_FILE_SIZE_CAP = 64 * 1024 * 1024
EXTRACT_WORKERS_CAP = 64
MAX_DEPTH_CAP = 1_000

DEFAULT_BATCH_SIZE = 100
DEFAULT_CHUNK_SIZE = 10 * 1024
DEFAULT_MAX_FILE_SIZE = 1024 * 1024
DEFAULT_EXTRACT_WORKERS = 4
DEFAULT_MAX_DEPTH = 100
DEFAULT_ROOT_ALIAS = "@/"


@dataclass(slots=True, frozen=True)
class IndexSettings:
    """Batch, chunking and integrity settings for one build."""

    batch_size: int = DEFAULT_BATCH_SIZE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    verify_checksums: bool = True
    extract_workers: int = DEFAULT_EXTRACT_WORKERS
    prune_missing: bool = True


@dataclass(slots=True, frozen=True)
class ScanSettings:
    """Directory walk filters."""

    ignore_patterns: tuple[str, ...] = ()
    max_depth: int = DEFAULT_MAX_DEPTH
    include_hidden: bool = False
    file_extensions: tuple[str, ...] | None = None
    use_gitignore: bool = False


@dataclass(slots=True, frozen=True)
class DependencySettings:
    """Module resolution settings."""

    root_alias: str = DEFAULT_ROOT_ALIAS


@dataclass(slots=True, frozen=True)
class AppConfig:
    """Fully merged configuration for one project root."""

    project_root: Path
    data_dir: Path
    project_id: str
    index: IndexSettings
    scan: ScanSettings
    dependencies: DependencySettings

    @property
    def store_path(self) -> Path:
        return self.data_dir / "index.sqlite3"

    @property
    def events_path(self) -> Path:
        return self.data_dir / "events.jsonl"

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for CLI output."""
        extensions = self.scan.file_extensions
        return {
            "project_root": str(self.project_root),
            "data_dir": str(self.data_dir),
            "project_id": self.project_id,
            "index": {
                "batch_size": self.index.batch_size,
                "chunk_size": self.index.chunk_size,
                "max_file_size": self.index.max_file_size,
                "verify_checksums": self.index.verify_checksums,
                "extract_workers": self.index.extract_workers,
                "prune_missing": self.index.prune_missing,
            },
            "scan": {
                "ignore_patterns": list(self.scan.ignore_patterns),
                "max_depth": self.scan.max_depth,
                "include_hidden": self.scan.include_hidden,
                "file_extensions": list(extensions) if extensions is not None else None,
                "use_gitignore": self.scan.use_gitignore,
            },
            "dependencies": {
                "root_alias": self.dependencies.root_alias,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    project_id: str | None = None
    batch_size: int | None = None
    chunk_size: int | None = None
    max_file_size: int | None = None
    extract_workers: int | None = None
    verify_checksums: bool | None = None


def default_project_id(project_root: Path) -> str:
    """Derive a stable project id from the resolved root path."""
    resolved = project_root.resolve()
    digest = hashlib.sha256(resolved.as_posix().encode("utf-8")).hexdigest()[:8]
    name = resolved.name or "root"
    return f"{name}-{digest}"


def default_config(project_root: Path) -> AppConfig:
    """Build default config for a given project root."""
    resolved_root = project_root.resolve()
    return AppConfig(
        project_root=resolved_root,
        data_dir=resolved_root / DATA_DIR_NAME,
        project_id=default_project_id(resolved_root),
        index=IndexSettings(),
        scan=ScanSettings(),
        dependencies=DependencySettings(),
    )


def load_repo_config_file(project_root: Path) -> dict[str, object]:
    """Load optional repo_index.toml from the project root."""
    config_path = project_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def merge_config(
    base: AppConfig, repo_payload: dict[str, object], overrides: CliOverrides
) -> AppConfig:
    """Merge defaults, repo config, then CLI/startup overrides."""
    index_payload = _get_table(repo_payload, "index")
    scan_payload = _get_table(repo_payload, "scan")
    dependencies_payload = _get_table(repo_payload, "dependencies")

    project_id = base.project_id
    if "project_id" in repo_payload:
        project_id = _non_empty_string(repo_payload["project_id"], "project_id")

    index = IndexSettings(
        batch_size=_optional_positive_int_with_cap(
            index_payload.get("batch_size"),
            "index.batch_size",
            base.index.batch_size,
            BATCH_SIZE_CAP,
        ),
        chunk_size=_optional_positive_int_with_cap(
            index_payload.get("chunk_size"),
            "index.chunk_size",
            base.index.chunk_size,
            CHUNK_SIZE_CAP,
        ),
        max_file_size=_optional_positive_int_with_cap(
            index_payload.get("max_file_size"),
            "index.max_file_size",
            base.index.max_file_size,
            MAX_FILE_SIZE_CAP,
        ),
        verify_checksums=_optional_bool(
            index_payload.get("verify_checksums"),
            "index.verify_checksums",
            base.index.verify_checksums,
        ),
        extract_workers=_optional_positive_int_with_cap(
            index_payload.get("extract_workers"),
            "index.extract_workers",
            base.index.extract_workers,
            EXTRACT_WORKERS_CAP,
        ),
        prune_missing=_optional_bool(
            index_payload.get("prune_missing"),
            "index.prune_missing",
            base.index.prune_missing,
        ),
    )

    ignore_patterns = base.scan.ignore_patterns
    if "ignore_patterns" in scan_payload:
        ignore_patterns = _tuple_of_strings(
            scan_payload["ignore_patterns"], "scan", "ignore_patterns"
        )
    file_extensions = base.scan.file_extensions
    if "file_extensions" in scan_payload:
        file_extensions = tuple(
            _normalize_extension(item)
            for item in _tuple_of_strings(
                scan_payload["file_extensions"], "scan", "file_extensions"
            )
        )
    scan = ScanSettings(
        ignore_patterns=ignore_patterns,
        max_depth=_optional_positive_int_with_cap(
            scan_payload.get("max_depth"),
            "scan.max_depth",
            base.scan.max_depth,
            MAX_DEPTH_CAP,
        ),
        include_hidden=_optional_bool(
            scan_payload.get("include_hidden"),
            "scan.include_hidden",
            base.scan.include_hidden,
        ),
        file_extensions=file_extensions,
        use_gitignore=_optional_bool(
            scan_payload.get("use_gitignore"),
            "scan.use_gitignore",
            base.scan.use_gitignore,
        ),
    )

    root_alias = base.dependencies.root_alias
    if "root_alias" in dependencies_payload:
        root_alias = _non_empty_string(
            dependencies_payload["root_alias"], "dependencies.root_alias"
        )

    merged = AppConfig(
        project_root=base.project_root,
        data_dir=base.data_dir,
        project_id=project_id,
        index=index,
        scan=scan,
        dependencies=DependencySettings(root_alias=root_alias),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: AppConfig, overrides: CliOverrides) -> AppConfig:
    """Apply startup overrides at highest precedence."""
    index = IndexSettings(
        batch_size=_optional_positive_int_with_cap(
            overrides.batch_size,
            "overrides.batch_size",
            config.index.batch_size,
            BATCH_SIZE_CAP,
        ),
        chunk_size=_optional_positive_int_with_cap(
            overrides.chunk_size,
            "overrides.chunk_size",
            config.index.chunk_size,
            CHUNK_SIZE_CAP,
        ),
        max_file_size=_optional_positive_int_with_cap(
            overrides.max_file_size,
            "overrides.max_file_size",
            config.index.max_file_size,
            MAX_FILE_SIZE_CAP,
        ),
        verify_checksums=(
            overrides.verify_checksums
            if overrides.verify_checksums is not None
            else config.index.verify_checksums
        ),
        extract_workers=_optional_positive_int_with_cap(
            overrides.extract_workers,
            "overrides.extract_workers",
            config.index.extract_workers,
            EXTRACT_WORKERS_CAP,
        ),
        prune_missing=config.index.prune_missing,
    )
    project_id = config.project_id
    if overrides.project_id is not None:
        project_id = _non_empty_string(overrides.project_id, "overrides.project_id")
    data_dir = overrides.data_dir or config.data_dir
    return AppConfig(
        project_root=config.project_root,
        data_dir=data_dir.resolve(),
        project_id=project_id,
        index=index,
        scan=config.scan,
        dependencies=config.dependencies,
    )


def load_effective_config(
    project_root: Path, overrides: CliOverrides | None = None
) -> AppConfig:
    """Load effective config using merge order defaults -> repo config -> overrides."""
    resolved_root = project_root.resolve()
    base = default_config(resolved_root)
    payload = load_repo_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{section}.{field}' must contain only strings.")
        output.append(item)
    return tuple(output)


def _normalize_extension(value: str) -> str:
    stripped = value.strip().lower()
    if stripped and not stripped.startswith("."):
        return f".{stripped}"
    return stripped


def _non_empty_string(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    return value.strip()


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Config field '{name}' must be a boolean.")
    return value


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
