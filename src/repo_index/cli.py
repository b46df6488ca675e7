"""Command line entrypoint for building and inspecting a repository index."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TextIO

from repo_index.config import AppConfig, CliOverrides, load_effective_config
from repo_index.dependencies.analyzer import dependency_health
from repo_index.index.builder import IndexBuilder, scan_options_for
from repo_index.index.errors import IndexBusyError, IndexingAborted, StoreError
from repo_index.index.sqlite_store import SqliteIndexStore
from repo_index.logging.events import JsonlEventLogger, sanitize_error
from repo_index.scanner.models import ScanResult
from repo_index.scanner.scanner import FileScanner

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for the ``repo-index`` command."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--root", required=False, default=".")
    common.add_argument("--data-dir", required=False, default=None)
    common.add_argument("--project-id", required=False, default=None)

    parser = argparse.ArgumentParser(prog="repo-index")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", parents=[common], help="Build or resume the index.")
    build.add_argument("--batch-size", type=int, required=False, default=None)
    build.add_argument("--chunk-size", type=int, required=False, default=None)
    build.add_argument("--max-file-size", type=int, required=False, default=None)
    build.add_argument("--workers", type=int, required=False, default=None)
    build.add_argument("--no-verify-checksums", action="store_true")

    commands.add_parser("status", parents=[common], help="Show the latest checkpoint.")
    commands.add_parser("scan", parents=[common], help="Scan files without indexing.")
    deps = commands.add_parser("deps", parents=[common], help="Show the dependency graph.")
    deps.add_argument("--health", action="store_true")
    events = commands.add_parser("events", parents=[common], help="Show recent build events.")
    events.add_argument("--limit", type=int, required=False, default=50)
    events.add_argument("--since", required=False, default=None)
    commands.add_parser("reset", parents=[common], help="Delete the project's checkpoints.")
    return parser


def main(argv: list[str] | None = None, out_stream: TextIO | None = None) -> int:
    """Entrypoint for the repo-index command."""
    stream = out_stream or sys.stdout
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    try:
        config = load_effective_config(Path(args.root), _overrides_from_args(args))
    except ValueError as exc:
        _write_json(stream, {"error": sanitize_error(exc)})
        return EXIT_USAGE

    if args.command == "scan":
        return _run_scan(config, stream)
    if args.command == "events":
        logger = JsonlEventLogger(config.events_path)
        _write_json(stream, {"events": logger.read(since=args.since, limit=args.limit)})
        return EXIT_OK

    try:
        store = SqliteIndexStore(config.store_path)
    except StoreError as exc:
        _write_json(stream, {"error": sanitize_error(exc)})
        return EXIT_USAGE
    with store:
        if args.command == "build":
            return _run_build(config, store, stream)
        builder = IndexBuilder(store, config)
        if args.command == "status":
            payload = builder.get_indexing_status().to_dict()
            payload["config"] = config.to_public_dict()
            _write_json(stream, payload)
            return EXIT_OK
        if args.command == "deps":
            graph = builder.build_dependency_graph()
            payload = graph.to_dict()
            if args.health:
                health = dependency_health(graph)
                payload["health"] = {
                    "score": health.score,
                    "issues": list(health.issues),
                    "recommendations": list(health.recommendations),
                }
            _write_json(stream, payload)
            return EXIT_OK
        try:
            deleted = builder.clear_checkpoints()
        except IndexBusyError as exc:
            _write_json(stream, {"error": sanitize_error(exc)})
            return EXIT_USAGE
        _write_json(stream, {"deleted_checkpoints": deleted, "project_id": config.project_id})
        return EXIT_OK


def _run_build(config: AppConfig, store: SqliteIndexStore, stream: TextIO) -> int:
    logger = JsonlEventLogger(config.events_path)
    builder = IndexBuilder(
        store,
        config,
        on_progress=logger.log_progress,
        on_error=logger.log_error,
    )
    try:
        result = builder.build_index()
    except IndexBusyError as exc:
        _write_json(stream, {"error": sanitize_error(exc)})
        return EXIT_USAGE
    except IndexingAborted as exc:
        _write_json(stream, {"error": sanitize_error(exc), "success": False})
        return EXIT_FAILED
    payload = result.to_dict()
    payload["run_id"] = logger.run_id
    _write_json(stream, payload)
    return EXIT_OK if result.success else EXIT_FAILED


def _run_scan(config: AppConfig, stream: TextIO) -> int:
    try:
        with FileScanner(scan_options_for(config)) as scanner:
            result = scanner.scan()
    except FileNotFoundError as exc:
        _write_json(stream, {"error": sanitize_error(exc)})
        return EXIT_USAGE
    _write_json(stream, _scan_result_to_dict(result))
    return EXIT_OK


def _scan_result_to_dict(result: ScanResult) -> dict[str, object]:
    return {
        "root": str(result.root),
        "total_files": result.total_files,
        "total_size": result.total_size,
        "duration_ms": result.duration_ms,
        "languages": dict(sorted(result.languages.items())),
        "files": [
            {
                "path": item.relative_path,
                "size": item.size,
                "language": item.language,
                "is_binary": item.is_binary,
            }
            for item in result.files
        ],
        "errors": [{"path": error.path, "message": error.message} for error in result.errors],
    }


def _overrides_from_args(args: argparse.Namespace) -> CliOverrides:
    verify: bool | None = None
    if getattr(args, "no_verify_checksums", False):
        verify = False
    return CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        project_id=args.project_id,
        batch_size=getattr(args, "batch_size", None),
        chunk_size=getattr(args, "chunk_size", None),
        max_file_size=getattr(args, "max_file_size", None),
        extract_workers=getattr(args, "workers", None),
        verify_checksums=verify,
    )


def _write_json(stream: TextIO, payload: dict[str, object]) -> None:
    stream.write(json.dumps(payload, sort_keys=True))
    stream.write("\n")


if __name__ == "__main__":
    raise SystemExit(main())
