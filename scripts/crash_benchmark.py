#!/usr/bin/env python3
"""Prove crash-then-resume builds converge on the uninterrupted index."""

from __future__ import annotations

import argparse
import json
import math
import statistics
import sys
import textwrap
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from repo_index.config import CliOverrides, load_effective_config
from repo_index.index import (
    FaultPoint,
    IndexBuilder,
    IndexingAborted,
    SqliteIndexStore,
)


@dataclass(frozen=True, slots=True)
class FixtureProfile:
    """Shape of a generated TypeScript fixture repository."""

    modules: int
    functions_per_module: int
    large_every: int
    large_padding_lines: int


@dataclass(slots=True)
class CrashRun:
    """One abort-then-resume cycle at a batch boundary."""

    abort_after_batches: int
    aborted: bool
    crash_seconds: float
    resume_seconds: float
    resumed_from: str | None
    matches_reference: bool
    mismatched_paths: list[str]


DEFAULT_PROFILE = FixtureProfile(
    modules=60,
    functions_per_module=6,
    large_every=10,
    large_padding_lines=400,
)


def module_text(index: int, profile: FixtureProfile) -> str:
    lines: list[str] = []
    if index > 0:
        lines.append(f"import {{ fn_{index - 1}_0 }} from './module_{index - 1:04d}';")
    if index % 7 == 3:
        lines.append("import { readFileSync } from 'fs';")
    lines.append("")
    for fn_idx in range(profile.functions_per_module):
        lines.append(
            textwrap.dedent(
                f"""\
                export function fn_{index}_{fn_idx}(value: number): number {{
                  if (value > {fn_idx}) {{
                    return value * {fn_idx + 1};
                  }}
                  return value;
                }}
                """
            )
        )
    if profile.large_every > 0 and index % profile.large_every == 0:
        lines.extend(
            f"// padding line {line} for module {index} to exceed the chunk size"
            for line in range(profile.large_padding_lines)
        )
    return "\n".join(lines) + "\n"


def write_fixture_repo(fixture_root: Path, profile: FixtureProfile) -> list[str]:
    """Write the fixture and return its relative file paths in discovery order."""
    src = fixture_root / "src"
    src.mkdir(parents=True, exist_ok=True)
    paths: list[str] = []
    for index in range(profile.modules):
        name = f"module_{index:04d}.ts"
        (src / name).write_text(module_text(index, profile), encoding="utf-8")
        paths.append(f"src/{name}")
    marker = {
        "profile": {
            "modules": profile.modules,
            "functions_per_module": profile.functions_per_module,
            "large_every": profile.large_every,
            "large_padding_lines": profile.large_padding_lines,
        }
    }
    (fixture_root / ".fixture_profile.json").write_text(
        json.dumps(marker, indent=2, sort_keys=True), encoding="utf-8"
    )
    return paths


def snapshot_index(store: SqliteIndexStore, project_id: str) -> dict[str, tuple[str, int]]:
    """Map path -> (checksum, chunk count) for every stored analysis."""
    return {
        record.file_path: (record.checksum, record.chunk_count)
        for record in store.list_analyses(project_id)
    }


def build_once(
    fixture_root: Path,
    data_dir: Path,
    batch_size: int,
    abort_after_batches: int | None = None,
) -> tuple[dict[str, tuple[str, int]], float, bool, str | None]:
    """Run one build; abort before batch ``abort_after_batches`` when given."""
    config = load_effective_config(
        fixture_root,
        CliOverrides(data_dir=data_dir, batch_size=batch_size, verify_checksums=False),
    )

    def fault_hook(point: str, context: dict[str, object]) -> None:
        if (
            abort_after_batches is not None
            and point == FaultPoint.BEFORE_BATCH
            and context.get("batch_index") == abort_after_batches
        ):
            raise IndexingAborted(f"Simulated crash after {abort_after_batches} batches")

    started = time.perf_counter()
    aborted = False
    resumed_from: str | None = None
    with SqliteIndexStore(config.store_path) as store:
        builder = IndexBuilder(store, config, fault_hook=fault_hook)
        try:
            result = builder.build_index()
            resumed_from = result.resumed_from
        except IndexingAborted:
            aborted = True
        snapshot = snapshot_index(store, config.project_id)
    return snapshot, time.perf_counter() - started, aborted, resumed_from


def run_crash_resume(
    fixture_root: Path,
    work_dir: Path,
    batch_size: int,
    abort_after_batches: int,
    reference: dict[str, tuple[str, int]],
) -> CrashRun:
    data_dir = work_dir / f"crash-{abort_after_batches:04d}"
    _, crash_seconds, aborted, _ = build_once(
        fixture_root, data_dir, batch_size, abort_after_batches=abort_after_batches
    )
    snapshot, resume_seconds, _, resumed_from = build_once(fixture_root, data_dir, batch_size)
    mismatched = sorted(
        path
        for path in set(reference) | set(snapshot)
        if reference.get(path) != snapshot.get(path)
    )
    return CrashRun(
        abort_after_batches=abort_after_batches,
        aborted=aborted,
        crash_seconds=crash_seconds,
        resume_seconds=resume_seconds,
        resumed_from=resumed_from,
        matches_reference=not mismatched,
        mismatched_paths=mismatched,
    )


def summarize_runs(runs: list[CrashRun]) -> dict[str, object]:
    resume_times = [run.resume_seconds for run in runs]
    timing: dict[str, float] | None = None
    if resume_times:
        timing = {
            "min_seconds": min(resume_times),
            "max_seconds": max(resume_times),
            "mean_seconds": statistics.fmean(resume_times),
        }
    failures = [
        run.abort_after_batches
        for run in runs
        if not run.aborted or not run.matches_reference or run.resumed_from is None
    ]
    return {
        "runs": len(runs),
        "failures": failures,
        "resume_elapsed_seconds": timing,
        "verdict": "pass" if runs and not failures else "fail",
    }


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--out-dir",
        default=".repo_index/crash-benchmark",
        help="Output root for fixtures, stores and the report.",
    )
    parser.add_argument(
        "--modules",
        type=int,
        default=DEFAULT_PROFILE.modules,
        help=f"Number of generated modules. Default: {DEFAULT_PROFILE.modules}.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=10,
        help="Batch size for every build. Default: 10.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.modules < 1:
        raise SystemExit("--modules must be >= 1")
    if args.batch_size < 1:
        raise SystemExit("--batch-size must be >= 1")

    out_dir = Path(args.out_dir).resolve()
    session_id = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    session_dir = out_dir / f"session-{session_id}"
    fixture_root = session_dir / "fixture"
    work_dir = session_dir / "stores"
    profile = FixtureProfile(
        modules=args.modules,
        functions_per_module=DEFAULT_PROFILE.functions_per_module,
        large_every=DEFAULT_PROFILE.large_every,
        large_padding_lines=DEFAULT_PROFILE.large_padding_lines,
    )
    paths = write_fixture_repo(fixture_root, profile)

    reference, reference_seconds, _, _ = build_once(
        fixture_root, work_dir / "reference", args.batch_size
    )
    batches = math.ceil(len(paths) / args.batch_size)
    runs = [
        run_crash_resume(fixture_root, work_dir, args.batch_size, boundary, reference)
        for boundary in range(batches)
    ]
    summary = summarize_runs(runs)
    report = {
        "benchmark_version": 1,
        "timestamp_utc": datetime.now(UTC).isoformat(),
        "session_dir": str(session_dir),
        "protocol": {
            "modules": args.modules,
            "batch_size": args.batch_size,
            "batches": batches,
        },
        "reference": {
            "files": len(reference),
            "elapsed_seconds": reference_seconds,
        },
        "runs": [
            {
                "abort_after_batches": run.abort_after_batches,
                "aborted": run.aborted,
                "crash_seconds": run.crash_seconds,
                "resume_seconds": run.resume_seconds,
                "resumed_from": run.resumed_from,
                "matches_reference": run.matches_reference,
                "mismatched_paths": run.mismatched_paths,
            }
            for run in runs
        ],
        "summary": summary,
    }
    report_path = session_dir / "crash_benchmark.json"
    report_path.write_text(json.dumps(report, indent=2, sort_keys=True), encoding="utf-8")

    print("\n=== Crash Benchmark Summary ===")
    print(f"files: {len(reference)} batches: {batches}")
    print(f"verdict: {summary['verdict']}")
    print(f"failed_boundaries: {summary['failures']}")
    print(f"report_json: {report_path}")
    return 0 if summary["verdict"] == "pass" else 1


if __name__ == "__main__":
    sys.exit(main())
