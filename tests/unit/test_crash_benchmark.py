from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path


def _load_benchmark_module():
    script_path = Path(__file__).resolve().parents[2] / "scripts" / "crash_benchmark.py"
    spec = importlib.util.spec_from_file_location("crash_benchmark", script_path)
    assert spec is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    loader = spec.loader
    assert loader is not None
    loader.exec_module(module)
    return module


def test_write_fixture_repo_creates_expected_shape(tmp_path: Path) -> None:
    module = _load_benchmark_module()
    profile = module.FixtureProfile(
        modules=4,
        functions_per_module=2,
        large_every=3,
        large_padding_lines=10,
    )

    paths = module.write_fixture_repo(tmp_path / "fixture", profile)

    assert paths == [f"src/module_{index:04d}.ts" for index in range(4)]
    first = (tmp_path / "fixture" / "src" / "module_0000.ts").read_text(encoding="utf-8")
    second = (tmp_path / "fixture" / "src" / "module_0001.ts").read_text(encoding="utf-8")
    assert "padding line 9 for module 0" in first
    assert "import { fn_0_0 } from './module_0000';" in second
    assert "export function fn_1_1" in second
    marker = json.loads((tmp_path / "fixture" / ".fixture_profile.json").read_text("utf-8"))
    assert marker["profile"]["modules"] == 4


def test_summarize_runs_flags_failed_boundaries() -> None:
    module = _load_benchmark_module()
    good = module.CrashRun(
        abort_after_batches=0,
        aborted=True,
        crash_seconds=0.1,
        resume_seconds=0.2,
        resumed_from="cp-1",
        matches_reference=True,
        mismatched_paths=[],
    )
    bad = module.CrashRun(
        abort_after_batches=1,
        aborted=True,
        crash_seconds=0.1,
        resume_seconds=0.4,
        resumed_from="cp-2",
        matches_reference=False,
        mismatched_paths=["src/module_0003.ts"],
    )

    assert module.summarize_runs([good])["verdict"] == "pass"
    summary = module.summarize_runs([good, bad])
    assert summary["verdict"] == "fail"
    assert summary["failures"] == [1]
    assert summary["resume_elapsed_seconds"]["max_seconds"] == 0.4
    assert module.summarize_runs([])["verdict"] == "fail"


def test_main_reports_pass_for_every_boundary(tmp_path: Path) -> None:
    module = _load_benchmark_module()
    out_dir = tmp_path / "bench"

    exit_code = module.main(["--out-dir", str(out_dir), "--modules", "5", "--batch-size", "2"])

    assert exit_code == 0
    reports = list(out_dir.glob("session-*/crash_benchmark.json"))
    assert len(reports) == 1
    report = json.loads(reports[0].read_text(encoding="utf-8"))
    assert report["protocol"]["batches"] == 3
    assert report["reference"]["files"] == 5
    assert [run["abort_after_batches"] for run in report["runs"]] == [0, 1, 2]
    assert all(run["matches_reference"] for run in report["runs"])
    assert report["summary"]["verdict"] == "pass"
