from __future__ import annotations

import os
from dataclasses import replace

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

NOW = "2026-01-01T00:00:00.000Z"
LATER = "2026-01-01T00:00:05.000Z"


def test_new_checkpoint_starts_scanning_and_owned() -> None:
    checkpoint = new_checkpoint("proj", batch_size=10, owner_token="tok", now=NOW)

    assert checkpoint.stage == "scanning"
    assert checkpoint.is_live
    assert checkpoint.processed_files == ()
    assert checkpoint.failed_files == ()
    assert checkpoint.owner_token == "tok"
    assert checkpoint.owner_pid == os.getpid()
    assert checkpoint.start_time == checkpoint.last_update_time == NOW
    assert len(checkpoint.id) == 32


def test_record_outcomes_keeps_lists_ordered_and_disjoint() -> None:
    checkpoint = new_checkpoint("proj", 10, "tok", NOW)

    step = record_outcomes(checkpoint, processed=["a", "b"], failed=["c", "d"], now=LATER)
    step = record_outcomes(step, processed=["c", "a"], failed=["b", "d", "e"], now=LATER)

    assert step.stage == "analyzing"
    assert step.processed_files == ("a", "b", "c")
    assert step.failed_files == ("d", "e")
    assert step.last_processed_file == "a"
    assert step.last_update_time == LATER
    assert checkpoint.processed_files == ()


def test_batch_failure_counts_retry_and_message() -> None:
    checkpoint = new_checkpoint("proj", 10, "tok", NOW)

    failed = record_batch_failure(checkpoint, ["x", "y"], "disk full", LATER)
    failed_again = record_batch_failure(failed, ["x"], "disk still full", LATER)

    assert failed_again.failed_files == ("x", "y")
    assert failed_again.retry_count == 2
    assert failed_again.error_message == "disk still full"


def test_terminal_transitions_and_percentage() -> None:
    checkpoint = replace(new_checkpoint("proj", 10, "tok", NOW), total_files=8)
    progressed = record_outcomes(checkpoint, processed=["a", "b"], failed=["c"], now=LATER)

    assert status_percentage(checkpoint) == 0.0
    assert status_percentage(progressed) == 37.5

    complete = mark_complete(progressed, LATER)
    assert complete.stage == "complete"
    assert complete.completed_at == LATER
    assert not complete.is_live
    assert status_percentage(complete) == 100.0

    failed = mark_failed(progressed, "boom", LATER)
    assert failed.stage == "failed"
    assert failed.error_message == "boom"
    assert not failed.is_live
    assert status_percentage(replace(checkpoint, total_files=0)) == 0.0


def test_owner_running_tracks_registered_tokens() -> None:
    token = new_owner_token()
    checkpoint = new_checkpoint("proj", 10, token, NOW)

    assert not is_owner_running(checkpoint)
    register_active(token)
    try:
        assert is_owner_running(checkpoint)
    finally:
        release_active(token)
    assert not is_owner_running(checkpoint)
    assert not is_owner_running(replace(checkpoint, owner_token=None))


def test_owner_running_checks_other_process_pid() -> None:
    checkpoint = new_checkpoint("proj", 10, "tok", NOW)

    assert is_owner_running(replace(checkpoint, owner_pid=os.getppid()))
    assert not is_owner_running(replace(checkpoint, owner_pid=0))
