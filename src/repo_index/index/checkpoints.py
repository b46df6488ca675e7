"""Pure checkpoint state transitions and run ownership tracking."""

from __future__ import annotations

import os
import threading
import uuid
from collections.abc import Iterable
from dataclasses import replace

from repo_index.index.models import (
    STAGE_ANALYZING,
    STAGE_COMPLETE,
    STAGE_FAILED,
    STAGE_SCANNING,
    IndexCheckpoint,
)

_ACTIVE_TOKENS: set[str] = set()
_ACTIVE_LOCK = threading.Lock()


def new_checkpoint(
    project_id: str,
    batch_size: int,
    owner_token: str,
    now: str,
) -> IndexCheckpoint:
    return IndexCheckpoint(
        id=uuid.uuid4().hex,
        project_id=project_id,
        stage=STAGE_SCANNING,
        processed_files=(),
        failed_files=(),
        last_processed_file=None,
        retry_count=0,
        error_message=None,
        total_files=0,
        batch_size=batch_size,
        owner_token=owner_token,
        owner_pid=os.getpid(),
        start_time=now,
        last_update_time=now,
    )


def record_outcomes(
    checkpoint: IndexCheckpoint,
    *,
    processed: Iterable[str] = (),
    failed: Iterable[str] = (),
    now: str,
) -> IndexCheckpoint:
    """Advance processed/failed lists keeping them ordered, duplicate-free and disjoint.

    A path reported processed leaves ``failed_files``; a path reported failed is
    only added when it is not already processed.
    """
    processed_list = list(checkpoint.processed_files)
    processed_set = set(processed_list)
    failed_list = list(checkpoint.failed_files)
    failed_set = set(failed_list)
    last = checkpoint.last_processed_file

    for path in processed:
        if path in failed_set:
            failed_set.discard(path)
            failed_list.remove(path)
        if path not in processed_set:
            processed_set.add(path)
            processed_list.append(path)
        last = path
    for path in failed:
        if path in processed_set or path in failed_set:
            continue
        failed_set.add(path)
        failed_list.append(path)

    return replace(
        checkpoint,
        stage=STAGE_ANALYZING,
        processed_files=tuple(processed_list),
        failed_files=tuple(failed_list),
        last_processed_file=last,
        last_update_time=now,
    )


def record_batch_failure(
    checkpoint: IndexCheckpoint,
    paths: Iterable[str],
    message: str,
    now: str,
) -> IndexCheckpoint:
    failed = record_outcomes(checkpoint, failed=paths, now=now)
    return replace(failed, retry_count=checkpoint.retry_count + 1, error_message=message)


def mark_complete(checkpoint: IndexCheckpoint, now: str) -> IndexCheckpoint:
    return replace(checkpoint, stage=STAGE_COMPLETE, last_update_time=now, completed_at=now)


def mark_failed(checkpoint: IndexCheckpoint, message: str, now: str) -> IndexCheckpoint:
    return replace(checkpoint, stage=STAGE_FAILED, error_message=message, last_update_time=now)


def status_percentage(checkpoint: IndexCheckpoint) -> float:
    """Share of discovered files that reached a terminal outcome, 0-100."""
    if checkpoint.stage == STAGE_COMPLETE:
        return 100.0
    if checkpoint.total_files <= 0:
        return 0.0
    done = len(checkpoint.processed_files) + len(checkpoint.failed_files)
    return round(min(done / checkpoint.total_files, 1.0) * 100, 2)


def new_owner_token() -> str:
    return uuid.uuid4().hex


def register_active(token: str) -> None:
    with _ACTIVE_LOCK:
        _ACTIVE_TOKENS.add(token)


def release_active(token: str) -> None:
    with _ACTIVE_LOCK:
        _ACTIVE_TOKENS.discard(token)


def is_owner_running(checkpoint: IndexCheckpoint) -> bool:
    """True when a live builder still holds the checkpoint.

    Same process: the owner token is registered by a running build. Other
    process: the recorded pid is alive.
    """
    if checkpoint.owner_token is None:
        return False
    if checkpoint.owner_pid == os.getpid() or checkpoint.owner_pid is None:
        with _ACTIVE_LOCK:
            return checkpoint.owner_token in _ACTIVE_TOKENS
    return _pid_alive(checkpoint.owner_pid)


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True
