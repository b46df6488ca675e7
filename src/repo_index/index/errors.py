"""Index build and persistence errors."""

from __future__ import annotations


class IndexingError(Exception):
    """Base class for index build failures."""


class IndexBusyError(IndexingError):
    """Raised when another live builder owns the project's checkpoint."""

    def __init__(self, project_id: str, checkpoint_id: str, owner_pid: int | None) -> None:
        super().__init__(
            f"Project {project_id} is already being indexed "
            f"(checkpoint {checkpoint_id}, pid {owner_pid})."
        )
        self.project_id = project_id
        self.checkpoint_id = checkpoint_id
        self.owner_pid = owner_pid


class IndexingAborted(IndexingError):
    """Fatal termination of a run; the checkpoint is marked failed and kept for resume."""


class ChecksumMismatchError(IndexingError):
    """Stored checksum differs from the file on disk while verification is enabled."""

    def __init__(self, path: str, stored: str, current: str) -> None:
        super().__init__(
            f"Checksum mismatch for {path}: stored {stored[:12]}, current {current[:12]}."
        )
        self.path = path
        self.stored = stored
        self.current = current


class StoreError(IndexingError):
    """Persistence layer failure."""


class CheckpointConflictError(StoreError):
    """A second live checkpoint was requested for one project."""


class CheckpointOwnershipError(StoreError):
    """A checkpoint update was attempted without holding its owner token."""


class IndexSchemaUnsupportedError(StoreError):
    """Raised when the stored schema does not match the supported version."""

    def __init__(self, found: int, expected: int) -> None:
        super().__init__(f"Stored index schema {found} is unsupported; expected {expected}.")
        self.found = found
        self.expected = expected
