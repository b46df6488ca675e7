from __future__ import annotations

from repo_index.index import ChecksumMismatchError
from repo_index.logging import sanitize_error


def test_exception_is_reduced_to_type_and_message() -> None:
    error = ChecksumMismatchError("src/a.ts", "a" * 64, "b" * 64)

    payload = sanitize_error(error)

    assert payload == {
        "type": "ChecksumMismatchError",
        "message": "Checksum mismatch for src/a.ts: stored aaaaaaaaaaaa, current bbbbbbbbbbbb.",
    }


def test_long_messages_are_truncated() -> None:
    payload = sanitize_error("x" * 2000)

    assert payload["type"] == "Error"
    assert payload["message"] == "x" * 500 + "..."
