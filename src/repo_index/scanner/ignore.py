"""Glob-style ignore matching and .gitignore loading."""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path

# Directory names skipped in every scan regardless of caller patterns.
ALWAYS_IGNORED_NAMES = frozenset(
    {"node_modules", ".git", ".next", "dist", "build", "__pycache__", ".venv", ".repo_index"}
)

DEFAULT_GITIGNORE_PATTERNS: tuple[str, ...] = (
    "node_modules",
    ".git",
    ".next",
    "dist",
    "build",
    ".cache",
    "coverage",
    ".vscode",
    ".idea",
    "*.log",
    "tmp",
    "temp",
)


class IgnoreMatcher:
    """Compiled set of glob patterns matched against names and relative paths."""

    def __init__(self, patterns: tuple[str, ...] | list[str]) -> None:
        normalized = [pattern.strip().rstrip("/") for pattern in patterns]
        self._patterns = tuple(pattern for pattern in normalized if pattern)
        self._compiled = tuple(re.compile(fnmatch.translate(item)) for item in self._patterns)

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    def matches(self, relative_path: str, name: str) -> bool:
        """Return True when the entry name or its repo-relative path matches."""
        anchored = f"/{relative_path}"
        for compiled in self._compiled:
            if compiled.match(name) or compiled.match(relative_path) or compiled.match(anchored):
                return True
        return False


def is_always_ignored(name: str) -> bool:
    return name in ALWAYS_IGNORED_NAMES


def load_gitignore_patterns(root: Path) -> tuple[str, ...]:
    """Return default patterns plus simple entries from ``root/.gitignore``.

    Negations and comments are dropped; anchored entries lose their leading slash.
    """
    patterns = list(DEFAULT_GITIGNORE_PATTERNS)
    gitignore = root / ".gitignore"
    try:
        text = gitignore.read_text(encoding="utf-8")
    except OSError:
        return tuple(patterns)
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        line = line.lstrip("/").rstrip("/")
        if line and line not in patterns:
            patterns.append(line)
    return tuple(patterns)
