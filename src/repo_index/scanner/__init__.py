"""Recursive source tree scanning."""

from .ignore import DEFAULT_GITIGNORE_PATTERNS, IgnoreMatcher, load_gitignore_patterns
from .languages import UNKNOWN_LANGUAGE, detect_language, is_binary
from .models import (
    DirectoryMetadata,
    FileMetadata,
    ScanError,
    ScanOptions,
    ScanProgress,
    ScanResult,
    ScanStats,
)
from .scanner import FileScanner

__all__ = [
    "DEFAULT_GITIGNORE_PATTERNS",
    "DirectoryMetadata",
    "FileMetadata",
    "FileScanner",
    "IgnoreMatcher",
    "ScanError",
    "ScanOptions",
    "ScanProgress",
    "ScanResult",
    "ScanStats",
    "UNKNOWN_LANGUAGE",
    "detect_language",
    "is_binary",
    "load_gitignore_patterns",
]
