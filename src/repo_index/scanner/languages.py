"""Extension tables for language classification and binary detection."""

from __future__ import annotations

from pathlib import Path

UNKNOWN_LANGUAGE = "Unknown"

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".mts": "TypeScript",
    ".cts": "TypeScript",
    ".py": "Python",
    ".pyi": "Python",
    ".java": "Java",
    ".kt": "Kotlin",
    ".scala": "Scala",
    ".go": "Go",
    ".rs": "Rust",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".hpp": "C++",
    ".cs": "C#",
    ".php": "PHP",
    ".rb": "Ruby",
    ".swift": "Swift",
    ".m": "Objective-C",
    ".sh": "Shell",
    ".bash": "Shell",
    ".zsh": "Shell",
    ".fish": "Shell",
    ".ps1": "PowerShell",
    ".sql": "SQL",
    ".html": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
    ".sass": "Sass",
    ".less": "Less",
    ".json": "JSON",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".xml": "XML",
    ".toml": "TOML",
    ".ini": "INI",
    ".conf": "Config",
    ".md": "Markdown",
    ".rst": "reStructuredText",
    ".txt": "Text",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".astro": "Astro",
}

BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".svg", ".webp",
        ".mp4", ".avi", ".mov", ".wmv", ".flv", ".mkv",
        ".mp3", ".wav", ".ogg", ".flac", ".aac",
        ".zip", ".tar", ".gz", ".7z", ".rar",
        ".exe", ".dll", ".so", ".dylib",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".class", ".jar", ".war", ".ear",
        ".pyc", ".pyo", ".sqlite3", ".db",
    }
)  # fmt: skip

# Files at or above this size are never probed and count as text.
BINARY_PROBE_SIZE_LIMIT = 10 * 1024
BINARY_PROBE_BYTES = 1024


def detect_language(path: str | Path) -> str:
    """Return the display language for a path, or ``Unknown``."""
    suffix = Path(path).suffix.lower()
    return LANGUAGE_BY_EXTENSION.get(suffix, UNKNOWN_LANGUAGE)


def is_binary(path: Path, size: int) -> bool:
    """Classify by extension, then by a NUL probe for small files."""
    if path.suffix.lower() in BINARY_EXTENSIONS:
        return True
    if size >= BINARY_PROBE_SIZE_LIMIT:
        return False
    try:
        with path.open("rb") as handle:
            sample = handle.read(BINARY_PROBE_BYTES)
    except OSError:
        return True
    return b"\x00" in sample
