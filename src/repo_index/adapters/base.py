"""Core language rule protocol and extracted fact types."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Protocol

from repo_index.adapters.lexical import LexicalRules, scan_regions


@dataclass(slots=True, frozen=True)
class ImportInfo:
    """One import statement or dynamic import expression."""

    module: str
    items: tuple[str, ...]
    line: int
    is_dynamic: bool = False
    kind: str = "static"


@dataclass(slots=True, frozen=True)
class ExportInfo:
    """One exported name; ``type`` is default, named, or all."""

    name: str
    line: int
    type: str = "named"


@dataclass(slots=True, frozen=True)
class FunctionInfo:
    """Function or arrow-function declaration."""

    name: str
    line: int
    parameters: tuple[str, ...]
    return_type: str | None = None
    is_async: bool = False
    is_exported: bool = False


@dataclass(slots=True, frozen=True)
class ClassInfo:
    """Class-like declaration with its declared supertypes."""

    name: str
    line: int
    extends: str | None = None
    implements: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class CommentInfo:
    """Comment text; ``type`` is single, multi, or doc."""

    line: int
    text: str
    type: str = "single"


class RulesContractError(ValueError):
    """Raised when a rule set emits facts that violate the shared contract."""


class LanguageRules(Protocol):
    """Protocol implemented by per-language extraction rule sets."""

    name: str
    languages: tuple[str, ...]
    lexical_rules: LexicalRules
    block_style: str
    complexity_keywords: tuple[str, ...]

    def imports(self, text: str) -> list[ImportInfo]:
        """Return imports in source order."""

    def exports(self, text: str) -> list[ExportInfo]:
        """Return exported names in source order."""

    def functions(self, text: str) -> list[FunctionInfo]:
        """Return function declarations in source order."""

    def classes(self, text: str) -> list[ClassInfo]:
        """Return class declarations in source order."""

    def comments(self, text: str) -> list[CommentInfo]:
        """Return comments in source order."""


class LineIndex:
    """Offset to 1-based line lookup for one text."""

    def __init__(self, text: str) -> None:
        self._starts = [0]
        for index, char in enumerate(text):
            if char == "\n":
                self._starts.append(index + 1)

    def line_of(self, offset: int) -> int:
        return bisect.bisect_right(self._starts, offset)


_OPENERS = {"(": ")", "[": "]", "{": "}", "<": ">"}
_CLOSERS = {value: key for key, value in _OPENERS.items()}


def closing_paren(text: str, open_index: int) -> int:
    """Return the index of the ``)`` matching ``text[open_index]``, or -1."""
    depth = 0
    for index in range(open_index, len(text)):
        char = text[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
    return -1


def split_top_level(raw: str, separator: str = ",") -> list[str]:
    """Split on ``separator`` outside of brackets, so ``Dict[str, int]`` stays whole."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    previous = ""
    for char in raw:
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS and not (char == ">" and previous == "="):
            depth = max(depth - 1, 0)
        if char == separator and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
        previous = char
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def parameter_names(raw: str, style: str = "colon") -> tuple[str, ...]:
    """Reduce a raw parameter list to bare names.

    ``colon`` drops ``: Type`` and ``= default`` (Python, TypeScript), ``leading``
    keeps the first token (Go), ``trailing`` keeps the last token (Java).
    """
    names: list[str] = []
    for part in split_top_level(raw):
        if style == "colon":
            name = split_top_level(part, "=")[0] if "=" in part else part
            name = name.split(":", 1)[0]
        elif style == "leading":
            name = part.split()[0]
        else:
            name = split_top_level(part, "=")[0].split()[-1]
        name = name.strip().lstrip("*&.").strip("?")
        if name and name not in {"/", "*"}:
            names.append(name)
    return tuple(names)


def comments_from_text(
    text: str,
    rules: LexicalRules,
    *,
    docstring_markers: tuple[str, ...] = (),
) -> list[CommentInfo]:
    """Collect comments (and statement-level docstrings) in source order."""
    lines = LineIndex(text)
    output: list[CommentInfo] = []
    for region in scan_regions(text, rules):
        raw = text[region.start : region.end]
        if region.kind == "line_comment":
            body = raw[len(region.marker) :].strip()
            kind = "single"
        elif region.kind == "block_comment":
            kind = "doc" if raw.startswith("/**") else "multi"
            body = _strip_block_comment(raw, region.marker)
        elif region.marker in docstring_markers and _starts_statement(text, region.start):
            kind = "doc"
            body = raw[len(region.marker) : len(raw) - len(region.marker)].strip()
        else:
            continue
        if body:
            output.append(CommentInfo(line=lines.line_of(region.start), text=body, type=kind))
    return output


def _strip_block_comment(raw: str, marker: str) -> str:
    inner = raw[len(marker) :]
    if inner.endswith("*/"):
        inner = inner[:-2]
    cleaned = [line.strip().lstrip("*").strip() for line in inner.splitlines()]
    return "\n".join(line for line in cleaned if line)


def _starts_statement(text: str, offset: int) -> bool:
    line_start = text.rfind("\n", 0, offset) + 1
    return not text[line_start:offset].strip()


def fact_sort_key(item: ImportInfo | ExportInfo | FunctionInfo | ClassInfo | CommentInfo) -> int:
    return item.line


def validate_facts(
    items: list[ImportInfo] | list[ExportInfo] | list[FunctionInfo] | list[ClassInfo],
) -> None:
    """Reject facts with empty names or non-positive lines."""
    for item in items:
        if item.line < 1:
            raise RulesContractError(f"{type(item).__name__} line must be >= 1.")
        label = item.module if isinstance(item, ImportInfo) else item.name
        if not label.strip():
            raise RulesContractError(f"{type(item).__name__} name must be non-empty.")
