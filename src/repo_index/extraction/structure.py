"""Control-flow block layout and cyclomatic complexity over masked text."""

from __future__ import annotations

import re
from functools import lru_cache

from repo_index.adapters.lexical import scan_brace_blocks
from repo_index.extraction.models import CodeStructure, StructureBlock

_BRACE_KEYWORD_RE = re.compile(
    r"^\s*(?P<keyword>else\s+if|if|for|while|do|try|catch|finally|switch|else)\b"
)
_BRACE_BLOCK_TYPES = {
    "if": "if",
    "else if": "if",
    "else": "if",
    "for": "for",
    "while": "while",
    "do": "while",
    "try": "try",
    "catch": "try",
    "finally": "try",
    "switch": "switch",
}
_INDENT_BLOCK_TYPES: dict[str, str | None] = {
    "if": "if",
    "elif": "if",
    "else": "if",
    "for": "for",
    "while": "while",
    "try": "try",
    "except": "try",
    "finally": "try",
    "with": "with",
    "match": "switch",
    "case": None,
    "def": None,
    "class": None,
}
_LEADING_WORD_RE = re.compile(r"(?:async\s+)?(?P<word>[A-Za-z_]+)")


def analyze_structure(
    masked_text: str,
    *,
    block_style: str,
    complexity_keywords: tuple[str, ...],
) -> CodeStructure:
    """Derive blocks, complexity and nesting from comment- and string-masked text."""
    if block_style == "indent":
        blocks, max_depth = _indent_blocks(masked_text)
    else:
        blocks, max_depth = _brace_blocks(masked_text)
    return CodeStructure(
        blocks=tuple(blocks),
        complexity=cyclomatic_complexity(masked_text, complexity_keywords),
        max_nesting_depth=max_depth,
    )


def cyclomatic_complexity(masked_text: str, keywords: tuple[str, ...]) -> int:
    """Return ``1 + number of branch keywords``."""
    if not keywords:
        return 1
    return len(_keyword_pattern(keywords).findall(masked_text)) + 1


@lru_cache(maxsize=16)
def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern[str]:
    ordered = sorted(keywords, key=len, reverse=True)
    alternatives = "|".join(re.escape(item).replace(r"\ ", r"\s+") for item in ordered)
    return re.compile(rf"\b(?:{alternatives})\b")


def _brace_blocks(masked_text: str) -> tuple[list[StructureBlock], int]:
    lines = masked_text.splitlines()
    scan = scan_brace_blocks(masked_text)
    max_depth = max((block.depth for block in scan.blocks), default=0)
    output: list[StructureBlock] = []
    for block in scan.blocks:
        header = _block_header(lines, block.start_line, block.start_col)
        match = _BRACE_KEYWORD_RE.match(header)
        if match is None:
            continue
        keyword = " ".join(match.group("keyword").split())
        output.append(
            StructureBlock(
                type=_BRACE_BLOCK_TYPES[keyword],
                start_line=block.start_line,
                end_line=block.end_line,
                depth=block.depth,
            )
        )
    return output, max_depth


def _block_header(lines: list[str], line_number: int, column: int) -> str:
    """Text introducing a brace: same line before it, else the previous non-blank line."""
    prefix = lines[line_number - 1][: column - 1]
    segment = _after_last_brace(prefix)
    if segment.strip():
        return segment
    cursor = line_number - 2
    while cursor >= 0:
        candidate = _after_last_brace(lines[cursor])
        if candidate.strip():
            return candidate
        if lines[cursor].strip():
            return ""
        cursor -= 1
    return ""


def _after_last_brace(text: str) -> str:
    cut = max(text.rfind("{"), text.rfind("}"))
    return text[cut + 1 :]


def _indent_blocks(masked_text: str) -> tuple[list[StructureBlock], int]:
    stack: list[tuple[int, str | None, int, int]] = []
    output: list[StructureBlock] = []
    max_depth = 0
    last_code_line = 0

    def close(entry: tuple[int, str | None, int, int], end_line: int) -> None:
        _, block_type, start_line, depth = entry
        if block_type is not None:
            output.append(StructureBlock(block_type, start_line, max(end_line, start_line), depth))

    for line_number, raw_line in enumerate(masked_text.splitlines(), start=1):
        line = raw_line.expandtabs(4)
        stripped = line.strip()
        if not stripped:
            continue
        indent = len(line) - len(line.lstrip(" "))
        while stack and indent <= stack[-1][0]:
            close(stack.pop(), last_code_line)
        if stripped.endswith(":"):
            word_match = _LEADING_WORD_RE.match(stripped)
            word = word_match.group("word") if word_match else ""
            if word in _INDENT_BLOCK_TYPES:
                depth = len(stack) + 1
                stack.append((indent, _INDENT_BLOCK_TYPES[word], line_number, depth))
                max_depth = max(max_depth, depth)
        last_code_line = line_number

    while stack:
        close(stack.pop(), last_code_line)
    output.sort(key=lambda block: (block.start_line, block.depth))
    return output, max_depth
