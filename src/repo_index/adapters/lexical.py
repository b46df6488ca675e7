"""Deterministic lexical scanning helpers for regex-based rule sets."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class LexicalRules:
    """Configurable lexical markers used while masking non-code text."""

    line_comment_prefixes: tuple[str, ...] = ("//", "#")
    block_comment_pairs: tuple[tuple[str, str], ...] = (("/*", "*/"),)
    string_delimiters: tuple[str, ...] = ("'''", '"""', "'", '"', "`")
    escape_char: str = "\\"


@dataclass(slots=True, frozen=True)
class LexicalRegion:
    """Comment or string span; ``end`` is exclusive and excludes a trailing newline."""

    kind: str
    start: int
    end: int
    marker: str


@dataclass(slots=True, frozen=True)
class BraceBlock:
    """Matched brace block range with nesting depth."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int
    depth: int


@dataclass(slots=True, frozen=True)
class BraceScanResult:
    """Result of deterministic brace scanning."""

    blocks: tuple[BraceBlock, ...]
    unmatched_closing: int
    unclosed_opening: int


def scan_regions(text: str, rules: LexicalRules | None = None) -> list[LexicalRegion]:
    """Locate comment and string regions in one left-to-right pass."""
    active_rules = rules or LexicalRules()
    line_prefixes = _longest_first(active_rules.line_comment_prefixes)
    block_pairs = tuple(
        sorted(
            ((start, end) for start, end in active_rules.block_comment_pairs if start and end),
            key=lambda pair: len(pair[0]),
            reverse=True,
        )
    )
    string_delimiters = _longest_first(active_rules.string_delimiters)

    regions: list[LexicalRegion] = []
    length = len(text)
    index = 0
    while index < length:
        line_marker = _match_any(text, index, line_prefixes)
        if line_marker is not None:
            end = text.find("\n", index)
            end = length if end == -1 else end
            regions.append(LexicalRegion("line_comment", index, end, line_marker))
            index = end
            continue

        block_marker = _match_block_start(text, index, block_pairs)
        if block_marker is not None:
            start_marker, end_marker = block_marker
            close = text.find(end_marker, index + len(start_marker))
            end = length if close == -1 else close + len(end_marker)
            regions.append(LexicalRegion("block_comment", index, end, start_marker))
            index = end
            continue

        string_marker = _match_any(text, index, string_delimiters)
        if string_marker is not None:
            end = _string_end(text, index + len(string_marker), string_marker, active_rules)
            regions.append(LexicalRegion("string", index, end, string_marker))
            index = end
            continue

        index += 1
    return regions


def mask_regions(text: str, regions: list[LexicalRegion], kinds: frozenset[str]) -> str:
    """Blank the selected region kinds, keeping newlines and character offsets."""
    chars = list(text)
    for region in regions:
        if region.kind not in kinds:
            continue
        for offset in range(region.start, region.end):
            if chars[offset] != "\n":
                chars[offset] = " "
    return "".join(chars)


_ALL_KINDS = frozenset({"line_comment", "block_comment", "string"})
_COMMENT_KINDS = frozenset({"line_comment", "block_comment"})


def mask_comments_and_strings(text: str, rules: LexicalRules | None = None) -> str:
    """Mask comments and strings while preserving original line count and character offsets."""
    return mask_regions(text, scan_regions(text, rules), _ALL_KINDS)


def mask_comments(text: str, rules: LexicalRules | None = None) -> str:
    """Mask comments only, leaving string literals readable."""
    return mask_regions(text, scan_regions(text, rules), _COMMENT_KINDS)


def scan_brace_blocks(
    masked_text: str,
    open_char: str = "{",
    close_char: str = "}",
) -> BraceScanResult:
    """Scan brace block ranges with deterministic line and column accounting."""
    if len(open_char) != 1 or len(close_char) != 1:
        raise ValueError("open_char and close_char must be single characters.")

    stack: list[tuple[int, int, int]] = []
    blocks: list[BraceBlock] = []
    line = 1
    col = 1
    unmatched_closing = 0

    for char in masked_text:
        if char == open_char:
            stack.append((line, col, len(stack) + 1))
        elif char == close_char:
            if not stack:
                unmatched_closing += 1
            else:
                start_line, start_col, depth = stack.pop()
                blocks.append(BraceBlock(start_line, start_col, line, col, depth))

        if char == "\n":
            line += 1
            col = 1
        else:
            col += 1

    ordered = tuple(
        sorted(
            blocks,
            key=lambda item: (item.start_line, item.start_col, item.end_line, item.depth),
        )
    )
    return BraceScanResult(
        blocks=ordered,
        unmatched_closing=unmatched_closing,
        unclosed_opening=len(stack),
    )


def _longest_first(markers: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(sorted((marker for marker in markers if marker), key=len, reverse=True))


def _string_end(text: str, index: int, marker: str, rules: LexicalRules) -> int:
    length = len(text)
    while index < length:
        if text[index] == "\n" and len(marker) == 1 and marker != "`":
            return index
        if text.startswith(marker, index) and not _is_escaped(
            text, index, marker, rules.escape_char
        ):
            return index + len(marker)
        index += 1
    return length


def _match_any(text: str, index: int, markers: tuple[str, ...]) -> str | None:
    for marker in markers:
        if text.startswith(marker, index):
            return marker
    return None


def _match_block_start(
    text: str,
    index: int,
    pairs: tuple[tuple[str, str], ...],
) -> tuple[str, str] | None:
    for start, end in pairs:
        if text.startswith(start, index):
            return start, end
    return None


def _is_escaped(text: str, index: int, marker: str, escape_char: str) -> bool:
    if len(marker) > 1:
        return False
    backslashes = 0
    cursor = index - 1
    while cursor >= 0 and text[cursor] == escape_char:
        backslashes += 1
        cursor -= 1
    return backslashes % 2 == 1
