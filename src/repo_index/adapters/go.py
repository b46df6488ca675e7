"""Lexical Go rules."""

from __future__ import annotations

import re

from repo_index.adapters.base import (
    ClassInfo,
    CommentInfo,
    ExportInfo,
    FunctionInfo,
    ImportInfo,
    LineIndex,
    closing_paren,
    comments_from_text,
    parameter_names,
)
from repo_index.adapters.lexical import LexicalRules, mask_comments, mask_comments_and_strings

_IMPORT_SINGLE_RE = re.compile(
    r"^[ \t]*import[ \t]+(?:(?P<alias>[A-Za-z_]\w*|\.|_)[ \t]+)?\"(?P<module>[^\"\n]+)\"",
    re.MULTILINE,
)
_IMPORT_BLOCK_RE = re.compile(r"^[ \t]*import[ \t]*\((?P<body>[^)]*)\)", re.MULTILINE)
_IMPORT_SPEC_RE = re.compile(r"(?:(?P<alias>[A-Za-z_]\w*|\.|_)[ \t]+)?\"(?P<module>[^\"\n]+)\"")
_FUNC_RE = re.compile(
    r"^func[ \t]*(?P<receiver>\([^)]*\)[ \t]*)?(?P<name>[A-Za-z_]\w*)[ \t]*(?:\[[^\]]*\])?\(",
    re.MULTILINE,
)
_RETURN_RE = re.compile(r"[ \t]*(?P<ret>[^{\n]*?)[ \t]*\{")
_TYPE_RE = re.compile(
    r"^type[ \t]+(?P<name>[A-Za-z_]\w*)(?:\[[^\]]*\])?[ \t]+(?P<kind>struct|interface)\b",
    re.MULTILINE,
)
_DECL_RE = re.compile(
    r"^(?:type|var|const)[ \t]+(?P<name>[A-Za-z_]\w*)",
    re.MULTILINE,
)
_EMBEDDED_RE = re.compile(r"^[ \t]+\*?(?P<name>[A-Z][\w.]*)[ \t]*$", re.MULTILINE)


class GoRules:
    """Regex rule set for Go sources; exported means capitalized."""

    name = "go"
    languages = ("Go",)
    lexical_rules = LexicalRules(
        line_comment_prefixes=("//",),
        block_comment_pairs=(("/*", "*/"),),
        string_delimiters=('"', "`", "'"),
    )
    block_style = "braces"
    complexity_keywords = ("else if", "if", "for", "case", "select")

    def imports(self, text: str) -> list[ImportInfo]:
        source = mask_comments(text, self.lexical_rules)
        lines = LineIndex(source)
        found: list[tuple[int, ImportInfo]] = []
        for match in _IMPORT_SINGLE_RE.finditer(source):
            found.append((match.start(), _import_info(match, lines.line_of(match.start()))))
        for block in _IMPORT_BLOCK_RE.finditer(source):
            offset = block.start("body")
            for spec in _IMPORT_SPEC_RE.finditer(block.group("body")):
                position = offset + spec.start()
                found.append((position, _import_info(spec, lines.line_of(position))))
        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    def exports(self, text: str) -> list[ExportInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        found: list[tuple[int, ExportInfo]] = []
        for match in _FUNC_RE.finditer(masked):
            if match.group("name")[0].isupper():
                found.append(
                    (match.start(), ExportInfo(match.group("name"), lines.line_of(match.start())))
                )
        for match in _DECL_RE.finditer(masked):
            if match.group("name")[0].isupper():
                found.append(
                    (match.start(), ExportInfo(match.group("name"), lines.line_of(match.start())))
                )
        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    def functions(self, text: str) -> list[FunctionInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        output: list[FunctionInfo] = []
        for match in _FUNC_RE.finditer(masked):
            open_index = match.end() - 1
            close_index = closing_paren(masked, open_index)
            if close_index == -1:
                continue
            return_match = _RETURN_RE.match(masked, close_index + 1)
            return_type = return_match.group("ret").strip() if return_match else ""
            name = match.group("name")
            output.append(
                FunctionInfo(
                    name=name,
                    line=lines.line_of(match.start("name")),
                    parameters=parameter_names(masked[open_index + 1 : close_index], "leading"),
                    return_type=return_type or None,
                    is_exported=name[0].isupper(),
                )
            )
        return output

    def classes(self, text: str) -> list[ClassInfo]:
        """Structs and interfaces; the first embedded type is reported as ``extends``."""
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        output: list[ClassInfo] = []
        for match in _TYPE_RE.finditer(masked):
            body_start = masked.find("{", match.end())
            body_end = masked.find("\n}", body_start) if body_start != -1 else -1
            embedded: list[str] = []
            if body_start != -1 and body_end != -1:
                embedded = _EMBEDDED_RE.findall(masked[body_start + 1 : body_end])
            output.append(
                ClassInfo(
                    name=match.group("name"),
                    line=lines.line_of(match.start("name")),
                    extends=embedded[0] if embedded else None,
                    implements=tuple(embedded[1:]),
                )
            )
        return output

    def comments(self, text: str) -> list[CommentInfo]:
        return comments_from_text(text, self.lexical_rules)


def _import_info(match: re.Match[str], line: int) -> ImportInfo:
    alias = match.group("alias")
    return ImportInfo(
        module=match.group("module"),
        items=(alias,) if alias else (),
        line=line,
        kind="module",
    )
