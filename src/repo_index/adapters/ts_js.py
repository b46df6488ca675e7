"""Lexical TypeScript/JavaScript rules."""

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
    split_top_level,
)
from repo_index.adapters.lexical import LexicalRules, mask_comments, mask_comments_and_strings

_IDENT = r"[A-Za-z_$][A-Za-z0-9_$]*"

_IMPORT_FROM_RE = re.compile(
    r"(?<![\w$.])import\s+(?:type\s+)?(?P<clause>[\w$*{}\s,]+?)\s+from\s+"
    r"(?P<quote>['\"])(?P<module>[^'\"\n]+)(?P=quote)"
)
_IMPORT_SIDE_EFFECT_RE = re.compile(
    r"(?<![\w$.])import\s+(?P<quote>['\"])(?P<module>[^'\"\n]+)(?P=quote)"
)
_DYNAMIC_IMPORT_RE = re.compile(
    r"(?<![\w$.])import\s*\(\s*(?P<quote>['\"`])(?P<module>[^'\"`\n]+)(?P=quote)\s*\)"
)
_REQUIRE_RE = re.compile(
    r"(?<![\w$.])require\s*\(\s*(?P<quote>['\"])(?P<module>[^'\"\n]+)(?P=quote)\s*\)"
)
_REEXPORT_RE = re.compile(
    r"(?<![\w$.])export\s+(?:type\s+)?(?P<clause>\*(?:\s+as\s+" + _IDENT + r")?|\{[^}]*\})\s*"
    r"from\s+(?P<quote>['\"])(?P<module>[^'\"\n]+)(?P=quote)"
)

_EXPORT_DEFAULT_RE = re.compile(
    r"(?<![\w$.])export\s+default\s+(?:async\s+)?(?:function\s*\*?|class)?\s*(?P<name>"
    + _IDENT
    + r")?"
)
_EXPORT_DECL_RE = re.compile(
    r"(?<![\w$.])export\s+(?:declare\s+)?(?:abstract\s+)?(?:async\s+)?"
    r"(?:function\s*\*?|class|const|let|var|interface|type|enum|namespace)\s+(?P<name>"
    + _IDENT
    + r")"
)
_EXPORT_BLOCK_RE = re.compile(r"(?<![\w$.])export\s+(?:type\s+)?\{(?P<names>[^}]*)\}")
_EXPORT_ALL_RE = re.compile(r"(?<![\w$.])export\s+\*\s*(?:as\s+(?P<name>" + _IDENT + r")\s*)?from")
_MODULE_EXPORTS_RE = re.compile(r"(?<![\w$.])module\.exports\s*=")
_COMMONJS_EXPORT_RE = re.compile(r"(?<![\w$.])(?:module\.)?exports\.(?P<name>" + _IDENT + r")\s*=")

_FUNCTION_RE = re.compile(
    r"(?P<export>(?<![\w$.])export\s+(?:default\s+)?)?(?P<async>(?<![\w$.])async\s+)?"
    r"(?<![\w$.])function\s*\*?\s*(?P<name>" + _IDENT + r")\s*(?:<[^>(]*>)?\s*\("
)
_ARROW_RE = re.compile(
    r"(?P<export>(?<![\w$.])export\s+)?(?<![\w$.])(?:const|let|var)\s+(?P<name>"
    + _IDENT
    + r")\s*(?::[^=;]+)?=\s*(?P<async>async\s+)?(?:<[^>(]*>\s*)?"
    r"(?:(?P<open>\()|(?P<single>" + _IDENT + r")\s*=>)"
)
_ARROW_TAIL_RE = re.compile(r"\s*(?::\s*(?P<ret>[^=;{]+?))?\s*=>")
_RETURN_TYPE_RE = re.compile(r"\s*:\s*(?P<ret>[^{;]+?)\s*(?:\{|;|$)", re.MULTILINE)

_CLASS_RE = re.compile(
    r"(?<![\w$.])class\s+(?P<name>" + _IDENT + r")\s*(?:<[^>{]*>)?"
    r"(?:\s+extends\s+(?P<extends>[\w$.]+)(?:\s*<[^>{]*>)?)?"
    r"(?:\s+implements\s+(?P<implements>[^{]+))?\s*\{"
)


class TypeScriptJavaScriptRules:
    """Regex rule set for TypeScript and JavaScript sources."""

    name = "ts_js"
    languages = ("TypeScript", "JavaScript")
    lexical_rules = LexicalRules(
        line_comment_prefixes=("//",),
        block_comment_pairs=(("/*", "*/"),),
        string_delimiters=("'", '"', "`"),
    )
    block_style = "braces"
    complexity_keywords = ("else if", "if", "for", "while", "case", "catch")

    def imports(self, text: str) -> list[ImportInfo]:
        """Extract ES module, re-export, require and dynamic imports."""
        source = mask_comments(text, self.lexical_rules)
        lines = LineIndex(source)
        found: list[tuple[int, ImportInfo]] = []

        for match in _IMPORT_FROM_RE.finditer(source):
            items, kind = _import_clause_items(match.group("clause"))
            found.append(
                (
                    match.start(),
                    ImportInfo(
                        module=match.group("module"),
                        items=items,
                        line=lines.line_of(match.start()),
                        kind=kind,
                    ),
                )
            )
        for match in _IMPORT_SIDE_EFFECT_RE.finditer(source):
            found.append(
                (
                    match.start(),
                    ImportInfo(
                        module=match.group("module"),
                        items=(),
                        line=lines.line_of(match.start()),
                        kind="side_effect",
                    ),
                )
            )
        for match in _REEXPORT_RE.finditer(source):
            clause = match.group("clause")
            items = ("*",) if clause.startswith("*") else _brace_names(clause, original=True)
            found.append(
                (
                    match.start(),
                    ImportInfo(
                        module=match.group("module"),
                        items=items,
                        line=lines.line_of(match.start()),
                        kind="reexport",
                    ),
                )
            )
        for pattern, kind, dynamic in (
            (_DYNAMIC_IMPORT_RE, "dynamic", True),
            (_REQUIRE_RE, "require", False),
        ):
            for match in pattern.finditer(source):
                found.append(
                    (
                        match.start(),
                        ImportInfo(
                            module=match.group("module"),
                            items=(),
                            line=lines.line_of(match.start()),
                            is_dynamic=dynamic,
                            kind=kind,
                        ),
                    )
                )
        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    def exports(self, text: str) -> list[ExportInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        found: list[tuple[int, ExportInfo]] = []

        for match in _EXPORT_DEFAULT_RE.finditer(masked):
            found.append(
                (
                    match.start(),
                    ExportInfo(
                        name=match.group("name") or "default",
                        line=lines.line_of(match.start()),
                        type="default",
                    ),
                )
            )
        for match in _EXPORT_DECL_RE.finditer(masked):
            found.append(
                (
                    match.start(),
                    ExportInfo(name=match.group("name"), line=lines.line_of(match.start())),
                )
            )
        for match in _EXPORT_BLOCK_RE.finditer(masked):
            line = lines.line_of(match.start())
            for name in _brace_names(f"{{{match.group('names')}}}", original=False):
                found.append(
                    (
                        match.start(),
                        ExportInfo(
                            name=name,
                            line=line,
                            type="default" if name == "default" else "named",
                        ),
                    )
                )
        for match in _EXPORT_ALL_RE.finditer(masked):
            found.append(
                (
                    match.start(),
                    ExportInfo(
                        name=match.group("name") or "*",
                        line=lines.line_of(match.start()),
                        type="all",
                    ),
                )
            )
        for match in _MODULE_EXPORTS_RE.finditer(masked):
            found.append(
                (
                    match.start(),
                    ExportInfo(name="default", line=lines.line_of(match.start()), type="default"),
                )
            )
        for match in _COMMONJS_EXPORT_RE.finditer(masked):
            found.append(
                (
                    match.start(),
                    ExportInfo(name=match.group("name"), line=lines.line_of(match.start())),
                )
            )
        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    def functions(self, text: str) -> list[FunctionInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        found: list[tuple[int, FunctionInfo]] = []

        for match in _FUNCTION_RE.finditer(masked):
            open_index = match.end() - 1
            close_index = closing_paren(masked, open_index)
            if close_index == -1:
                continue
            return_match = _RETURN_TYPE_RE.match(masked, close_index + 1)
            found.append(
                (
                    match.start("name"),
                    FunctionInfo(
                        name=match.group("name"),
                        line=lines.line_of(match.start("name")),
                        parameters=parameter_names(masked[open_index + 1 : close_index]),
                        return_type=_clean_type(
                            return_match.group("ret") if return_match else None
                        ),
                        is_async=match.group("async") is not None,
                        is_exported=match.group("export") is not None,
                    ),
                )
            )

        for match in _ARROW_RE.finditer(masked):
            if match.group("single") is not None:
                parameters: tuple[str, ...] = (match.group("single"),)
                return_type = None
            else:
                open_index = match.start("open")
                close_index = closing_paren(masked, open_index)
                if close_index == -1:
                    continue
                tail = _ARROW_TAIL_RE.match(masked, close_index + 1)
                if tail is None:
                    continue
                parameters = parameter_names(masked[open_index + 1 : close_index])
                return_type = _clean_type(tail.group("ret"))
            found.append(
                (
                    match.start("name"),
                    FunctionInfo(
                        name=match.group("name"),
                        line=lines.line_of(match.start("name")),
                        parameters=parameters,
                        return_type=return_type,
                        is_async=match.group("async") is not None,
                        is_exported=match.group("export") is not None,
                    ),
                )
            )
        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    def classes(self, text: str) -> list[ClassInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        output: list[ClassInfo] = []
        for match in _CLASS_RE.finditer(masked):
            implements = match.group("implements")
            output.append(
                ClassInfo(
                    name=match.group("name"),
                    line=lines.line_of(match.start("name")),
                    extends=match.group("extends"),
                    implements=tuple(split_top_level(implements)) if implements else (),
                )
            )
        return output

    def comments(self, text: str) -> list[CommentInfo]:
        return comments_from_text(text, self.lexical_rules)


def _import_clause_items(clause: str) -> tuple[tuple[str, ...], str]:
    """Return imported names and the import kind for an ``import <clause> from`` form."""
    compact = " ".join(clause.split())
    items: list[str] = []
    kind = "default"
    brace_start = compact.find("{")
    if brace_start != -1:
        items.extend(_brace_names(compact[brace_start:], original=True))
        compact = compact[:brace_start]
        kind = "named"
    for part in (piece.strip() for piece in compact.split(",")):
        if not part:
            continue
        if part.startswith("*"):
            items.insert(0, "*")
            kind = "namespace"
        else:
            items.insert(0, part)
    return tuple(items), kind


def _brace_names(block: str, *, original: bool) -> tuple[str, ...]:
    """Names from ``{ a, b as c }``; ``original`` picks ``b`` over its alias ``c``."""
    inner = block.strip().lstrip("{").rstrip("}")
    names: list[str] = []
    for part in inner.split(","):
        piece = part.strip()
        if piece.startswith("type "):
            piece = piece[5:].strip()
        if not piece:
            continue
        if " as " in piece:
            source, alias = (item.strip() for item in piece.split(" as ", 1))
            piece = source if original else alias
        names.append(piece)
    return tuple(names)


def _clean_type(value: str | None) -> str | None:
    if value is None:
        return None
    compact = " ".join(value.split())
    return compact or None
