"""Lexical Java rules."""

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
from repo_index.adapters.lexical import LexicalRules, mask_comments_and_strings

_IMPORT_RE = re.compile(
    r"^[ \t]*import[ \t]+(?P<static>static[ \t]+)?(?P<path>[\w.]+?)(?P<wildcard>\.\*)?[ \t]*;",
    re.MULTILINE,
)
_PUBLIC_TYPE_RE = re.compile(
    r"\bpublic\s+(?:(?:abstract|final|static|sealed|non-sealed|strictfp)\s+)*"
    r"(?:class|interface|enum|record|@interface)\s+(?P<name>[A-Za-z_$][\w$]*)"
)
_CLASS_RE = re.compile(
    r"\b(?:class|interface|enum|record)\s+(?P<name>[A-Za-z_$][\w$]*)\s*(?:<[^{]*?>)?\s*"
    r"(?:\([^)]*\)\s*)?"
    r"(?:extends\s+(?P<extends>[^{]+?)\s*)?"
    r"(?:implements\s+(?P<implements>[^{]+?)\s*)?\{"
)
_METHOD_RE = re.compile(
    r"^[ \t]*(?P<modifiers>(?:(?:public|private|protected|static|final|abstract|synchronized"
    r"|native|default|strictfp)\s+)*)(?:<[^>]+>\s+)?(?P<ret>[\w$.<>\[\], ?]+?)\s+"
    r"(?P<name>[A-Za-z_$][\w$]*)\s*\(",
    re.MULTILINE,
)
_MODIFIERS = frozenset({"public", "private", "protected"})
_NOT_METHODS = frozenset(
    {"if", "for", "while", "switch", "catch", "return", "new", "else", "throw", "synchronized"}
)


class JavaRules:
    """Regex rule set for Java sources; exported means public."""

    name = "java"
    languages = ("Java",)
    lexical_rules = LexicalRules(
        line_comment_prefixes=("//",),
        block_comment_pairs=(("/*", "*/"),),
        string_delimiters=('"""', '"', "'"),
    )
    block_style = "braces"
    complexity_keywords = ("else if", "if", "for", "while", "case", "catch")

    def imports(self, text: str) -> list[ImportInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        output: list[ImportInfo] = []
        for match in _IMPORT_RE.finditer(masked):
            path = match.group("path")
            if match.group("wildcard"):
                module, items = path, ("*",)
            else:
                module, _, last = path.rpartition(".")
                module = module or path
                items = (last,)
            output.append(
                ImportInfo(
                    module=module,
                    items=items,
                    line=lines.line_of(match.start("path")),
                    kind="static" if match.group("static") else "module",
                )
            )
        return output

    def exports(self, text: str) -> list[ExportInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        return [
            ExportInfo(name=match.group("name"), line=lines.line_of(match.start("name")))
            for match in _PUBLIC_TYPE_RE.finditer(masked)
        ]

    def functions(self, text: str) -> list[FunctionInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        output: list[FunctionInfo] = []
        for match in _METHOD_RE.finditer(masked):
            name = match.group("name")
            return_type = " ".join(match.group("ret").split())
            if name in _NOT_METHODS or return_type in _NOT_METHODS or return_type == "new":
                continue
            open_index = match.end() - 1
            close_index = closing_paren(masked, open_index)
            if close_index == -1:
                continue
            tail = masked[close_index + 1 : close_index + 200].lstrip()
            if not tail.startswith(("{", "throws", ";")):
                continue
            modifiers = match.group("modifiers").split()
            if return_type in _MODIFIERS:
                modifiers.append(return_type)
                return_type = ""
            output.append(
                FunctionInfo(
                    name=name,
                    line=lines.line_of(match.start("name")),
                    parameters=parameter_names(masked[open_index + 1 : close_index], "trailing"),
                    return_type=return_type or None,
                    is_exported="public" in modifiers,
                )
            )
        return output

    def classes(self, text: str) -> list[ClassInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        output: list[ClassInfo] = []
        for match in _CLASS_RE.finditer(masked):
            extends = split_top_level(match.group("extends") or "")
            implements = split_top_level(match.group("implements") or "")
            output.append(
                ClassInfo(
                    name=match.group("name"),
                    line=lines.line_of(match.start("name")),
                    extends=extends[0] if extends else None,
                    implements=tuple(extends[1:]) + tuple(implements),
                )
            )
        return output

    def comments(self, text: str) -> list[CommentInfo]:
        return comments_from_text(text, self.lexical_rules)
