"""Lexical fallback rules for languages without a dedicated rule set."""

from __future__ import annotations

from repo_index.adapters.base import (
    ClassInfo,
    CommentInfo,
    ExportInfo,
    FunctionInfo,
    ImportInfo,
    comments_from_text,
)
from repo_index.adapters.lexical import LexicalRules


class LexicalFallbackRules:
    """Default rule set: comments only, with C-style and ``#`` markers."""

    name = "lexical"
    languages: tuple[str, ...] = ()
    lexical_rules = LexicalRules()
    block_style = "braces"
    complexity_keywords = ("else if", "if", "for", "while", "case", "catch")

    def imports(self, text: str) -> list[ImportInfo]:
        _ = text
        return []

    def exports(self, text: str) -> list[ExportInfo]:
        _ = text
        return []

    def functions(self, text: str) -> list[FunctionInfo]:
        _ = text
        return []

    def classes(self, text: str) -> list[ClassInfo]:
        _ = text
        return []

    def comments(self, text: str) -> list[CommentInfo]:
        return comments_from_text(text, self.lexical_rules)
