"""Lexical Python rules.

Regex-based on purpose: files that do not parse (partial edits, Python 2
sources) still yield imports and symbols.
"""

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

_FROM_IMPORT_RE = re.compile(
    r"^(?P<indent>[ \t]*)from[ \t]+(?P<module>\.+[\w.]*|[\w.]+)[ \t]+import[ \t]+"
    r"(?P<names>\([^)]*\)|[^\n;]+)",
    re.MULTILINE,
)
_IMPORT_RE = re.compile(
    r"^(?P<indent>[ \t]*)import[ \t]+(?P<names>[^\n;]+)",
    re.MULTILINE,
)
_DYNAMIC_IMPORT_RE = re.compile(
    r"(?:importlib\.import_module|__import__)\(\s*(?P<quote>['\"])(?P<module>[\w.]+)(?P=quote)"
)
_ALL_RE = re.compile(r"^__all__\s*(?::[^=]+)?=\s*[\[(](?P<body>[^\])]*)[\])]", re.MULTILINE)
_QUOTED_NAME_RE = re.compile(r"['\"]([A-Za-z_][\w]*)['\"]")
_FUNCTION_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<async>async[ \t]+)?def[ \t]+(?P<name>[A-Za-z_]\w*)[ \t]*"
    r"(?:\[[^\]]*\][ \t]*)?\(",
    re.MULTILINE,
)
_RETURN_RE = re.compile(r"\s*->\s*(?P<ret>[^:]+?)\s*:")
_CLASS_RE = re.compile(
    r"^(?P<indent>[ \t]*)class[ \t]+(?P<name>[A-Za-z_]\w*)[ \t]*(?:\[[^\]]*\][ \t]*)?"
    r"(?P<open>\()?",
    re.MULTILINE,
)
_TOP_LEVEL_ASSIGN_RE = re.compile(r"^(?P<name>[A-Za-z]\w*)\s*(?::[^=\n]+)?=(?!=)", re.MULTILINE)


class PythonRules:
    """Regex rule set for Python sources."""

    name = "python"
    languages = ("Python",)
    lexical_rules = LexicalRules(
        line_comment_prefixes=("#",),
        block_comment_pairs=(),
        string_delimiters=('"""', "'''", '"', "'"),
    )
    block_style = "indent"
    complexity_keywords = ("if", "elif", "for", "while", "except", "case")

    def imports(self, text: str) -> list[ImportInfo]:
        """Extract ``from``/``import`` statements and importlib calls.

        Indented imports are reported as dynamic since they run lazily.
        """
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        found: list[tuple[int, ImportInfo]] = []

        for match in _FROM_IMPORT_RE.finditer(masked):
            names = match.group("names").strip().strip("()")
            items = tuple(
                part.split(" as ", 1)[0].strip()
                for part in split_top_level(names.replace("\\", " "))
            )
            found.append(
                (
                    match.start(),
                    ImportInfo(
                        module=match.group("module"),
                        items=tuple(item for item in items if item),
                        line=lines.line_of(match.start("module")),
                        is_dynamic=bool(match.group("indent")),
                        kind="from",
                    ),
                )
            )
        for match in _IMPORT_RE.finditer(masked):
            line = lines.line_of(match.start("names"))
            for part in split_top_level(match.group("names")):
                module = part.split(" as ", 1)[0].strip()
                if not re.fullmatch(r"[\w.]+", module):
                    continue
                found.append(
                    (
                        match.start(),
                        ImportInfo(
                            module=module,
                            items=(),
                            line=line,
                            is_dynamic=bool(match.group("indent")),
                            kind="module",
                        ),
                    )
                )

        source = mask_comments(text, self.lexical_rules)
        for match in _DYNAMIC_IMPORT_RE.finditer(source):
            found.append(
                (
                    match.start(),
                    ImportInfo(
                        module=match.group("module"),
                        items=(),
                        line=lines.line_of(match.start()),
                        is_dynamic=True,
                        kind="dynamic",
                    ),
                )
            )
        found.sort(key=lambda pair: pair[0])
        return [info for _, info in found]

    def exports(self, text: str) -> list[ExportInfo]:
        """Names listed in ``__all__``, else public top-level definitions."""
        source = mask_comments(text, self.lexical_rules)
        lines = LineIndex(source)
        all_match = _ALL_RE.search(source)
        if all_match is not None:
            line = lines.line_of(all_match.start())
            return [
                ExportInfo(name=name, line=line, type="named")
                for name in _QUOTED_NAME_RE.findall(all_match.group("body"))
            ]

        output: list[ExportInfo] = []
        for function in self.functions(text):
            if function.is_exported:
                output.append(ExportInfo(name=function.name, line=function.line))
        masked = mask_comments_and_strings(text, self.lexical_rules)
        for match in _CLASS_RE.finditer(masked):
            name = match.group("name")
            if not match.group("indent") and not name.startswith("_"):
                output.append(ExportInfo(name=name, line=lines.line_of(match.start("name"))))
        for match in _TOP_LEVEL_ASSIGN_RE.finditer(masked):
            output.append(ExportInfo(name=match.group("name"), line=lines.line_of(match.start())))
        output.sort(key=lambda item: item.line)
        return output

    def functions(self, text: str) -> list[FunctionInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        output: list[FunctionInfo] = []
        for match in _FUNCTION_RE.finditer(masked):
            open_index = match.end() - 1
            close_index = closing_paren(masked, open_index)
            if close_index == -1:
                continue
            return_match = _RETURN_RE.match(masked, close_index + 1)
            name = match.group("name")
            output.append(
                FunctionInfo(
                    name=name,
                    line=lines.line_of(match.start("name")),
                    parameters=parameter_names(masked[open_index + 1 : close_index]),
                    return_type=(
                        " ".join(return_match.group("ret").split()) if return_match else None
                    ),
                    is_async=match.group("async") is not None,
                    is_exported=not match.group("indent") and not name.startswith("_"),
                )
            )
        return output

    def classes(self, text: str) -> list[ClassInfo]:
        masked = mask_comments_and_strings(text, self.lexical_rules)
        lines = LineIndex(masked)
        output: list[ClassInfo] = []
        for match in _CLASS_RE.finditer(masked):
            bases: list[str] = []
            if match.group("open") is not None:
                open_index = match.start("open")
                close_index = closing_paren(masked, open_index)
                if close_index != -1:
                    bases = [
                        " ".join(base.split())
                        for base in split_top_level(masked[open_index + 1 : close_index])
                        if "=" not in base
                    ]
            output.append(
                ClassInfo(
                    name=match.group("name"),
                    line=lines.line_of(match.start("name")),
                    extends=bases[0] if bases else None,
                    implements=tuple(bases[1:]),
                )
            )
        return output

    def comments(self, text: str) -> list[CommentInfo]:
        return comments_from_text(
            text, self.lexical_rules, docstring_markers=('"""', "'''")
        )
