"""Import specifier classification and resolution against the indexed file set."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Sequence

RESOLUTION_EXTENSIONS: tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".mjs",
    ".cjs",
    ".json",
    ".py",
)
PYTHON_SOURCE_ROOTS: tuple[str, ...] = ("", "src/")
DEV_DEPENDENCY_PREFIXES: tuple[str, ...] = (
    "typescript",
    "@types/",
    "eslint",
    "prettier",
    "jest",
    "vitest",
    "cypress",
    "pytest",
    "mypy",
    "ruff",
    "black",
)

_PACKAGE_SEGMENT_RE = re.compile(r"^@?[A-Za-z]")
_PYTHON_DOTTED_RE = re.compile(r"^\.*[A-Za-z_][\w]*(?:\.[A-Za-z_]\w*)*$|^\.+$")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_]\w*$")


class ModuleResolver:
    """Resolve import specifiers to repo-relative POSIX paths of indexed files."""

    def __init__(self, known_paths: Iterable[str], root_alias: str = "@/") -> None:
        self._known = frozenset(known_paths)
        self._root_alias = root_alias

    @property
    def known_paths(self) -> frozenset[str]:
        return self._known

    def is_relative(self, module: str, language: str) -> bool:
        if module.startswith(("./", "../")) or module in {".", ".."}:
            return True
        return language == "Python" and module.startswith(".")

    def is_aliased(self, module: str) -> bool:
        return bool(self._root_alias) and module.startswith(self._root_alias)

    def is_internal(self, source: str, module: str, language: str) -> bool:
        """Relative, root-aliased, or resolvable into the indexed set."""
        if self.is_relative(module, language) or self.is_aliased(module):
            return True
        return self.resolve(source, module, language) is not None

    def resolve(self, source: str, module: str, language: str) -> str | None:
        """Return the indexed path an import targets, or None."""
        for base in self._candidate_bases(source, module, language):
            found = self._probe(base)
            if found is not None:
                return found
        return None

    def resolve_import(
        self, source: str, module: str, language: str, items: Sequence[str] = ()
    ) -> list[tuple[str, tuple[str, ...]]]:
        """Indexed targets of one import statement with the names taken from each.

        Python ``from pkg import name`` resolves ``name`` as a submodule first and
        falls back to ``pkg`` itself for names that are not submodules.
        """
        targets: dict[str, list[str]] = {}
        remaining: list[str] = []
        for name in items:
            if language == "Python" and _IDENTIFIER_RE.match(name):
                separator = "" if module.endswith(".") else "."
                found = self.resolve(source, f"{module}{separator}{name}", language)
                if found is not None:
                    targets.setdefault(found, []).append(name)
                    continue
            remaining.append(name)
        if remaining or not targets:
            found = self.resolve(source, module, language)
            if found is not None:
                targets.setdefault(found, []).extend(remaining)
        return [(target, tuple(names)) for target, names in targets.items()]

    def _candidate_bases(self, source: str, module: str, language: str) -> list[str]:
        source_dir = posixpath.dirname(source)
        if language == "Python" and _PYTHON_DOTTED_RE.match(module) and "/" not in module:
            return self._python_bases(source_dir, module)
        if self.is_relative(module, language):
            return _normalized([posixpath.join(source_dir, module)])
        if self.is_aliased(module):
            return _normalized([module[len(self._root_alias) :]])
        return _normalized([module.lstrip("/")])

    def _python_bases(self, source_dir: str, module: str) -> list[str]:
        dots = len(module) - len(module.lstrip("."))
        remainder = module[dots:].replace(".", "/")
        if dots:
            parent = source_dir
            for _ in range(dots - 1):
                parent = posixpath.dirname(parent) if parent else ".."
            return _normalized([posixpath.join(parent, remainder) if remainder else parent])
        return _normalized([posixpath.join(root, remainder) for root in PYTHON_SOURCE_ROOTS])

    def _probe(self, base: str) -> str | None:
        if base in self._known:
            return base
        for extension in RESOLUTION_EXTENSIONS:
            candidate = f"{base}{extension}"
            if candidate in self._known:
                return candidate
        prefix = f"{base}/" if base else ""
        for extension in RESOLUTION_EXTENSIONS:
            candidate = f"{prefix}index{extension}"
            if candidate in self._known:
                return candidate
        candidate = f"{prefix}__init__.py"
        if candidate in self._known:
            return candidate
        return None


def external_package_name(module: str, language: str = "") -> str | None:
    """Return the installable package name for an external specifier."""
    if language == "Python":
        first = module.split(".", 1)[0]
        return first if first and _PACKAGE_SEGMENT_RE.match(first) else None
    if module.startswith("@"):
        parts = module.split("/")
        if len(parts) >= 2 and parts[0] != "@" and parts[1]:
            return f"{parts[0]}/{parts[1]}"
        return None
    first = module.split("/", 1)[0]
    if first and _PACKAGE_SEGMENT_RE.match(first):
        return first
    return None


def is_dev_dependency(name: str) -> bool:
    return name.startswith(DEV_DEPENDENCY_PREFIXES)


def _normalized(paths: list[str]) -> list[str]:
    """Normalize candidate paths, dropping any that escape the repository root."""
    output: list[str] = []
    for path in paths:
        normalized = posixpath.normpath(path) if path else ""
        if normalized == ".":
            normalized = ""
        if normalized == ".." or normalized.startswith("../") or normalized.startswith("/"):
            continue
        output.append(normalized)
    return output
