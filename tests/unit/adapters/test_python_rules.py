from __future__ import annotations

from repo_index.adapters import PythonRules

SOURCE = '''\
"""Module doc."""
import os
import json as j, sys
from .models import (Alpha, Beta as B)
from typing import Any

__all__ = ["run", "Alpha"]


def run(path: str, *args, retries: int = 3) -> bool:
    import importlib
    return True


class Runner(Base, metaclass=Meta):
    pass
'''


def test_python_imports_with_kinds_and_dynamic_flag() -> None:
    imports = PythonRules().imports(SOURCE)

    assert [(item.module, item.kind, item.is_dynamic) for item in imports] == [
        ("os", "module", False),
        ("json", "module", False),
        ("sys", "module", False),
        (".models", "from", False),
        ("typing", "from", False),
        ("importlib", "module", True),
    ]
    assert imports[3].items == ("Alpha", "Beta")
    assert imports[3].line == 4


def test_python_exports_prefer_dunder_all() -> None:
    exports = PythonRules().exports(SOURCE)

    assert [item.name for item in exports] == ["run", "Alpha"]


def test_python_exports_fall_back_to_public_top_level_names() -> None:
    source = "\n".join(
        [
            "def public():",
            "    pass",
            "",
            "def _private():",
            "    pass",
            "",
            "class Widget:",
            "    pass",
            "",
            "LIMIT = 10",
        ]
    )

    exports = PythonRules().exports(source)

    assert [item.name for item in exports] == ["public", "Widget", "LIMIT"]


def test_python_functions_classes_and_docstrings() -> None:
    rules = PythonRules()

    functions = rules.functions(SOURCE)
    classes = rules.classes(SOURCE)
    comments = rules.comments(SOURCE)

    assert len(functions) == 1
    assert functions[0].name == "run"
    assert functions[0].parameters == ("path", "args", "retries")
    assert functions[0].return_type == "bool"
    assert functions[0].is_exported is True
    assert classes[0].name == "Runner"
    assert classes[0].extends == "Base"
    assert classes[0].implements == ()
    assert comments[0].type == "doc"
    assert comments[0].text == "Module doc."
