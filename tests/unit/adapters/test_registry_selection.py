from __future__ import annotations

import pytest

from repo_index.adapters import (
    ImportInfo,
    RulesContractError,
    RulesRegistry,
    TypeScriptJavaScriptRules,
    build_rules_registry,
    validate_facts,
)


def test_registry_selects_by_language_with_lexical_fallback() -> None:
    registry = build_rules_registry()

    assert registry.select("TypeScript").name == "ts_js"
    assert registry.select("JavaScript").name == "ts_js"
    assert registry.select("Python").name == "python"
    assert registry.select("Go").name == "go"
    assert registry.select("Java").name == "java"
    assert registry.select("Rust").name == "lexical"
    assert registry.names() == ("ts_js", "python", "go", "java", "lexical")


def test_registry_without_fallback_raises_lookup_error() -> None:
    registry = RulesRegistry()
    registry.register(TypeScriptJavaScriptRules())

    with pytest.raises(LookupError, match="Markdown"):
        registry.select("Markdown")


def test_fallback_rules_only_report_comments() -> None:
    rules = build_rules_registry().select("Ruby")
    source = "# setup\nrequire 'json'\n"

    assert rules.imports(source) == []
    assert rules.functions(source) == []
    assert [item.text for item in rules.comments(source)] == ["setup"]


def test_validate_facts_rejects_empty_names() -> None:
    with pytest.raises(RulesContractError, match="non-empty"):
        validate_facts([ImportInfo(module=" ", items=(), line=1)])
