"""Runtime rule registry construction."""

from __future__ import annotations

from repo_index.adapters.fallback import LexicalFallbackRules
from repo_index.adapters.go import GoRules
from repo_index.adapters.java import JavaRules
from repo_index.adapters.python import PythonRules
from repo_index.adapters.registry import RulesRegistry
from repo_index.adapters.ts_js import TypeScriptJavaScriptRules


def build_rules_registry() -> RulesRegistry:
    """Build the default language rule registry."""
    registry = RulesRegistry()
    registry.register(TypeScriptJavaScriptRules())
    registry.register(PythonRules())
    registry.register(GoRules())
    registry.register(JavaRules())
    registry.register(LexicalFallbackRules(), fallback=True)
    return registry
