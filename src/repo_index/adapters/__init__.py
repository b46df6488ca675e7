"""Language rule sets for lexical fact extraction."""

from .base import (
    ClassInfo,
    CommentInfo,
    ExportInfo,
    FunctionInfo,
    ImportInfo,
    LanguageRules,
    LineIndex,
    RulesContractError,
    parameter_names,
    split_top_level,
    validate_facts,
)
from .fallback import LexicalFallbackRules
from .go import GoRules
from .java import JavaRules
from .lexical import (
    BraceBlock,
    BraceScanResult,
    LexicalRules,
    mask_comments,
    mask_comments_and_strings,
    scan_brace_blocks,
)
from .python import PythonRules
from .registry import RulesRegistry
from .runtime import build_rules_registry
from .ts_js import TypeScriptJavaScriptRules

__all__ = [
    "BraceBlock",
    "BraceScanResult",
    "ClassInfo",
    "CommentInfo",
    "ExportInfo",
    "FunctionInfo",
    "GoRules",
    "ImportInfo",
    "JavaRules",
    "LanguageRules",
    "LexicalFallbackRules",
    "LexicalRules",
    "LineIndex",
    "PythonRules",
    "RulesContractError",
    "RulesRegistry",
    "TypeScriptJavaScriptRules",
    "build_rules_registry",
    "mask_comments",
    "mask_comments_and_strings",
    "parameter_names",
    "scan_brace_blocks",
    "split_top_level",
    "validate_facts",
]
