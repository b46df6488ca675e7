"""Rule set registry with deterministic selection behavior."""

from __future__ import annotations

from dataclasses import dataclass, field

from repo_index.adapters.base import LanguageRules


@dataclass(slots=True)
class RulesRegistry:
    """Ordered rule set registry with explicit fallback."""

    _rules: list[LanguageRules] = field(default_factory=list)
    _fallback: LanguageRules | None = None

    def register(self, rules: LanguageRules, *, fallback: bool = False) -> None:
        """Register a rule set in deterministic insertion order."""
        if fallback:
            self._fallback = rules
            return
        self._rules.append(rules)

    def select(self, language: str) -> LanguageRules:
        """Select the first rule set declaring the language, else fallback."""
        for rules in self._rules:
            if language in rules.languages:
                return rules
        if self._fallback is not None:
            return self._fallback
        raise LookupError(f"No rule set supports language: {language}")

    def names(self) -> tuple[str, ...]:
        """Return registered rule set names in deterministic order."""
        ordered = [rules.name for rules in self._rules]
        if self._fallback is not None:
            ordered.append(self._fallback.name)
        return tuple(ordered)
