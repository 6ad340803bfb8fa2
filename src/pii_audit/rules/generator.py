"""Rule pattern generation.

Turns a reviewed Failure into an `IfPattern` so a reviewer (or an unattended
run) can propose a rule without writing regex by hand:

- whole_value_pattern:  ^We aren't in Kansas anymore Toto$
- parts_pattern:        (Kansas).*(Toto)$
- symbol_pattern:       ([A-Z][a-z][a-z][a-z][a-z][a-z]).*([A-Z][a-z][a-z][a-z])$

Anchors are decided from the failing spans of the original value only: `^` when
a part starts the value, `$` when a part ends it.
"""

from __future__ import annotations
import re
from enum import Enum
from typing import Callable, List

from ..errors import PatternGenerationError
from ..failures import Failure, FailureClassification
from .base import RegexRule, RuleAction


class SymbolsRuleMode(str, Enum):
    ALL = "all"
    CHARACTERS_ONLY = "characters_only"
    DIGITS_ONLY = "digits_only"


def whole_value_pattern(failure: Failure) -> str:
    return f"^{re.escape(failure.problem_value)}$"


def _anchor(failure: Failure, groups: List[str]) -> str:
    pattern = ".*".join(groups)
    if failure.min_offset == 0:
        pattern = "^" + pattern
    if failure.max_part_end == len(failure.problem_value):
        pattern = pattern + "$"
    return pattern


def _require_parts(failure: Failure) -> None:
    if not failure.parts:
        raise PatternGenerationError("Failure had no Parts")


def parts_pattern(failure: Failure) -> str:
    _require_parts(failure)
    return _anchor(failure, [f"({re.escape(p)})" for p in failure.conflate_parts()])


def _symbolize(literal: str, mode: SymbolsRuleMode) -> str:
    out = []
    for ch in literal:
        if ch.isdigit() and mode != SymbolsRuleMode.CHARACTERS_ONLY:
            out.append(r"\d")
        elif ch.isalpha() and mode != SymbolsRuleMode.DIGITS_ONLY:
            out.append("[A-Z]" if ch.isupper() else "[a-z]")
        else:
            out.append(re.escape(ch))
    return "".join(out)


def symbol_pattern(failure: Failure, mode: SymbolsRuleMode = SymbolsRuleMode.ALL) -> str:
    """Failing parts as character classes, e.g. ^(\\d\\d-\\d\\d-\\d\\d).*([A-Z][A-Z])"""
    _require_parts(failure)
    return _anchor(failure, [f"({_symbolize(p, mode)})" for p in failure.conflate_parts()])


PatternFunc = Callable[[Failure], str]


class RegexRuleGenerator:
    """Binds a pattern function to an action to build default rules."""

    def __init__(self, pattern_func: PatternFunc, action: RuleAction):
        self.pattern_func = pattern_func
        self.action = action

    def if_pattern_for(self, failure: Failure) -> str:
        return self.pattern_func(failure)

    def generate_for(self, failure: Failure) -> RegexRule:
        if self.action == RuleAction.IGNORE:
            classification = FailureClassification.NONE
        else:
            classification = failure.parts[0].classification if failure.parts else FailureClassification.NONE

        return RegexRule(
            action=self.action,
            if_column=failure.problem_field,
            if_pattern=self.if_pattern_for(failure),
            as_=classification,
        )


_PATTERNS = {
    "whole_value": whole_value_pattern,
    "parts": parts_pattern,
    "symbols": symbol_pattern,
    "digits": lambda f: symbol_pattern(f, SymbolsRuleMode.DIGITS_ONLY),
    "characters": lambda f: symbol_pattern(f, SymbolsRuleMode.CHARACTERS_ONLY),
}


def list_pattern_funcs() -> List[str]:
    return list(_PATTERNS)


def make_generator(pattern: str, action: RuleAction) -> RegexRuleGenerator:
    """Generator by pattern name (see list_pattern_funcs)."""
    if pattern not in _PATTERNS:
        raise KeyError(f"Unknown pattern generator: {pattern}. Available: {list(_PATTERNS)}")
    return RegexRuleGenerator(_PATTERNS[pattern], action)
