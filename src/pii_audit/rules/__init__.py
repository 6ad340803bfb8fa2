from .base import (
    AllowlistRule,
    ConsensusRule,
    PartPatternFilterRule,
    RegexRule,
    Rule,
    RuleAction,
    RulePriority,
    RuleResult,
    SocketRule,
    sort_rules,
)
from .generator import (
    RegexRuleGenerator,
    SymbolsRuleMode,
    make_generator,
    parts_pattern,
    symbol_pattern,
    whole_value_pattern,
)
from .ruleset import RuleSet
from .serialization import load_from, serialize, serialize_with_comment
from .store import RuleStore, YamlRuleStore

__all__ = [
    "AllowlistRule",
    "ConsensusRule",
    "PartPatternFilterRule",
    "RegexRule",
    "Rule",
    "RuleAction",
    "RulePriority",
    "RuleResult",
    "SocketRule",
    "sort_rules",
    "RegexRuleGenerator",
    "SymbolsRuleMode",
    "make_generator",
    "parts_pattern",
    "symbol_pattern",
    "whole_value_pattern",
    "RuleSet",
    "load_from",
    "serialize",
    "serialize_with_comment",
    "RuleStore",
    "YamlRuleStore",
]
