"""Rule sets.

A RuleSet is what one rules file contributes to a classifier:

```yaml
BasicRules:
  - Action: Ignore
    IfColumn: Modality
  - Action: Report
    IfPattern: \\b[A-Z]{2}\\d{6}\\b
    As: PrivateIdentifier
AllowlistRules:
  - IfPartPattern: ^NHS$
SocketRules:
  - Host: localhost
    Port: 1881
ConsensusRules:
  - Rules:
      - !SocketRule {Host: localhost, Port: 1881}
      - !SocketRule {Host: localhost, Port: 1882}
```

A bare sequence of tagged rules (`- !RegexRule ...`) is accepted too; each
rule is filed under its variant.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..errors import ConfigurationError
from .base import AllowlistRule, ConsensusRule, RegexRule, Rule, SocketRule
from .serialization import (
    allowlist_rule_from_dict,
    consensus_rule_from_dict,
    load_yaml_rules,
    regex_rule_from_dict,
    socket_rule_from_dict,
)

_SECTIONS = {
    "BasicRules": (RegexRule, regex_rule_from_dict),
    "SocketRules": (SocketRule, socket_rule_from_dict),
    "AllowlistRules": (AllowlistRule, allowlist_rule_from_dict),
    "ConsensusRules": (ConsensusRule, consensus_rule_from_dict),
}


@dataclass
class RuleSet:
    basic_rules: List[RegexRule] = field(default_factory=list)
    socket_rules: List[SocketRule] = field(default_factory=list)
    allowlist_rules: List[AllowlistRule] = field(default_factory=list)
    consensus_rules: List[ConsensusRule] = field(default_factory=list)

    def custom_rules(self) -> List[Rule]:
        """Rules that produce actions, in configuration order (unsorted)."""
        return [*self.basic_rules, *self.socket_rules, *self.consensus_rules]

    def is_empty(self) -> bool:
        return not (self.basic_rules or self.socket_rules or self.allowlist_rules or self.consensus_rules)

    def extend(self, other: "RuleSet") -> None:
        self.basic_rules.extend(other.basic_rules)
        self.socket_rules.extend(other.socket_rules)
        self.allowlist_rules.extend(other.allowlist_rules)
        self.consensus_rules.extend(other.consensus_rules)

    def _add(self, rule: Rule) -> None:
        if isinstance(rule, RegexRule):
            self.basic_rules.append(rule)
        elif isinstance(rule, SocketRule):
            self.socket_rules.append(rule)
        elif isinstance(rule, AllowlistRule):
            self.allowlist_rules.append(rule)
        elif isinstance(rule, ConsensusRule):
            self.consensus_rules.append(rule)
        else:
            raise ConfigurationError(f"Unsupported rule type {type(rule).__name__}")

    @classmethod
    def from_yaml(cls, text: str) -> "RuleSet":
        try:
            return cls._from_data(load_yaml_rules(text))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    @classmethod
    def _from_data(cls, data: Any) -> "RuleSet":
        rs = cls()
        if data is None:
            return rs

        if isinstance(data, list):
            for item in data:
                if isinstance(item, dict):
                    item = regex_rule_from_dict(item)
                if not isinstance(item, Rule):
                    raise ConfigurationError(f"Expected a rule, got {item!r}")
                rs._add(item)
            return rs

        if not isinstance(data, dict):
            raise ConfigurationError("Rules yaml must be a mapping of rule sections or a sequence of rules")

        unknown = set(data) - set(_SECTIONS)
        if unknown:
            raise ConfigurationError(f"Unknown rule section(s): {sorted(unknown)}. Expected {list(_SECTIONS)}")

        for section, (rule_type, factory) in _SECTIONS.items():
            for item in data.get(section) or []:
                rs._add(_coerce(item, rule_type, factory))
        return rs

    @classmethod
    def load_from(cls, path: str) -> "RuleSet":
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        try:
            return cls.from_yaml(text)
        except ConfigurationError as e:
            raise ConfigurationError(f"{path}: {e}") from e


def _coerce(item: Any, rule_type: type, factory) -> Rule:
    if isinstance(item, rule_type):
        return item
    if isinstance(item, dict):
        return factory(item)
    raise ConfigurationError(f"Expected {rule_type.__name__}, got {item!r}")


def summarize(rule_set: RuleSet) -> Dict[str, int]:
    return {
        "basic": len(rule_set.basic_rules),
        "socket": len(rule_set.socket_rules),
        "allowlist": len(rule_set.allowlist_rules),
        "consensus": len(rule_set.consensus_rules),
    }
