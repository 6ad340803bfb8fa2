"""Rule YAML (de)serialization.

Rules are written as tagged YAML mappings so the variant never has to be
guessed from its fields:

```yaml
- !RegexRule
  Action: Report
  IfColumn: Narrative
  IfPattern: ^(Kansas).*(Toto)$
  As: Location
```

Default valued fields are omitted on write. Untagged mappings are read as
RegexRules, which keeps hand-written rule files short.

The rule store relies on `serialize` being deterministic: deleting a rule means
finding its exact serialized text in the file again.
"""

from __future__ import annotations
import getpass
import os
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import yaml

from ..errors import ConfigurationError
from ..failures import FailureClassification
from .base import (
    AllowlistRule,
    ConsensusRule,
    PartPatternFilterRule,
    RegexRule,
    Rule,
    RuleAction,
    SocketRule,
)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


class RuleLoader(yaml.SafeLoader):
    """SafeLoader that understands the rule tags."""


class RuleDumper(yaml.SafeDumper):
    """SafeDumper that writes rules as tagged mappings."""


def _classification(value: Any) -> FailureClassification:
    if value is None:
        return FailureClassification.NONE
    return FailureClassification.parse(str(value))


def _check_keys(kind: str, data: Dict[str, Any], allowed: set) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ConfigurationError(f"Unknown {kind} field(s): {sorted(unknown)}")


def regex_rule_from_dict(data: Dict[str, Any]) -> RegexRule:
    _check_keys("RegexRule", data, {"Action", "IfColumn", "IfPattern", "As", "CaseSensitive"})
    rule = RegexRule(
        action=RuleAction.parse(data.get("Action")),
        if_column=data.get("IfColumn"),
        if_pattern=data.get("IfPattern"),
        as_=_classification(data.get("As")),
        case_sensitive=bool(data.get("CaseSensitive", False)),
    )
    rule.check_setup()
    return rule


def allowlist_rule_from_dict(data: Dict[str, Any], cls=AllowlistRule) -> AllowlistRule:
    # Action is tolerated for older files where allow list rules were ignore rules
    _check_keys("AllowlistRule", data, {"Action", "IfColumn", "IfPattern", "IfPartPattern", "As", "CaseSensitive"})
    return cls(
        if_column=data.get("IfColumn"),
        if_pattern=data.get("IfPattern"),
        if_part_pattern=data.get("IfPartPattern"),
        as_=_classification(data.get("As")),
        case_sensitive=bool(data.get("CaseSensitive", False)),
    )


def socket_rule_from_dict(data: Dict[str, Any]) -> SocketRule:
    _check_keys("SocketRule", data, {"Host", "Port", "Timeout"})
    if "Port" not in data:
        raise ConfigurationError("SocketRule requires a Port")
    return SocketRule(
        host=str(data.get("Host", "localhost")),
        port=int(data["Port"]),
        timeout=float(data.get("Timeout", 30.0)),
    )


def consensus_rule_from_dict(data: Dict[str, Any]) -> ConsensusRule:
    _check_keys("ConsensusRule", data, {"Rules"})
    rules = []
    for item in data.get("Rules") or []:
        if isinstance(item, Rule):
            rules.append(item)
        elif isinstance(item, dict):
            rules.append(regex_rule_from_dict(item))
        else:
            raise ConfigurationError(f"ConsensusRule entries must be rules, got {item!r}")
    if len(rules) < 2:
        raise ConfigurationError("ConsensusRule requires at least two Rules")
    return ConsensusRule(rules=rules)


def regex_rule_to_dict(rule: RegexRule) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if rule.action != RuleAction.NONE:
        out["Action"] = rule.action.value
    if rule.if_column:
        out["IfColumn"] = rule.if_column
    if rule.if_pattern:
        out["IfPattern"] = rule.if_pattern
    if rule.as_ != FailureClassification.NONE:
        out["As"] = rule.as_.value
    if rule.case_sensitive:
        out["CaseSensitive"] = True
    return out


def allowlist_rule_to_dict(rule: AllowlistRule) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if rule.if_column:
        out["IfColumn"] = rule.if_column
    if rule.if_pattern:
        out["IfPattern"] = rule.if_pattern
    if rule.if_part_pattern:
        out["IfPartPattern"] = rule.if_part_pattern
    if rule.as_ != FailureClassification.NONE:
        out["As"] = rule.as_.value
    if rule.case_sensitive:
        out["CaseSensitive"] = True
    return out


def _constructor(factory: Callable[[Dict[str, Any]], Rule]):
    def construct(loader: yaml.SafeLoader, node: yaml.Node) -> Rule:
        data = loader.construct_mapping(node, deep=True) if isinstance(node, yaml.MappingNode) else {}
        return factory(data)
    return construct


RuleLoader.add_constructor("!RegexRule", _constructor(regex_rule_from_dict))
RuleLoader.add_constructor("!AllowlistRule", _constructor(allowlist_rule_from_dict))
RuleLoader.add_constructor("!SocketRule", _constructor(socket_rule_from_dict))
RuleLoader.add_constructor("!ConsensusRule", _constructor(consensus_rule_from_dict))

RuleDumper.add_representer(RegexRule, lambda d, r: d.represent_mapping("!RegexRule", regex_rule_to_dict(r)))
RuleDumper.add_representer(AllowlistRule, lambda d, r: d.represent_mapping("!AllowlistRule", allowlist_rule_to_dict(r)))
RuleDumper.add_representer(PartPatternFilterRule, lambda d, r: d.represent_mapping("!AllowlistRule", allowlist_rule_to_dict(r)))


def load_yaml_rules(text: str) -> Any:
    try:
        return yaml.load(text, Loader=RuleLoader)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid rules yaml: {e}") from e
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def dump_rules(rules: List[Rule]) -> str:
    return yaml.dump(
        rules,
        Dumper=RuleDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=float("inf"),
    )


def serialize(rule: RegexRule) -> str:
    """Serialize a single rule as a one item YAML sequence."""
    return dump_rules([rule])


def current_actor() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"


def format_timestamp(when: datetime) -> str:
    return when.strftime(TIMESTAMP_FORMAT)


def serialize_with_comment(rule: RegexRule, when: datetime, actor: Optional[str] = None) -> str:
    """Serialize with a leading `#<actor> - <timestamp>` attribution line."""
    return f"#{actor or current_actor()} - {format_timestamp(when)}\n{serialize(rule)}"


def load_from(path: str, create_if_missing: bool) -> List[RegexRule]:
    """
    Load a list of regex rules from a rule store file.

    Args:
        path: YAML file holding a sequence of rules
        create_if_missing: create an empty file instead of raising FileNotFoundError

    Returns:
        The rules in file order (empty for a blank file)
    """
    if not os.path.exists(path):
        if not create_if_missing:
            raise FileNotFoundError(f"{path} does not exist")
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        open(path, "a", encoding="utf-8").close()
        return []

    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    if not text.strip():
        return []

    try:
        data = load_yaml_rules(text)
    except ConfigurationError as e:
        raise ConfigurationError(f"Invalid rules content in file {path}: {e}") from e

    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigurationError(f"Invalid rules content in file {path}: expected a sequence of rules")

    rules: List[RegexRule] = []
    for item in data:
        if isinstance(item, RegexRule):
            rules.append(item)
        elif isinstance(item, dict):
            try:
                rules.append(regex_rule_from_dict(item))
            except (ValueError, ConfigurationError) as e:
                raise ConfigurationError(f"Invalid rules content in file {path}: {e}") from e
        else:
            raise ConfigurationError(f"Invalid rules content in file {path}: {item!r} is not a RegexRule")
    return rules
