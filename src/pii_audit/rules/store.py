"""Rule stores.

A rule store is the reviewer's memory: every decision (ignore this, report
that) becomes a RegexRule which is appended to a YAML file so later scans and
reviews pick it up.

The file is append-only from the store's point of view. Deletes and undos do
not rewrite the YAML document; they replace the exact text that was written
for the rule with a one line `# Rule deleted by ...` comment, which keeps the
history of who added what in the file.
"""

from __future__ import annotations
import logging
import os
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Tuple

from ..failures import Failure
from .base import RegexRule
from .generator import RegexRuleGenerator
from .serialization import (
    current_actor,
    format_timestamp,
    load_from,
    serialize,
    serialize_with_comment,
)

log = logging.getLogger("pii_audit.rules.store")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RuleStore:
    """In-memory rule collection with de-duplication and undo.

    Subclasses persist changes by overriding the `_on_*` hooks.
    Not safe for concurrent mutation.
    """

    def __init__(self, generator: Optional[RegexRuleGenerator] = None):
        self.generator = generator
        self._rules: List[RegexRule] = []
        self._history: List[RegexRule] = []

    @property
    def rules(self) -> Tuple[RegexRule, ...]:
        return tuple(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[RegexRule]:
        return iter(tuple(self._rules))

    def __contains__(self, rule: object) -> bool:
        return isinstance(rule, RegexRule) and self._index_of(rule) is not None

    def _index_of(self, rule: RegexRule) -> Optional[int]:
        for i, r in enumerate(self._rules):
            if r.is_identical(rule):
                return i
        return None

    def add(self, rule: RegexRule) -> None:
        if self._index_of(rule) is not None:
            return
        self._rules.append(rule)
        self._history.append(rule)
        self._on_add(rule)

    def delete(self, rule: RegexRule) -> bool:
        i = self._index_of(rule)
        if i is None:
            return False
        removed = self._rules.pop(i)
        self._on_delete(removed)
        return True

    def undo(self) -> None:
        if not self._history:
            return
        rule = self._history.pop()
        for i, r in enumerate(self._rules):
            if r is rule:
                del self._rules[i]
                break
        self._on_undo(rule)

    def has_rule_covering(self, failure: Failure) -> Tuple[bool, Optional[RegexRule]]:
        """First rule (in collection order) whose apply() gives a non-None action."""
        for rule in self._rules:
            if rule.covers(failure):
                return True, rule
        return False, None

    def default_rule_for(self, failure: Failure) -> RegexRule:
        """The rule the configured generator would add for `failure` (not added)."""
        if self.generator is None:
            raise ValueError("No rule generator configured for this store")
        return self.generator.generate_for(failure)

    def _on_add(self, rule: RegexRule) -> None:
        pass

    def _on_delete(self, rule: RegexRule) -> None:
        pass

    def _on_undo(self, rule: RegexRule) -> None:
        pass


class YamlRuleStore(RuleStore):
    """RuleStore backed by a YAML rules file."""

    def __init__(
        self,
        path: str,
        generator: Optional[RegexRuleGenerator] = None,
        actor: Optional[str] = None,
        clock: Optional[Clock] = None,
        create_if_missing: bool = True,
    ):
        """
        Initialize the store, loading any rules already in the file.

        Args:
            path: Rules file (a YAML sequence of rules)
            generator: Used by default_rule_for
            actor: Name written in attribution comments (defaults to the OS user)
            clock: Returns the timestamp for attribution comments (defaults to UTC now)
            create_if_missing: Create an empty file instead of raising FileNotFoundError
        """
        super().__init__(generator)
        self.path = path
        self.actor = actor or current_actor()
        self.clock = clock or utc_now
        self._serialized_history: List[str] = []

        self._rules.extend(load_from(path, create_if_missing=create_if_missing))
        log.info("Loaded %d rule(s) from %s", len(self._rules), path)

    def _on_add(self, rule: RegexRule) -> None:
        text = serialize_with_comment(rule, self.clock(), self.actor)
        with open(self.path, "a", encoding="utf-8", newline="") as f:
            f.write(text)
        self._serialized_history.append(text)

    def _on_delete(self, rule: RegexRule) -> None:
        self._replace(serialize(rule))

    def _on_undo(self, rule: RegexRule) -> None:
        self._replace(self._serialized_history.pop())

    def _deletion_comment(self) -> str:
        return f"# Rule deleted by {self.actor} - {format_timestamp(self.clock())}\n"

    def _replace(self, rule_yaml: str) -> None:
        with open(self.path, "r", encoding="utf-8", newline="") as f:
            old_text = f.read()
        new_text = old_text.replace(rule_yaml, self._deletion_comment())
        if new_text == old_text:
            log.warning("Rule text not found in %s, file left unchanged", self.path)
            return

        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8", newline="") as f:
            f.write(new_text)
        os.replace(tmp, self.path)
