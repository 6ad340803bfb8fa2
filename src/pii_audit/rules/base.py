"""Rule primitives.

Every rule answers one question for a (field name, field value) pair:
what should happen to it (RuleAction) and which spans are identifiable.

- RegexRule: user/system pattern rule (report or ignore)
- AllowlistRule: suppresses individual parts produced by report rules
- PartPatternFilterRule: decode-time part suppression with a usage counter
- ConsensusRule: reports only what all of its sub-rules agree on
- SocketRule: asks a remote classifier (e.g. an NLP service) over TCP

Rules are ordered by RulePriority before evaluation so that ignore rules always
win regardless of the order they were configured in.
"""

from __future__ import annotations
import re
import socket
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, List, Optional, Pattern, Sequence, Tuple

from ..errors import ConfigurationError
from ..failures import Failure, FailureClassification, FailurePart


class RuleAction(str, Enum):
    NONE = "None"
    IGNORE = "Ignore"
    REPORT = "Report"

    @classmethod
    def parse(cls, name: Optional[str]) -> "RuleAction":
        if name is None:
            return cls.NONE
        wanted = str(name).strip().lower()
        for a in cls:
            if a.value.lower() == wanted:
                return a
        raise ValueError(f"Invalid rule action '{name}'")

    def __str__(self) -> str:
        return self.value


class RulePriority(IntEnum):
    """Evaluation bands, lowest value first."""
    IGNORE = 0
    REPORT = 1
    GENERIC = 2
    CONSENSUS = 3
    SOCKET = 4
    INERT = 5


RuleResult = Tuple[RuleAction, List[FailurePart]]


class Rule(ABC):
    priority: RulePriority = RulePriority.GENERIC

    @abstractmethod
    def apply(self, field_name: str, field_value: str) -> RuleResult:
        raise NotImplementedError

    def covers(self, failure: Failure) -> bool:
        action, _ = self.apply(failure.problem_field, failure.problem_value)
        return action != RuleAction.NONE

    def check_setup(self) -> None:
        """Raise ConfigurationError if the rule could never be applied."""

    def close(self) -> None:
        """Release any resources held by the rule."""


def _column_matches(if_column: Optional[str], field_name: str) -> bool:
    return not if_column or if_column.lower() == (field_name or "").lower()


def _compile(pattern: Optional[str], case_sensitive: bool) -> Optional[Pattern[str]]:
    if not pattern:
        return None
    try:
        return re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
    except re.error as e:
        raise ConfigurationError(f"Invalid pattern '{pattern}': {e}") from e


@dataclass
class RegexRule(Rule):
    action: RuleAction = RuleAction.NONE
    if_column: Optional[str] = None
    if_pattern: Optional[str] = None
    as_: FailureClassification = FailureClassification.NONE
    case_sensitive: bool = False

    _regex: Optional[Pattern[str]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        self._regex = _compile(self.if_pattern, self.case_sensitive)

    @property
    def priority(self) -> RulePriority:  # type: ignore[override]
        if self.action == RuleAction.IGNORE:
            return RulePriority.IGNORE
        if self.action == RuleAction.REPORT:
            return RulePriority.REPORT
        return RulePriority.INERT

    @property
    def regex(self) -> Optional[Pattern[str]]:
        if self._regex is None:
            self._regex = _compile(self.if_pattern, self.case_sensitive)
        return self._regex

    def check_setup(self) -> None:
        if not self.if_column and not self.if_pattern:
            raise ConfigurationError(f"Illegal rule setup, neither IfColumn nor IfPattern is set: {self}")

    def apply(self, field_name: str, field_value: str) -> RuleResult:
        if not self.if_column and not self.if_pattern:
            raise ValueError(f"Illegal rule setup, neither IfColumn nor IfPattern is set: {self}")

        if not _column_matches(self.if_column, field_name):
            return RuleAction.NONE, []

        if self.regex is None:
            if self.action == RuleAction.REPORT:
                return self.action, [FailurePart(field_value, self.as_, 0)]
            return self.action, []

        if self.action == RuleAction.REPORT:
            parts = [FailurePart(m.group(), self.as_, m.start()) for m in self.regex.finditer(field_value)]
            if not parts:
                return RuleAction.NONE, []
            return self.action, parts

        if not self.regex.search(field_value):
            return RuleAction.NONE, []
        return self.action, []

    def is_identical(self, other: "RegexRule") -> bool:
        """Equivalence used for de-duplication: same column filter, pattern and action."""
        return (
            (self.if_column or None) == (other.if_column or None)
            and (self.if_pattern or None) == (other.if_pattern or None)
            and self.action == other.action
        )


@dataclass
class AllowlistRule(Rule):
    if_column: Optional[str] = None
    if_pattern: Optional[str] = None
    if_part_pattern: Optional[str] = None
    as_: FailureClassification = FailureClassification.NONE
    case_sensitive: bool = False

    _regex: Optional[Pattern[str]] = field(default=None, init=False, repr=False, compare=False)
    _part_regex: Optional[Pattern[str]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        self._regex = _compile(self.if_pattern, self.case_sensitive)
        self._part_regex = _compile(self.if_part_pattern, self.case_sensitive)

    def apply(self, field_name: str, field_value: str) -> RuleResult:
        # Only acts on parts produced by other rules
        return RuleAction.NONE, []

    def apply_allowlist_rule(self, field_name: str, field_value: str, part: FailurePart) -> RuleAction:
        if not _column_matches(self.if_column, field_name):
            return RuleAction.NONE
        if self.as_ != FailureClassification.NONE and part.classification != self.as_:
            return RuleAction.NONE
        if self._part_regex is not None and not self._part_regex.search(part.word):
            return RuleAction.NONE
        if self._regex is not None and not self._regex.search(field_value):
            return RuleAction.NONE
        return RuleAction.IGNORE


@dataclass
class PartPatternFilterRule(AllowlistRule):
    used: int = field(default=0, compare=False)

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def covers_part(self, part: FailurePart, problem_value: str) -> bool:
        return self.apply_allowlist_rule(self.if_column or "", problem_value, part) == RuleAction.IGNORE

    def increment_used(self) -> None:
        with self._lock:
            self.used += 1


@dataclass
class ConsensusRule(Rule):
    rules: List[Rule] = field(default_factory=list)
    priority = RulePriority.CONSENSUS

    def apply(self, field_name: str, field_value: str) -> RuleResult:
        if not self.rules:
            return RuleAction.NONE, []

        results = [r.apply(field_name, field_value) for r in self.rules]
        actions = {a for a, _ in results}
        if len(actions) != 1:
            return RuleAction.NONE, []

        action = actions.pop()
        if action != RuleAction.REPORT:
            return action, []

        first_parts = results[0][1]
        agreed = set.intersection(*({(p.offset, p.word) for p in parts} for _, parts in results))
        parts = [p for p in first_parts if (p.offset, p.word) in agreed]
        if not parts:
            return RuleAction.NONE, []
        return RuleAction.REPORT, parts

    def check_setup(self) -> None:
        for r in self.rules:
            r.check_setup()

    def close(self) -> None:
        for r in self.rules:
            r.close()


@dataclass
class SocketRule(Rule):
    """Remote classifier.

    Request: ``field\\0value\\0``. Reply: zero or more ``classification\\0offset\\0word\\0``
    triples followed by a single ``\\0``.
    """

    host: str = "localhost"
    port: int = 0
    timeout: float = 30.0
    priority = RulePriority.SOCKET

    _conn: Optional[socket.socket] = field(default=None, init=False, repr=False, compare=False)
    _reader: Any = field(default=None, init=False, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def _connect(self) -> None:
        self._conn = socket.create_connection((self.host, self.port), timeout=self.timeout)
        self._reader = self._conn.makefile("rb")

    def _read_token(self) -> str:
        buf = bytearray()
        while True:
            b = self._reader.read(1)
            if not b:
                raise ConnectionError(f"Connection to {self.host}:{self.port} closed mid-reply")
            if b == b"\0":
                return buf.decode("utf-8")
            buf += b

    def apply(self, field_name: str, field_value: str) -> RuleResult:
        with self._lock:
            if self._conn is None:
                self._connect()
            self._conn.sendall(f"{field_name}\0{field_value}\0".encode("utf-8"))
            parts: List[FailurePart] = []
            while True:
                classification = self._read_token()
                if not classification:
                    break
                offset = int(self._read_token())
                word = self._read_token()
                parts.append(FailurePart(word, FailureClassification.parse(classification), offset))
        if not parts:
            return RuleAction.NONE, []
        return RuleAction.REPORT, parts

    def close(self) -> None:
        with self._lock:
            if self._reader is not None:
                self._reader.close()
                self._reader = None
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def priority_of(rule: Rule) -> RulePriority:
    return rule.priority


def sort_rules(rules: Sequence[Rule]) -> List[Rule]:
    """Stable sort by priority band; configuration order is kept within a band."""
    return sorted(rules, key=priority_of)
