"""Field value classifier.

Classifier.validate(field_name, field_value) returns the spans of a single
field value that look identifiable:

1) skip columns and blank values are never reported
2) carets are treated as spaces (DICOM person names use ^ as a separator)
3) values on the allow list are never reported
4) results are cached per field
5) custom rules run in priority order; an Ignore stops everything, a Report
   contributes parts unless an AllowlistRule suppresses them
6) built-in detectors run last (private identifiers, postcodes, dates)

The classifier is shared by scanning threads: caches are per field, each with
its own lock, and counters live in ClassifierStats behind a lock.
"""

from __future__ import annotations
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..detectors import Detector, get_detector
from ..failures import FailurePart
from ..rules import AllowlistRule, Rule, RuleAction, RuleSet, sort_rules
from .options import DEFAULT_CACHE_LIMIT, ScannerOptions, load_allow_list, load_rules

log = logging.getLogger("pii_audit.scanning")


@dataclass
class ClassifierStats:
    cache_hits: int = 0
    cache_misses: int = 0
    parts_found: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class _FieldCache:
    """Bounded LRU of value -> parts for one field."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self._items: "OrderedDict[str, Tuple[FailurePart, ...]]" = OrderedDict()
        self.lock = threading.Lock()

    def get(self, key: str) -> Optional[Tuple[FailurePart, ...]]:
        with self.lock:
            found = self._items.get(key)
            if found is not None:
                self._items.move_to_end(key)
            return found

    def put(self, key: str, parts: Tuple[FailurePart, ...]) -> None:
        with self.lock:
            self._items[key] = parts
            self._items.move_to_end(key)
            while len(self._items) > self.capacity:
                self._items.popitem(last=False)

    def __len__(self) -> int:
        return len(self._items)


class Classifier:
    def __init__(
        self,
        rule_set: Optional[RuleSet] = None,
        *,
        allow_list: Iterable[str] = (),
        skip_columns: Iterable[str] = (),
        cache_limit: int = DEFAULT_CACHE_LIMIT,
        ignore_postcodes: bool = False,
        ignore_dates_in_text: bool = False,
    ):
        if cache_limit < 0:
            raise ValueError("cache_limit must be >= 0")

        rule_set = rule_set or RuleSet()
        self.rules: List[Rule] = sort_rules(rule_set.custom_rules())
        self.allowlist_rules: List[AllowlistRule] = list(rule_set.allowlist_rules)
        for rule in self.rules:
            rule.check_setup()
        self.allow_list = {v.strip().lower() for v in allow_list}
        self.skip_columns = {c.lower() for c in skip_columns}
        self.cache_limit = cache_limit
        self.ignore_postcodes = ignore_postcodes
        self.ignore_dates_in_text = ignore_dates_in_text
        self.detectors: List[Detector] = self._select_detectors()

        self._stats = ClassifierStats()
        self._stats_lock = threading.Lock()
        self._caches: Dict[str, _FieldCache] = {}
        self._caches_lock = threading.Lock()
        self._started = time.time()

    @classmethod
    def from_options(cls, options: ScannerOptions) -> "Classifier":
        allow_list = load_allow_list(options.allow_list_file) if options.allow_list_file else ()
        return cls(
            load_rules(options),
            allow_list=allow_list,
            skip_columns=options.skip_columns,
            cache_limit=options.validation_cache_limit,
            ignore_postcodes=options.ignore_postcodes,
            ignore_dates_in_text=options.ignore_dates_in_text,
        )

    def _select_detectors(self) -> List[Detector]:
        names = ["private_identifier"]
        if not self.ignore_postcodes:
            names.append("postcode")
        if not self.ignore_dates_in_text:
            names.append("date")
        return [get_detector(n) for n in names]

    def _cache_for(self, field_name: str) -> _FieldCache:
        cache = self._caches.get(field_name)
        if cache is None:
            with self._caches_lock:
                cache = self._caches.setdefault(field_name, _FieldCache(self.cache_limit))
        return cache

    def _count(self, hit: bool, parts: int) -> None:
        with self._stats_lock:
            if hit:
                self._stats.cache_hits += 1
            else:
                self._stats.cache_misses += 1
            self._stats.parts_found += parts

    def validate(self, field_name: str, field_value: Optional[str]) -> List[FailurePart]:
        if (field_name or "").lower() in self.skip_columns:
            return []
        if field_value is None or not field_value.strip():
            return []

        value = field_value.replace("^", " ")
        if value.strip().lower() in self.allow_list:
            return []

        if self.cache_limit == 0:
            parts = self._classify(field_name, value)
            self._count(False, len(parts))
            return parts

        cache = self._cache_for(field_name)
        cached = cache.get(value)
        if cached is not None:
            self._count(True, len(cached))
            return list(cached)

        parts = self._classify(field_name, value)
        cache.put(value, tuple(parts))
        self._count(False, len(parts))
        return parts

    def _allowed(self, field_name: str, value: str, part: FailurePart) -> bool:
        return all(
            r.apply_allowlist_rule(field_name, value, part) != RuleAction.IGNORE
            for r in self.allowlist_rules
        )

    def _classify(self, field_name: str, value: str) -> List[FailurePart]:
        parts: List[FailurePart] = []

        for rule in self.rules:
            action, rule_parts = rule.apply(field_name, value)
            if action == RuleAction.NONE:
                continue
            if action == RuleAction.IGNORE:
                return []
            if action == RuleAction.REPORT:
                parts.extend(p for p in rule_parts if self._allowed(field_name, value, p))
            else:
                raise ValueError(f"No case for rule action {action}")

        for detector in self.detectors:
            parts.extend(detector.detect(value))
        return parts

    def stats(self) -> ClassifierStats:
        with self._stats_lock:
            return ClassifierStats(**self._stats.to_dict())

    def close(self) -> None:
        """Close rules that hold resources (socket rules) and log totals."""
        for rule in self.rules:
            rule.close()

        stats = self.stats()
        log.info("Total runtime for %s: %.2fs", type(self).__name__, time.time() - self._started)
        log.info("Validation cache hits: %d, misses: %d", stats.cache_hits, stats.cache_misses)
        log.info("Total failure parts identified: %d", stats.parts_found)

    def __enter__(self) -> "Classifier":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
