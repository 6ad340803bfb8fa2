"""Scanner options.

Options come from a YAML config (see policies.loader.load_yaml) and can be
overridden by CLI flags:

```yaml
rules_file: rules.yaml          # or rules_directory: rules/
allow_list_file: allow.csv
skip_columns: SOPInstanceUID,StudyInstanceUID
validation_cache_limit: 1000000
ignore_postcodes: false
ignore_dates_in_text: false
log_progress_every: 1000
```
"""

from __future__ import annotations
import csv
import glob
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Set

from ..errors import ConfigurationError
from ..rules import RuleSet
from ..rules.ruleset import summarize

log = logging.getLogger("pii_audit.scanning")

DEFAULT_CACHE_LIMIT = 1_000_000


@dataclass
class ScannerOptions:
    rules_file: Optional[str] = None
    rules_directory: Optional[str] = None
    allow_list_file: Optional[str] = None
    skip_columns: List[str] = field(default_factory=list)
    validation_cache_limit: int = DEFAULT_CACHE_LIMIT
    ignore_postcodes: bool = False
    ignore_dates_in_text: bool = False
    log_progress_every: int = 1000

    def __post_init__(self):
        if isinstance(self.skip_columns, str):
            self.skip_columns = [c.strip() for c in self.skip_columns.split(",") if c.strip()]
        if self.validation_cache_limit < 0:
            raise ConfigurationError("validation_cache_limit must be >= 0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScannerOptions":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown scanner option(s): {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if v is not None})


def load_rules(options: ScannerOptions) -> RuleSet:
    """Load the rule set named by exactly one of rules_file / rules_directory."""
    if options.rules_file and options.rules_directory:
        raise ConfigurationError("Specify only one of rules_file and rules_directory")
    if not options.rules_file and not options.rules_directory:
        raise ConfigurationError("One of rules_file or rules_directory is required")

    if options.rules_file:
        if not os.path.exists(options.rules_file):
            raise ConfigurationError(f"Rules file {options.rules_file} does not exist")
        rule_set = RuleSet.load_from(options.rules_file)
        if rule_set.is_empty():
            raise ConfigurationError(f"Rules file {options.rules_file} did not contain any rules")
        log.info("Loaded rules from %s: %s", options.rules_file, summarize(rule_set))
        return rule_set

    if not os.path.isdir(options.rules_directory):
        raise ConfigurationError(f"Rules directory {options.rules_directory} does not exist")

    rule_set = RuleSet()
    for path in sorted(glob.glob(os.path.join(options.rules_directory, "*.yaml"))):
        loaded = RuleSet.load_from(path)
        if not loaded.is_empty():
            log.info("Loaded rules from %s: %s", path, summarize(loaded))
        rule_set.extend(loaded)

    if rule_set.is_empty():
        raise ConfigurationError(f"No rules found in {options.rules_directory}")
    return rule_set


def load_allow_list(path: str) -> Set[str]:
    """First column of each CSV row, stripped; blank entries are skipped."""
    if not os.path.exists(path):
        raise ConfigurationError(f"Allow list file {path} does not exist")

    entries: Set[str] = set()
    with open(path, "r", encoding="utf-8", newline="") as f:
        for row in csv.reader(f):
            if not row:
                continue
            value = row[0].strip()
            if value:
                entries.add(value)
    log.info("Loaded %d allow list entries from %s", len(entries), path)
    return entries
