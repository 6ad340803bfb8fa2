"""Unattended (rules only) review.

Replays a failure report against two rule stores without a human in the loop:
- covered by an updater (report) rule: counted as an update
- else covered by an ignorer rule: counted as an ignore
- else: written to the output report as unresolved, for a later manual review
"""

from __future__ import annotations
import logging
import os
import time
from collections import Counter
from typing import List, Optional

from ..reporting import CsvDestination, FailureStoreReport, ReportReader
from ..rules import RuleStore

log = logging.getLogger("pii_audit.review")

LOG_EVERY_ROWS = 10000
LOG_EVERY_SECONDS = 5.0


class UnattendedReviewer:
    def __init__(
        self,
        failures_csv: str,
        output_path: Optional[str],
        ignorer: RuleStore,
        updater: RuleStore,
        reader: Optional[ReportReader] = None,
        csv_separator: Optional[str] = None,
    ):
        if not failures_csv:
            raise ValueError("Unattended review requires a file of failures to process")
        if not os.path.exists(failures_csv):
            raise FileNotFoundError(f"Could not find failures file '{failures_csv}'")
        if not output_path:
            raise ValueError("An output path must be specified for failures that could not be resolved")

        self.failures_csv = failures_csv
        self.output_path = output_path
        self.ignorer = ignorer
        self.updater = updater
        self.csv_separator = csv_separator
        self.reader = reader or ReportReader(failures_csv, csv_separator=csv_separator)

        self.updates = 0
        self.ignores = 0
        self.unresolved = 0
        self.total = 0
        self.errors: List[Exception] = []
        self.update_rules_used: Counter = Counter()
        self.ignore_rules_used: Counter = Counter()

    def run(self) -> int:
        report = FailureStoreReport(os.path.basename(self.output_path), 100)
        report.add_destination(CsvDestination(self.output_path, csv_separator=self.csv_separator))
        last_log = time.time()

        try:
            while self.reader.next():
                failure = self.reader.current
                try:
                    updated, update_rule = self.updater.has_rule_covering(failure)
                    ignored, ignore_rule = (False, None) if updated else self.ignorer.has_rule_covering(failure)
                except ValueError as e:
                    self.errors.append(e)
                    continue

                if updated:
                    self.update_rules_used[update_rule.if_pattern or update_rule.if_column] += 1
                    self.updates += 1
                elif ignored:
                    self.ignore_rules_used[ignore_rule.if_pattern or ignore_rule.if_column] += 1
                    self.ignores += 1
                else:
                    report.add(failure)
                    self.unresolved += 1

                self.total += 1
                if self.total % LOG_EVERY_ROWS == 0 or time.time() - last_log > LOG_EVERY_SECONDS:
                    log.info("Done %s", self._describe())
                    last_log = time.time()
        finally:
            report.close_report()

        self._log_usage("Ignore", self.ignore_rules_used)
        self._log_usage("Update", self.update_rules_used)
        for e in self.errors:
            log.error("Error during review: %s", e)
        log.info("Finished %s", self._describe())
        return 0

    def _describe(self) -> str:
        return (
            f"{self.total:,} updates={self.updates:,} ignored={self.ignores:,} "
            f"out={self.unresolved:,} err={len(self.errors):,}"
        )

    def _log_usage(self, kind: str, used: Counter) -> None:
        lines = [f"{pattern} - {count:,}" for pattern, count in sorted(used.items(), key=lambda kv: kv[1])]
        log.info("%s rules used:\n%s", kind, "\n".join(lines))
