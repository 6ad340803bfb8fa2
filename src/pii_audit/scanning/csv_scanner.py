"""CSV file scanner.

Validates every cell of a CSV file (with a header row) and reports each cell
that has identifiable parts as a Failure.
"""

from __future__ import annotations
import csv
import logging
import os
from typing import List, Optional, Sequence

from ..failures import Failure
from ..reporting import FailureStoreReport
from .classifier import Classifier

log = logging.getLogger("pii_audit.scanning.csv")


class CsvFileScanner:
    def __init__(
        self,
        classifier: Classifier,
        reports: Sequence[FailureStoreReport],
        primary_key_column: Optional[str] = None,
        log_progress_every: int = 1000,
        stop_after: int = 0,
    ):
        if not reports:
            raise ValueError("At least one report must be specified")
        self.classifier = classifier
        self.reports: List[FailureStoreReport] = list(reports)
        self.primary_key_column = primary_key_column
        self.log_progress_every = log_progress_every
        self.stop_after = stop_after
        self.failure_count = 0
        self.rows_processed = 0

    def _notify_failure(self, failure: Failure) -> None:
        self.failure_count += 1
        for r in self.reports:
            r.add(failure)

    def _notify_done_rows(self, n: int) -> None:
        self.rows_processed += n
        for r in self.reports:
            r.done_rows(n)
        if self.log_progress_every > 0 and self.rows_processed % self.log_progress_every == 0:
            log.info("Done %d rows", self.rows_processed)

    def scan(self, path: str) -> int:
        """Scan one file; returns the number of failures found in it."""
        resource = os.path.abspath(path)
        found_before = self.failure_count

        with open(path, "r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            headers = reader.fieldnames
            if not headers:
                raise ValueError(f"Csv file {path} had no headers")
            if self.primary_key_column and self.primary_key_column not in headers:
                raise ValueError(f"Primary key column {self.primary_key_column} not found in {path}")
            log.info("Headers are: %s", ",".join(headers))

            for row in reader:
                pk = row.get(self.primary_key_column) if self.primary_key_column else None
                for column in headers:
                    value = row.get(column)
                    if value is None:
                        continue
                    parts = self.classifier.validate(column, value)
                    if not parts:
                        continue
                    self._notify_failure(Failure(
                        problem_field=column,
                        problem_value=value,
                        parts=parts,
                        resource=resource,
                        resource_primary_key=pk,
                    ))

                self._notify_done_rows(1)
                if self.stop_after > 0 and self.rows_processed >= self.stop_after:
                    break

        log.info("Done %d rows, %d failure(s) in %s", self.rows_processed, self.failure_count - found_before, path)
        return self.failure_count - found_before

    def close(self) -> None:
        for r in self.reports:
            r.close_report()
