"""Failure store report.

Every Failure becomes one flat row so a report can be re-loaded later for
review without the original data:

| Resource | ResourcePrimaryKey | ProblemField | ProblemValue | PartWords | PartClassifications | PartOffsets |
| a.csv    | 1.2.3              | Narrative    | We aren't... | Kansas###Toto | Location###Location | 13###28 |

Rows are buffered and flushed to every destination once `max_size` rows are
pending (so `max_size=0` writes through on every add).
"""

from __future__ import annotations
import logging
import threading
from typing import List, Optional

from ..failures import Failure
from .destinations import ReportDestination

log = logging.getLogger("pii_audit.reporting")

HEADER = [
    "Resource",
    "ResourcePrimaryKey",
    "ProblemField",
    "ProblemValue",
    "PartWords",
    "PartClassifications",
    "PartOffsets",
]
SEPARATOR = "###"


def encode_failure(failure: Failure) -> List[Optional[str]]:
    return [
        failure.resource,
        failure.resource_primary_key,
        failure.problem_field,
        failure.problem_value,
        SEPARATOR.join(p.word for p in failure.parts),
        SEPARATOR.join(p.classification.value for p in failure.parts),
        SEPARATOR.join(str(p.offset) for p in failure.parts),
    ]


class FailureStoreReport:
    def __init__(self, target_name: str, max_size: int):
        if max_size < 0:
            raise ValueError("max_size must be >= 0")
        self.target_name = target_name
        self.max_size = max_size
        self.destinations: List[ReportDestination] = []
        self.rows_done = 0
        self.failures_added = 0
        self._batch: List[List[Optional[str]]] = []
        self._lock = threading.Lock()

    def add_destination(self, destination: ReportDestination) -> None:
        self.destinations.append(destination)
        destination.write_header(HEADER)

    def add(self, failure: Failure) -> None:
        with self._lock:
            self._batch.append(encode_failure(failure))
            self.failures_added += 1
            if len(self._batch) < self.max_size:
                return
            self._flush()

    def _flush(self) -> None:
        for d in self.destinations:
            d.write_items(self._batch)
        self._batch.clear()

    def done_rows(self, n: int) -> None:
        with self._lock:
            self.rows_done += n

    def close_report(self) -> None:
        with self._lock:
            if self._batch:
                self._flush()
            for d in self.destinations:
                d.close()
        log.info("Report %s closed: %d failure(s) from %d row(s)", self.target_name, self.failures_added, self.rows_done)
