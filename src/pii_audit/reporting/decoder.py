"""Failure report decoding.

Turns a FailureStoreReport CSV back into Failures:
- parts are rebuilt from the `###` separated columns
- offsets are repaired against the problem value (see repair.py)
- parts covered by PartPatternFilterRules are dropped, and a failure with no
  parts left is dropped entirely

Rows are decoded on a thread pool by default. `progress` (if given) is called
with the processed row count from a polling thread while decoding runs, and
once more at the end.
"""

from __future__ import annotations
import csv
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import DecodeError
from ..failures import Failure, FailureClassification, FailurePart
from ..rules import PartPatternFilterRule
from .destinations import expand_separator
from .failure_store import HEADER, SEPARATOR
from .repair import repair_part

log = logging.getLogger("pii_audit.reporting.decoder")

ProgressCallback = Callable[[int], None]
Row = Dict[str, Optional[str]]

PIXEL_DATA_FIELD = "PixelData"


def describe_row(row: Row) -> str:
    return "Failure(" + "|".join(str(row.get(h)) for h in HEADER) + ")"


def _parse_parts(row: Row) -> List[FailurePart]:
    words = (row.get("PartWords") or "").split(SEPARATOR)
    classes = (row.get("PartClassifications") or "").split(SEPARATOR)
    offsets = (row.get("PartOffsets") or "").split(SEPARATOR)

    if not (len(words) == len(classes) == len(offsets)):
        raise DecodeError(
            f"Mismatched part lists ({len(words)} words, {len(classes)} classifications, {len(offsets)} offsets)"
        )

    parts = []
    for word, cls, off in zip(words, classes, offsets):
        try:
            classification = FailureClassification.parse(cls)
        except ValueError as e:
            raise DecodeError(f"Invalid failure classification '{cls}'") from e
        try:
            offset = int(off)
        except ValueError as e:
            raise DecodeError(f"Invalid offset '{row.get('PartOffsets')}'") from e
        if offset < 0:
            raise DecodeError(f"Invalid offset '{row.get('PartOffsets')}'")
        parts.append(FailurePart(word, classification, offset))
    return parts


class ReportDecoder:
    def __init__(
        self,
        part_rules: Optional[Sequence[PartPatternFilterRule]] = None,
        run_parallel: bool = True,
        stop_at_first_error: bool = False,
        max_workers: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
        progress_interval: float = 0.1,
        search_bound: Optional[int] = None,
        csv_separator: Optional[str] = None,
    ):
        self.part_rules = list(part_rules or [])
        self.run_parallel = run_parallel
        self.stop_at_first_error = stop_at_first_error
        self.max_workers = max_workers
        self.progress = progress
        self.progress_interval = progress_interval
        self.search_bound = search_bound
        self.delimiter = expand_separator(csv_separator)

        self.processed = 0
        self.problems = 0
        self._processed_lock = threading.Lock()
        self._results_lock = threading.Lock()

    def decode(self, path: str) -> List[Failure]:
        with open(path, "r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f, delimiter=self.delimiter)
            if reader.fieldnames is None:
                return []
            missing = [h for h in HEADER if h not in reader.fieldnames]
            if missing:
                raise DecodeError(f"{path} is missing report column(s): {missing}")
            return self.decode_rows(reader)

    def decode_rows(self, rows: Iterable[Row]) -> List[Failure]:
        self.processed = 0
        self.problems = 0
        decoded: List[Tuple[int, Failure]] = []

        if self.run_parallel:
            self._decode_parallel(rows, decoded)
        else:
            for i, row in enumerate(rows):
                try:
                    self._process(i, row, decoded)
                except DecodeError as e:
                    self._on_error(row, e)

        if self.problems:
            log.warning("Problem with %d/%d records", self.problems, self.processed + self.problems)
        if self.progress is not None:
            self.progress(self.processed)
        return [f for _, f in sorted(decoded, key=lambda pair: pair[0])]

    def _decode_parallel(self, rows: Iterable[Row], decoded: List[Tuple[int, Failure]]) -> None:
        done = threading.Event()
        poller = None
        if self.progress is not None:
            poller = threading.Thread(target=self._poll_progress, args=(done,), daemon=True)
            poller.start()

        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = {pool.submit(self._process, i, row, decoded): row for i, row in enumerate(rows)}
                for fut in as_completed(futures):
                    try:
                        fut.result()
                    except DecodeError as e:
                        if self.stop_at_first_error:
                            for other in futures:
                                other.cancel()
                        self._on_error(futures[fut], e)
        finally:
            done.set()
            if poller is not None:
                poller.join()

    def _poll_progress(self, done: threading.Event) -> None:
        while not done.wait(self.progress_interval):
            self.progress(self.processed)

    def _on_error(self, row: Row, error: DecodeError) -> None:
        if self.stop_at_first_error:
            log.error("%s:\n%s", describe_row(row), error)
            raise error
        log.warning("%s:\n%s", describe_row(row), error)
        self.problems += 1

    def _process(self, index: int, row: Row, decoded: List[Tuple[int, Failure]]) -> None:
        problem_value = row.get("ProblemValue")
        if problem_value is None:
            raise DecodeError("ProblemValue was null")

        problem_field = row.get("ProblemField") or ""
        parts = _parse_parts(row)

        if problem_field != PIXEL_DATA_FIELD:
            parts = [repair_part(problem_value, p, self.search_bound) for p in parts]

        for rule in self.part_rules:
            if rule.if_column and rule.if_column.lower() != problem_field.lower():
                continue
            kept = []
            for p in parts:
                if rule.covers_part(p, problem_value):
                    rule.increment_used()
                else:
                    kept.append(p)
            parts = kept

        if parts:
            failure = Failure(
                problem_field=problem_field,
                problem_value=problem_value,
                parts=parts,
                resource=row.get("Resource") or "",
                resource_primary_key=row.get("ResourcePrimaryKey") or None,
            )
            with self._results_lock:
                decoded.append((index, failure))

        with self._processed_lock:
            self.processed += 1


def deserialize(path: str, **kwargs) -> List[Failure]:
    """Decode a report file; keyword arguments are passed to ReportDecoder."""
    return ReportDecoder(**kwargs).decode(path)
