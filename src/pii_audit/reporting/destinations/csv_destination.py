from __future__ import annotations
import csv
import os
from typing import List, Optional

from ...errors import ConfigurationError
from .base import ReportDestination


def expand_separator(separator: Optional[str]) -> str:
    """`\\t`, `\\r` and `\\n` escapes as typed on a command line become the real characters."""
    if separator is None or not separator.strip():
        return ","
    expanded = separator.replace("\\t", "\t").replace("\\r", "\r").replace("\\n", "\n")
    if expanded.strip() == ",":
        return ","
    if len(expanded) != 1:
        raise ConfigurationError(f"CSV separator must be a single character, got {separator!r}")
    return expanded


class CsvDestination(ReportDestination):
    name = "csv"

    def __init__(self, path: str, csv_separator: Optional[str] = None, strip_whitespace_on_write: bool = False):
        super().__init__(strip_whitespace_on_write)
        self.path = path
        self.delimiter = expand_separator(csv_separator)
        self._fh = None
        self._writer = None

    def _open(self, headers: List[str]) -> None:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self._fh = open(self.path, "w", encoding="utf-8", newline="")
        self._writer = csv.writer(self._fh, delimiter=self.delimiter, quoting=csv.QUOTE_MINIMAL)
        self._writer.writerow(self._prepare(headers))
        self._fh.flush()

    def _write_rows(self, rows: List[List[str]]) -> None:
        self._writer.writerows(rows)
        self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._writer = None
