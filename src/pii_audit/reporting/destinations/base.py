"""Report destinations.

A destination receives the header once and then batches of rows, each row a
list of strings in header order. Destinations are written to from the report's
flush, which already holds the report lock; only the header needs its own.
"""

from __future__ import annotations
import re
import threading
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence

_CONTROL_WS = re.compile(r"[\t\r\n]")
_MULTI_SPACE = re.compile(r" {2,}")


def strip_whitespace(value: Optional[str]) -> str:
    """Drop tabs and newlines and collapse runs of spaces."""
    if value is None:
        return ""
    return _MULTI_SPACE.sub(" ", _CONTROL_WS.sub("", str(value)))


class ReportDestination(ABC):
    name: str

    def __init__(self, strip_whitespace_on_write: bool = False):
        self.strip_whitespace_on_write = strip_whitespace_on_write
        self.headers: Optional[List[str]] = None
        self._header_lock = threading.Lock()

    def write_header(self, headers: Sequence[str]) -> None:
        with self._header_lock:
            if self.headers is not None:
                return
            self.headers = list(headers)
            self._open(self.headers)

    def write_items(self, rows: Iterable[Sequence[Optional[str]]]) -> None:
        if self.headers is None:
            raise RuntimeError(f"{type(self).__name__}: write_header must be called before write_items")
        self._write_rows([self._prepare(r) for r in rows])

    def _prepare(self, row: Sequence[Optional[str]]) -> List[str]:
        if self.strip_whitespace_on_write:
            return [strip_whitespace(v) for v in row]
        return ["" if v is None else str(v) for v in row]

    @abstractmethod
    def _open(self, headers: List[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def _write_rows(self, rows: List[List[str]]) -> None:
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError
