from __future__ import annotations
from typing import List, Optional

from ..failures import Failure
from .decoder import ProgressCallback, ReportDecoder


class ReportReader:
    """Cursor over the failures of a report file.

    The cursor starts before the first failure; call next() to advance.
    """

    def __init__(
        self,
        path: str,
        progress: Optional[ProgressCallback] = None,
        decoder: Optional[ReportDecoder] = None,
        csv_separator: Optional[str] = None,
    ):
        decoder = decoder or ReportDecoder(progress=progress, csv_separator=csv_separator)
        self.path = path
        self.failures: List[Failure] = decoder.decode(path)
        self.current_index = -1

    @property
    def current(self) -> Optional[Failure]:
        if 0 <= self.current_index < len(self.failures):
            return self.failures[self.current_index]
        return None

    @property
    def exhausted(self) -> bool:
        return self.current_index >= len(self.failures)

    def next(self) -> bool:
        self.current_index += 1
        if self.current_index < len(self.failures):
            return True
        self.current_index = len(self.failures)
        return False

    def go_to(self, index: int) -> None:
        self.current_index = min(max(0, index), len(self.failures))

    def describe_progress(self) -> str:
        return f"{self.current_index}/{len(self.failures)}"

    def __len__(self) -> int:
        return len(self.failures)
