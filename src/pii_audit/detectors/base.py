"""Detector primitives.

A detector finds identifiable spans in a (normalized) field value and returns
them as FailureParts. Detectors are pure and stateless so a single instance is
shared by every scanning thread.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List

from ..failures import FailurePart


class Detector(ABC):
    name: str

    @abstractmethod
    def detect(self, text: str) -> List[FailurePart]:
        raise NotImplementedError
