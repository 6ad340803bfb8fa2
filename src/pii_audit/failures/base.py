"""Failure data model.

A Failure is the outcome of classifying one field value: where it came from
(resource, primary key, field) plus the spans (FailureParts) that look
identifiable. Parts are immutable; decode-time repair builds new parts.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class FailureClassification(str, Enum):
    NONE = "None"
    PERSON = "Person"
    DATE = "Date"
    LOCATION = "Location"
    ORGANIZATION = "Organization"
    PRIVATE_IDENTIFIER = "PrivateIdentifier"
    POSTCODE = "Postcode"
    PIXEL_TEXT = "PixelText"

    @classmethod
    def parse(cls, name: Optional[str]) -> "FailureClassification":
        """Case-insensitive lookup by name, e.g. 'postcode' -> POSTCODE."""
        if name is None:
            raise ValueError("Classification name was None")
        wanted = name.strip().lower()
        for c in cls:
            if c.value.lower() == wanted:
                return c
        raise ValueError(f"Invalid failure classification '{name}'")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FailurePart:
    word: str
    classification: FailureClassification
    offset: int

    @property
    def end(self) -> int:
        return self.offset + len(self.word)

    def span(self) -> Tuple[int, int]:
        return (self.offset, self.end)

    def located_in(self, value: str) -> bool:
        """True if `word` sits at `offset` in `value` (bounds checked)."""
        return located_at(value, self.offset, self.word)


def located_at(value: str, offset: int, word: str) -> bool:
    if offset < 0 or offset + len(word) > len(value):
        return False
    return value[offset:offset + len(word)] == word


@dataclass
class Failure:
    problem_field: str
    problem_value: str
    parts: List[FailurePart]
    resource: str = ""
    resource_primary_key: Optional[str] = None

    def __post_init__(self):
        if not self.parts:
            raise ValueError("A Failure must have at least one FailurePart")

    def conflate_parts(self) -> List[str]:
        """Merge overlapping or touching part spans into literal substrings of the value.

        Returned in offset order. 'Kansas' + 'sas anymore' -> 'Kansas anymore'.
        """
        merged: List[List[int]] = []
        for start, end in sorted(p.span() for p in self.parts):
            if merged and start <= merged[-1][1]:
                merged[-1][1] = max(merged[-1][1], end)
            else:
                merged.append([start, end])
        return [self.problem_value[a:b] for a, b in merged]

    @property
    def min_offset(self) -> int:
        return min(p.offset for p in self.parts)

    @property
    def max_part_end(self) -> int:
        return max(p.end for p in self.parts)
