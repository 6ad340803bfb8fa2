"""Date-in-text detector.

Five independent shapes are matched, in this order:
- year first (2015-05-29, 15/29/05)
- year last (05/29/2015, 29-5-15)
- year missing (05/29)
- symbol then month name (29th May, 2015 May)
- month name then symbol (May 29th, July-1st)

The shapes overlap, so the same span can be reported more than once. That is
accepted: downstream review works per part and dedupes on conflation.
"""

from __future__ import annotations
import re
from typing import List
from ..failures import FailureClassification, FailurePart
from .base import Detector

_MONTHS = (
    r"((Jan(uary)?)|(Feb(ruary)?)|(Mar(ch)?)|(Apr(il)?)|(May)|(June?)|(July?)"
    r"|(Aug(ust)?)|(Sep(tember)?)|(Oct(ober)?)|(Nov(ember)?)|(Dec(ember)?))"
)
_MONTH_NUM = r"(1[0-2]|0?[1-9])"
_DAY_NUM = r"(3[01]|[12][0-9]|0?[1-9])"
_DAY_AND_MONTH = rf"(?:{_MONTH_NUM}[ ]?[/-][ ]?{_DAY_NUM}|{_DAY_NUM}[ ]?[/-][ ]?{_MONTH_NUM})"

DATE_YEAR_FIRST_RE = re.compile(rf"\b(?:[0-9]{{2}})?[0-9]{{2}}[ ]?[/-][ ]?{_DAY_AND_MONTH}(\b|T)")
DATE_YEAR_LAST_RE = re.compile(rf"\b{_DAY_AND_MONTH}[ ]?[/-][ ]?(?:[0-9]{{2}})?[0-9]{{2}}(\b|T)")
DATE_YEAR_MISSING_RE = re.compile(rf"\b{_DAY_AND_MONTH}(\b|T)")
SYMBOL_THEN_MONTH_RE = re.compile(rf"\d+((th)|(rd)|(st)|[\-/\\])?\s?{_MONTHS}", re.IGNORECASE)
MONTH_THEN_SYMBOL_RE = re.compile(rf"{_MONTHS}[\s\-/\\]?\d+((th)|(rd)|(st))?", re.IGNORECASE)

DATE_PATTERNS = (
    DATE_YEAR_FIRST_RE,
    DATE_YEAR_LAST_RE,
    DATE_YEAR_MISSING_RE,
    SYMBOL_THEN_MONTH_RE,
    MONTH_THEN_SYMBOL_RE,
)


class DateDetector(Detector):
    name = "date"

    def detect(self, text: str):
        parts: List[FailurePart] = []
        for pattern in DATE_PATTERNS:
            for m in pattern.finditer(text):
                parts.append(FailurePart(m.group().rstrip(), FailureClassification.DATE, m.start()))
        return parts
