from __future__ import annotations
import re
from ..failures import FailureClassification, FailurePart
from .base import Detector

# UK postcodes. First letter never Q/V/X, second never I/J/Z, inward letters never C/I/K/M/O/V.
POSTCODE_RE = re.compile(
    r"\b((GIR 0AA)|((([A-PR-UWYZ][0-9][0-9]?)|(([A-PR-UWYZ][A-HK-Y][0-9][0-9]?)"
    r"|(([A-PR-UWYZ][0-9][A-HJKSTUW])|([A-PR-UWYZ][A-HK-Y][0-9][ABEHMNPRVWXY]))))"
    r"\s?[0-9][ABD-HJLNP-UW-Z]{2}))\b",
    re.IGNORECASE,
)


class PostcodeDetector(Detector):
    name = "postcode"

    def detect(self, text: str):
        return [FailurePart(m.group(), FailureClassification.POSTCODE, m.start()) for m in POSTCODE_RE.finditer(text)]
