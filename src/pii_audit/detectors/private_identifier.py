from __future__ import annotations
import re
from datetime import datetime
from ..failures import FailureClassification, FailurePart
from .base import Detector

# Community Health Index style numbers: ddmmyy + 4 digits, word bounded (not part of a longer number)
CHI_RE = re.compile(r"\b[0-3][0-9][0-1][0-9][0-9]{6}\b")


def _is_date(ddmmyy: str) -> bool:
    try:
        datetime.strptime(ddmmyy, "%d%m%y")
    except ValueError:
        return False
    return True


class PrivateIdentifierDetector(Detector):
    name = "private_identifier"

    def detect(self, text: str):
        return [
            FailurePart(m.group(), FailureClassification.PRIVATE_IDENTIFIER, m.start())
            for m in CHI_RE.finditer(text)
            if _is_date(m.group()[:6])
        ]
