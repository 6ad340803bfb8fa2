"""Built-in detector package.

Auto-registers built-in detectors on import so they're available to every classifier.
"""

from .base import Detector
from .registry import get_detector, list_detectors, register_detector


def _auto_register_detectors():
    """Register built-in detectors automatically."""
    from .private_identifier import PrivateIdentifierDetector
    from .postcode import PostcodeDetector
    from .dates import DateDetector

    registered = list_detectors()
    if "private_identifier" not in registered:
        register_detector(PrivateIdentifierDetector())
    if "postcode" not in registered:
        register_detector(PostcodeDetector())
    if "date" not in registered:
        register_detector(DateDetector())


_auto_register_detectors()

__all__ = ["Detector", "get_detector", "list_detectors", "register_detector"]
