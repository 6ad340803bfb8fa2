"""Detector registry.

Teams can add new detectors by:
1) implementing Detector in `pii_audit.detectors.*` (or an external package)
2) calling `register_detector(detector)` at startup

Built-in detectors are auto-registered on import via pii_audit.detectors.__init__
"""

from __future__ import annotations
from typing import Dict, List
from .base import Detector

_DETECTORS: Dict[str, Detector] = {}


def register_detector(detector: Detector) -> None:
    """Register a detector. Duplicate names are ignored."""
    if detector.name not in _DETECTORS:
        _DETECTORS[detector.name] = detector


def list_detectors() -> List[str]:
    return list(_DETECTORS)


def get_detector(name: str) -> Detector:
    if name not in _DETECTORS:
        raise KeyError(
            f"Unknown detector: {name}. "
            f"Available: {list(_DETECTORS)}. "
            f"Register with register_detector()"
        )
    return _DETECTORS[name]
