"""Failure data model shared by scanning, rules and reporting."""

from .base import Failure, FailureClassification, FailurePart, located_at

__all__ = ["Failure", "FailureClassification", "FailurePart", "located_at"]
