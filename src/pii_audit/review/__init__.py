from .unattended import UnattendedReviewer

__all__ = ["UnattendedReviewer"]
