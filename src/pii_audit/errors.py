"""Exception types raised by pii_audit."""


class PiiAuditError(Exception):
    """
    Base exception for all pii_audit errors
    """
    pass


class ConfigurationError(PiiAuditError):
    """
    Raised when rules, allow lists or options cannot be loaded
    """
    pass


class PatternGenerationError(PiiAuditError, ValueError):
    """
    Raised when a rule pattern cannot be derived from a failure
    """
    pass


class DecodeError(PiiAuditError):
    """
    Raised when a row of a failure report cannot be turned back into a Failure
    """
    pass


class OffsetRepairError(DecodeError):
    """
    Raised when a part's word can no longer be located in its problem value
    """
    pass
