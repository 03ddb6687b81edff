"""Custom exception hierarchy for the Fleeting sharing core."""


class FleetingError(Exception):
    """Base exception for all Fleeting errors."""


class NotFoundError(FleetingError):
    """Raised when a resource, grant, or notification does not exist."""


class ForbiddenError(FleetingError):
    """Raised when the access policy denies the requested operation."""


class ValidationError(FleetingError):
    """Raised on malformed input (recipient lists, timestamps, modes)."""


class StorageError(FleetingError):
    """Raised on backing store failures (DB connection, constraint violations, etc.)."""
