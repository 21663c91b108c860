"""Common exceptions for the smart display system."""


class SmartDisplayError(Exception):
    """Base exception for all smart display errors."""

    pass


class ValidationError(SmartDisplayError):
    """Command or input validation error."""

    pass


class ConfigurationError(SmartDisplayError):
    """Configuration error."""

    pass


class StorageError(SmartDisplayError):
    """Image persistence error."""

    pass


class MediaSourceError(SmartDisplayError):
    """Media status source could not be reached."""

    pass


class QueueClosedError(SmartDisplayError):
    """Command submitted after the command queue was stopped."""

    pass
