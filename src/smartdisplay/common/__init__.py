"""Common components shared across modules."""

from .exceptions import *

__all__ = [
    "SmartDisplayError",
    "ValidationError",
    "ConfigurationError",
    "StorageError",
    "MediaSourceError",
    "QueueClosedError",
]
