"""Exceptions raised by duetbackup."""

from __future__ import annotations


class DuetError(Exception):
    """Base exception for all duetbackup errors."""


class DuetConfigError(DuetError):
    """Missing or invalid configuration (domain, port, exclude prefixes)."""


class DuetAPIError(DuetError):
    """Base exception for failures talking to the controller."""


class DuetNetworkError(DuetAPIError):
    """Transport-level failure (connection refused, timeout, reset)."""


class DuetAuthenticationError(DuetAPIError):
    """The controller rejected the connection password."""


class DuetConnectionLimitError(DuetAPIError):
    """The controller has no free HTTP session left."""


class DuetNotFoundError(DuetAPIError):
    """The requested file or directory does not exist on the controller."""


class DuetInvalidResponseError(DuetAPIError):
    """The controller answered with something that could not be understood."""


class DuetDownloadError(DuetAPIError):
    """A file download request failed."""


class DuetSyncError(DuetError):
    """A local filesystem operation failed during synchronization.

    Attributes:
        path: Local path the operation was working on
        operation: Short name of the failed operation (e.g. "write", "mkdir")
    """

    def __init__(self, operation: str, path: object, error: OSError):
        self.operation = operation
        self.path = str(path)
        reason = error.strerror or str(error)
        super().__init__(f"Failed to {operation} {self.path}: {reason}")
