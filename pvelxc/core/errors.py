"""Exception hierarchy shared by the reconciler, transport and CLI."""
from typing import Optional


class LxcError(Exception):
    """Base class for all pvelxc errors."""


class ValidationError(LxcError):
    """Desired configuration is rejected before any remote call."""


class StatePreconditionError(LxcError):
    """An operation needs a shutdown or restart the caller did not allow."""


class RemoteApiError(LxcError):
    """The remote API rejected a call or could not be reached.

    Digest conflicts arrive here as well; they are not retried.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DecodeError(LxcError):
    """A raw configuration value has an unexpected type or shape."""

    def __init__(self, key: str, message: str):
        super().__init__(f"{key}: {message}")
        self.key = key


class ConfigFileError(LxcError):
    """Desired-state file is missing, empty, or fails schema validation."""
