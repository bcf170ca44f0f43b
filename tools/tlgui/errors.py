"""Failure taxonomy for the frontend/backend session."""


class BackendError(Exception):
    """Base exception for session failures. None of them are retried."""

    def __init__(self, message: str, line: str | None = None):
        super().__init__(message)
        self.line = line


class BackendStartError(BackendError):
    """The backend process could not be spawned."""


class BackendClosedError(BackendError):
    """The backend closed its output where more input was required."""


class BackendReadError(BackendError):
    """Reading from the backend failed at the OS level."""


class ProtocolError(BackendError):
    """A line did not match what the protocol requires at this point."""


class RepositoryArgumentError(ValueError):
    """A repository given on the command line is malformed."""
