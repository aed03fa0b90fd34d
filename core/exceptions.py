"""
Centralized exception hierarchy for domain-specific errors.

This module provides custom exception classes that represent specific
error conditions in the tracking engine, enabling callers to tell a
precondition failure apart from an external failure and react to each.
"""


class RideTrackerError(Exception):
    """Base exception for all application-specific errors."""

    kind = "RideTrackerError"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class RemoteAuthorityError(RideTrackerError):
    """Exception raised when the remote ride authority call fails."""


class RemoteNetworkError(RemoteAuthorityError):
    """The remote ride authority could not be reached or timed out."""

    kind = "NetworkError"


class RemoteValidationError(RemoteAuthorityError):
    """The remote ride authority rejected the request as invalid."""

    kind = "ValidationError"


class InvalidTransitionError(RideTrackerError):
    """Exception raised for a lifecycle transition the state machine forbids."""


# Start errors


class StartError(RideTrackerError):
    """Base for failures of the start command; the session stays Idle."""


class NoFixAvailableError(StartError):
    kind = "NoFixAvailable"


class PermissionDeniedError(StartError):
    kind = "PermissionDenied"


class RemoteOpenFailedError(StartError):
    kind = "RemoteOpenFailed"


class SessionAlreadyActiveError(StartError):
    kind = "SessionAlreadyActive"


# Stop errors


class StopError(RideTrackerError):
    """Base for failures of the stop command."""


class NoActiveSessionError(StopError):
    kind = "NoActiveSession"


class RemoteFinalizeFailedError(StopError):
    """Finalization failed; the session is still Active and stop may be retried."""

    kind = "RemoteFinalizeFailed"
