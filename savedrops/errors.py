"""Exception hierarchy for the Save Drops simulator."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "AuthError",
    "AuthErrorCode",
    "BackendError",
    "BackendNotConnectedError",
    "NotAuthenticatedError",
    "ReadError",
    "SaveDropsError",
    "SimulationNotRunningError",
    "ValidationError",
    "WriteError",
]


class SaveDropsError(Exception):
    """Base class for all errors raised by this package."""


class AuthErrorCode(str, Enum):
    INVALID_CREDENTIALS = "invalid-credentials"
    EMAIL_IN_USE = "email-in-use"
    WEAK_PASSWORD = "weak-password"
    INVALID_EMAIL = "invalid-email"
    USER_NOT_FOUND = "user-not-found"
    RATE_LIMITED = "rate-limited"
    NETWORK_FAILURE = "network-failure"


_AUTH_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIALS: "Invalid email or password. Please try again.",
    AuthErrorCode.EMAIL_IN_USE: "An account with this email already exists.",
    AuthErrorCode.WEAK_PASSWORD: "Password is too weak. Please choose a stronger password.",
    AuthErrorCode.INVALID_EMAIL: "Please enter a valid email address.",
    AuthErrorCode.USER_NOT_FOUND: "No account found with this email address.",
    AuthErrorCode.RATE_LIMITED: "Too many attempts. Please try again later.",
    AuthErrorCode.NETWORK_FAILURE: "Network error. Please check your connection and try again.",
}


class AuthError(SaveDropsError):
    """Authentication failure carrying a user-facing message.

    Attributes:
        code: One of :class:`AuthErrorCode`.
        message: Text safe to show the end user verbatim.
    """

    def __init__(self, code: AuthErrorCode, message: str | None = None) -> None:
        self.code = AuthErrorCode(code)
        self.message = message or _AUTH_MESSAGES[self.code]
        super().__init__(self.message)


class ValidationError(SaveDropsError):
    """Client-side input check failed before any backend call."""


class NotAuthenticatedError(SaveDropsError):
    """The operation needs a signed-in user."""


class SimulationNotRunningError(SaveDropsError):
    """A manual control was used while the simulation is stopped."""


class BackendError(SaveDropsError):
    """Base class for Data Backend failures."""


class BackendNotConnectedError(BackendError):
    """``connect()`` has not been called on the backend."""


class WriteError(BackendError):
    """An append, update or set did not reach the store."""


class ReadError(BackendError):
    """A get, query or subscription failed."""
