"""
Exception Definitions - Custom exceptions for Static Chatter
============================================================

This module defines all custom exceptions used throughout the application.
None of them are retried internally; callers decide whether to shed load,
re-open a session or back off.
"""


class ChatterError(Exception):
    """
    Base exception for all Static Chatter errors.

    All custom exceptions in this application inherit from this base class,
    allowing for easy catching of all application-specific errors.

    Attributes:
        message (str): Human-readable error description
        details (dict): Additional error details for debugging
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            details: Optional dictionary with additional error context
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return formatted error message with details if present."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(ChatterError):
    """
    Configuration-related errors.

    Raised when there are issues with:
    - Invalid configuration values
    - Configuration or rules file parsing errors
    - Invalid rule definitions (empty responses, bad regex)
    """
    pass


class SessionCapReached(ChatterError):
    """
    The realm holds the maximum number of live sessions.

    Callers should shed load or wait for sessions to close or expire.
    """
    pass


class SessionExpired(ChatterError):
    """
    The session id is unknown, closed, or idle past its TTL.

    Callers must open a new session.
    """
    pass


class RealmMismatch(ChatterError):
    """
    The store's realm id differs from the static realm id.

    This is a configuration bug, not something a user can recover from.
    """
    pass


class UtteranceTooLong(ChatterError):
    """Utterance was missing or exceeded the maximum length."""
    pass


class RateLimitExceeded(ChatterError):
    """
    Per-session utterance rate limit exceeded.

    Attributes:
        retry_after (float): Seconds until the current window rolls over
    """

    def __init__(self, message: str, retry_after: float = 0, details: dict = None):
        """
        Initialize rate limit error with retry information.

        Args:
            message: Human-readable error description
            retry_after: Seconds until rate limit resets
            details: Optional dictionary with additional error context
        """
        self.retry_after = retry_after
        super().__init__(message, details)

    def __str__(self) -> str:
        """Return formatted error message with retry time."""
        base = super().__str__()
        return f"{base} | Retry after: {self.retry_after:.1f}s"


class IntentUnknown(ChatterError):
    """
    No rule matched an utterance.

    Only possible when the ``fallback`` rule was never registered, which
    is a startup error and should be treated as fatal.
    """
    pass
