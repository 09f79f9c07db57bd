"""Error taxonomy for the notification client.

HTTP failures are classified once, in :mod:`addiscare_client.api_client`, so
the sync engine and coordinator can branch on type instead of status codes.
"""

from __future__ import annotations


class NotificationApiError(Exception):
    """Base class for failed notification API calls."""

    def __init__(self, code: str, message: str, details=None, status_code: int | None = None):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, status_code={self.status_code!r})"


class TransientApiError(NotificationApiError):
    """Timeout, connection failure or 5xx. The next poll tick retries."""


class AuthenticationApiError(NotificationApiError):
    """401. The session layer decides whether to log out."""


class ConflictApiError(NotificationApiError):
    """404/409 on a mutation: the target is already gone or already changed."""


class ValidationApiError(NotificationApiError):
    """400/422. ``field_errors`` maps field names to server messages."""

    @property
    def field_errors(self) -> dict[str, str]:
        return self.details if isinstance(self.details, dict) else {}


class InactiveSessionError(RuntimeError):
    """A mutation was requested while no notification session is active."""


class UnconfirmedDeleteError(RuntimeError):
    """A hard delete reached the coordinator without the user's confirmation."""
