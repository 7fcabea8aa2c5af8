"""Domain errors.

Every failure the services raise maps to one HTTP status; the API layer
renders them as ``{"ok": false, "error": message}``.
"""


class PollaError(Exception):
    """Base error with the HTTP status it is surfaced as."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(PollaError):
    """Caller identity missing or not on the allow-list."""

    status_code = 401


class AuthorizationError(PollaError):
    """Non-admin attempting an admin-only or cross-participant action."""

    status_code = 403


class ValidationError(PollaError):
    """Missing fields, malformed image payload, no active window."""

    status_code = 400


class NotFoundError(PollaError):
    status_code = 404


class UpstreamError(PollaError):
    """Odds provider call failed. Carries the upstream status verbatim."""

    status_code = 500


class StorageError(PollaError):
    """Backing store or object storage write failed."""

    status_code = 500


class ConfigurationError(PollaError):
    """A required setting (API key, storage credentials) is missing."""

    status_code = 500
