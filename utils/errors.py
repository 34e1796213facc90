"""Service-layer error taxonomy shared by the complaint store, policy, and routes."""


class ServiceError(Exception):
    """Base class for errors raised synchronously by service operations."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(ServiceError):
    """Raised when a required field is missing or malformed; surfaced verbatim."""

    status_code = 400
    public_message = "Invalid request"


class AuthorizationError(ServiceError):
    """Raised when a role or ownership check fails.

    The message is kept for logs and the audit trail only. Clients always see
    the generic ``public_message``.
    """

    status_code = 403
    public_message = "Forbidden"


class NotFoundError(ServiceError):
    """Raised when an id has no matching record."""

    status_code = 404
    public_message = "Not found"


class TransientStoreError(ServiceError):
    """Raised when the database is unavailable; the caller may retry."""

    status_code = 503
    public_message = "Service temporarily unavailable"
