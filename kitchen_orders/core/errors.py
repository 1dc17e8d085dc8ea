from typing import Optional


class AppError(Exception):
    """Base class for errors that map onto a JSON error response."""
    status_code = 500
    code = "server_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(AppError):
    """Missing, malformed, expired or forged credential."""
    status_code = 401
    code = "authentication_error"


class AuthorizationError(AppError):
    """Authenticated, but the role or tenant does not allow the operation."""
    status_code = 403
    code = "authorization_error"


class ValidationError(AppError):
    """Missing required field, cross-tenant reference or duplicate unique key."""
    status_code = 400
    code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConfigurationError(AppError):
    """Tenant or account settings are incomplete (e.g. mail settings, home restaurant)."""
    status_code = 400
    code = "configuration_error"


class TransportError(AppError):
    """SMTP connect, authentication or send failure."""
    status_code = 502
    code = "transport_error"
