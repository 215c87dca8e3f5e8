# storefront/core/errors.py
"""Error taxonomy for the auth service.

Every error carries the HTTP status it maps to and a client-safe message.
The exception handlers in ``storefront.main`` turn them into the uniform
``{"success": false, "message": ...}`` envelope.
"""


class AuthServiceError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None, status_code: int = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AuthServiceError):
    status_code = 400
    default_message = "Invalid request"


class ConflictError(AuthServiceError):
    status_code = 409
    default_message = "Resource already exists"


class NotFoundError(AuthServiceError):
    status_code = 404
    default_message = "User not found"


class AuthenticationError(AuthServiceError):
    status_code = 401
    default_message = "Authentication required"


class TokenExpiredError(AuthenticationError):
    default_message = "Token expired"


class InvalidTokenError(AuthenticationError):
    default_message = "Invalid token"


class AuthorizationError(AuthServiceError):
    status_code = 403
    default_message = "Access denied. Insufficient permissions."


class DependencyError(AuthServiceError):
    status_code = 503
    default_message = "Upstream service unavailable"


class DeliveryError(DependencyError):
    """An SMS or e-mail transport could not deliver a message"""
    default_message = "Failed to deliver message"
