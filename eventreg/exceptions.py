"""Typed application errors.

Business-rule violations are raised where they are detected and turned into
HTTP responses only by ``eventreg.exception_handlers``.
"""

from typing import Optional, Union

Message = Union[str, list[str]]


class AppError(Exception):
    """Base class for every error the API maps to a response."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[Message] = None):
        self.message = message if message is not None else self.default_message
        super().__init__(self.message if isinstance(self.message, str) else "; ".join(self.message))


class BadRequest(AppError):
    status_code = 400
    default_message = "Bad request"


class InvalidCredentials(AppError):
    """Raised for an unknown email and for a wrong password alike."""

    status_code = 401
    default_message = "Invalid credentials"


class InvalidToken(AppError):
    """Bad signature, expired, or malformed bearer token."""

    status_code = 401
    default_message = "Invalid token"


class InvalidTokenType(AppError):
    """A refresh token was presented where an access token is expected, or vice versa."""

    status_code = 401
    default_message = "Invalid token type"


class EmailNotVerified(AppError):
    status_code = 401
    default_message = "Email not verified. Please check your email for verification instructions."


class Forbidden(AppError):
    status_code = 403
    default_message = "Access denied, admin privileges required"


class NotFound(AppError):
    status_code = 404
    default_message = "Record not found"


class UserNotFound(NotFound):
    default_message = "User not found"


class Conflict(AppError):
    status_code = 409
    default_message = "A record with this value already exists"


class TooManyRequests(AppError):
    status_code = 429
    default_message = "Too many requests"

    def __init__(self, message: Optional[Message] = None, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(message)


class InternalError(AppError):
    status_code = 500
    default_message = "Internal server error"
