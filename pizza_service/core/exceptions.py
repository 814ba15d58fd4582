"""
Error taxonomy.

Every error raised on purpose by the service carries the HTTP status the
boundary layer should answer with. Handlers in ``pizza_service.main``
translate them into ``{"message": ...}`` responses.
"""

from typing import Optional


class StatusCodeError(Exception):
    """Base error carrying an HTTP-equivalent status code."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, {self.status_code})"


class BadRequestError(StatusCodeError):
    status_code = 400


class UnauthorizedError(StatusCodeError):
    status_code = 401


class ForbiddenError(StatusCodeError):
    status_code = 403


class NotFoundError(StatusCodeError):
    status_code = 404


class DatabaseError(StatusCodeError):
    """A multi-statement transaction failed and was rolled back."""
    status_code = 500


class MissingReferenceError(StatusCodeError):
    """An operation referenced a row that does not exist (programmer error)."""
    status_code = 500
