"""Typed error kinds surfaced by the authentication core.

Each error carries the ``kind`` and ``message`` rendered into the uniform
``{"error": ..., "message": ...}`` body, plus the HTTP status the boundary
layer maps it to.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    """Base class for errors returned to the HTTP boundary."""

    status_code: int = 500
    default_message: str = "internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_response(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthServiceError):
            return NotImplemented
        return (self.kind, self.message) == (other.kind, other.message)

    def __hash__(self) -> int:
        return hash((self.kind, self.message))


class InvalidCredentials(AuthServiceError):
    status_code = 401
    default_message = "The provided username or password is incorrect."


class NoToken(AuthServiceError):
    status_code = 403
    default_message = "A valid invite token is required to register."


class RegistrationBusy(AuthServiceError):
    status_code = 503
    default_message = "Registration is busy, retry shortly."


class DatabaseError(AuthServiceError):
    status_code = 500
    default_message = "The database could not complete the request."


class MissingFieldInBody(AuthServiceError):
    status_code = 400
    default_message = "The request body is missing a required field."


class NotFoundError(AuthServiceError):
    status_code = 404
    default_message = "The requested resource does not exist."
