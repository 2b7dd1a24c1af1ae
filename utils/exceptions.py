"""
Exceptions raised by the credential subsystem.

AuthError subclasses carry the HTTP status and error code that
api/errors.py renders into the uniform error envelope. Messages are fixed
strings: they never echo a token, hash or password back to the caller.
"""
from __future__ import annotations


class AuthError(Exception):
    status_code = 401
    error = "UNAUTHORIZED"
    message = "Authentication failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class InvalidCredentials(AuthError):
    status_code = 401
    error = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class UnknownPrincipal(InvalidCredentials):
    """Login email does not belong to any user."""
    status_code = 404
    error = "NOT_FOUND"
    message = "User not found"


class InvalidToken(AuthError):
    status_code = 403
    error = "INVALID_TOKEN"
    message = "Invalid or expired refresh token"


class PrincipalNotFound(AuthError):
    status_code = 404
    error = "NOT_FOUND"
    message = "User not found"


class SignatureInvalid(Exception):
    """Token is malformed, wrongly signed or expired."""


class RaceRetried(Exception):
    """A concurrent writer won the insert for the same user; retry as update."""


class StorageError(Exception):
    """Unexpected failure inside a unit of work. Always rolled back."""
