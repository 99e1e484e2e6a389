"""
auth/errors.py -- Error taxonomy for the auth layer.

Every error a client may see subclasses AuthError and carries a stable
machine-readable code, an HTTP-analog status and a safe message. api/main.py
renders them into the shared error envelope; nothing here knows about
responses.

Unauthenticated and Forbidden also carry the interface type of the guard
that raised them. API guards produce JSON; page guards produce a redirect to
/login (401 analog) or a plain-text 403.

CorruptCredential is deliberately NOT an AuthError: it is raised and caught
inside auth/passwords.py and must never reach a client (it would tell an
attacker which failure mode occurred).
"""

from __future__ import annotations

from enum import Enum


class Interface(str, Enum):
    api = "api"
    page = "page"


class AuthError(Exception):
    code = "auth_error"
    status_code = 400
    message = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Client-correctable input problems. Lists every violated rule, not just the first."""

    code = "validation_error"
    status_code = 400
    message = "Validation failed."

    def __init__(self, errors: list[str], message: str | None = None) -> None:
        self.errors = list(errors)
        super().__init__(message)


class InvalidCredentials(AuthError):
    """Login failure. Identical for unknown username and wrong password."""

    code = "invalid_credentials"
    status_code = 401
    message = "Invalid credentials."


class Unauthenticated(AuthError):
    code = "unauthenticated"
    status_code = 401
    message = "Authentication required."

    def __init__(self, interface: Interface = Interface.api, message: str | None = None) -> None:
        self.interface = interface
        super().__init__(message)


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    message = "Access denied."

    def __init__(self, message: str | None = None, interface: Interface = Interface.api) -> None:
        self.interface = interface
        super().__init__(message)


class NotFound(AuthError):
    code = "not_found"
    status_code = 404
    message = "Resource not found."


class CorruptCredential(Exception):
    """A stored password hash could not be parsed. Internal only."""
