# Overview: Error taxonomy shared by services and routes.

"""
Every failure a service can report is a PosError subclass carrying the HTTP
status the API answers with. Routes catch PosError and serialize it with
to_dict(); anything else is an unexpected failure, logged in full and
answered with a generic message.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for expected, user-visible failures."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PosError, ValueError):
    """Malformed or missing input. Raised before any side effect."""

    status_code = 400


class AuthenticationError(PosError):
    status_code = 401


class PermissionDeniedError(PosError):
    status_code = 403


class NotFoundError(PosError):
    """Referenced entity absent."""

    status_code = 404


class InsufficientStockError(PosError):
    """Operation would drive a stock quantity below zero."""

    status_code = 400


class AlreadyRefundedError(PosError):
    """Sale is already in its terminal refunded state."""

    status_code = 400


class ConflictError(PosError, ValueError):
    """Uniqueness violation (duplicate SKU, email, ...)."""

    status_code = 409


class InternalError(PosError):
    status_code = 500

    def __init__(self, message: str = "Internal server error", details: dict | None = None):
        super().__init__(message, details)
