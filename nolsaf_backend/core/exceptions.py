"""
Domain errors raised by the service layer.

Each class fixes the HTTP status the global handler in ``main`` renders it
with; ``data`` ends up in the error envelope for the client to act on.
"""

import math
from typing import Any


class NolsafException(Exception):
    status_code: int = 400

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        data: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.data = data


class ResourceAlreadyExistsError(NolsafException):
    """A unique key (email, passkey credential) is already taken."""

    status_code = 409

    def __init__(self, resource_type: str, identifier: Any, details: dict[str, Any] | None = None):
        super().__init__(f"{resource_type} '{identifier}' is already registered", details)
        self.resource_type = resource_type
        self.identifier = identifier


class ConflictError(NolsafException):
    status_code = 409


class ValidationError(NolsafException):
    """Bad input or a state transition the resource does not allow."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        details: dict[str, Any] | None = None,
        data: Any = None,
    ):
        super().__init__(f"{field}: {message}" if field else message, details, data)
        self.field = field
        self.value = value


class PermissionError(NolsafException):
    status_code = 403

    def __init__(self, action: str, resource_type: str, details: dict[str, Any] | None = None):
        super().__init__(f"Permission denied: cannot {action} {resource_type}", details)
        self.action = action
        self.resource_type = resource_type


class AuthenticationError(NolsafException):
    status_code = 401

    def __init__(
        self,
        message: str = "Authentication failed",
        details: dict[str, Any] | None = None,
        data: Any = None,
    ):
        super().__init__(message, details, data)


class TooManyAttemptsError(NolsafException):
    """Locked out for a while after repeated failures."""

    status_code = 429

    def __init__(self, message: str, retry_after_seconds: float):
        super().__init__(
            message, data={"retry_after_seconds": max(1, math.ceil(retry_after_seconds))}
        )
        self.retry_after_seconds = retry_after_seconds


class NotFoundError(NolsafException):
    """Missing, or not visible to the caller; the two are not distinguished."""

    status_code = 404

    def __init__(self, message: str = "Resource not found", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class ExternalServiceError(NolsafException):
    """A payment gateway call failed or answered with something unusable."""

    status_code = 502

    def __init__(
        self,
        service_name: str,
        operation: str,
        details: dict[str, Any] | None = None,
        code: str = "external_service_failed",
    ):
        super().__init__(f"{service_name} {operation} failed", details, data={"code": code})
        self.service_name = service_name
        self.operation = operation


class ServiceUnavailableError(NolsafException):
    """An integration the request needs has no credentials configured."""

    status_code = 503

    def __init__(self, message: str, code: str = "service_unavailable"):
        super().__init__(message, data={"code": code})
