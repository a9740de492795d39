"""Core infrastructure for the NoLSAF backend."""

from .exceptions import (
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    NolsafException,
    NotFoundError,
    PermissionError,
    ResourceAlreadyExistsError,
    ServiceUnavailableError,
    TooManyAttemptsError,
    ValidationError,
)
from .ttl_cache import TTLCache, periodic_sweep, register_cache, sweep_all

__all__ = [
    "NolsafException",
    "ResourceAlreadyExistsError",
    "ConflictError",
    "ValidationError",
    "PermissionError",
    "AuthenticationError",
    "NotFoundError",
    "ExternalServiceError",
    "ServiceUnavailableError",
    "TooManyAttemptsError",
    "TTLCache",
    "register_cache",
    "sweep_all",
    "periodic_sweep",
]
