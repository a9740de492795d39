"""
Per-request log context.

Every record logged while a request is being served carries the request id,
the client address and, once the bearer token has been checked, the user id.
"""

import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass, replace

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "x-request-id"

# Polled by load balancers; no access line is written for these
QUIET_PATHS = frozenset({"/api/health"})


@dataclass(frozen=True)
class LogContext:
    request_id: str | None = None
    client_ip: str | None = None
    user_id: int | None = None


_context: ContextVar[LogContext] = ContextVar("log_context", default=LogContext())


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def current_context() -> LogContext:
    return _context.get()


def bind_request(request_id: str, client_ip: str | None) -> None:
    _context.set(LogContext(request_id=request_id, client_ip=client_ip))


def bind_user(user_id: int) -> None:
    """Attach the authenticated user to the current request's log context."""
    _context.set(replace(_context.get(), user_id=user_id))


class ContextFilter(logging.Filter):
    """Copies the request context onto records that do not set it themselves."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = _context.get()
        if not getattr(record, "request_id", None):
            record.request_id = ctx.request_id or "-"
        if ctx.client_ip and not hasattr(record, "client_ip"):
            record.client_ip = ctx.client_ip
        if ctx.user_id is not None and getattr(record, "user_id", None) is None:
            record.user_id = ctx.user_id
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id for log correlation and writes one access line per request.

    A caller-supplied ``x-request-id`` is reused; the id is echoed back on
    the response either way.
    """

    def __init__(self, app, logger: logging.Logger | None = None):
        super().__init__(app)
        self.logger = logger or logging.getLogger("nolsaf_backend.access")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        bind_request(request_id, request.client.host if request.client else None)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        if request.url.path not in QUIET_PATHS:
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            self.logger.log(
                level,
                f"{request.method} {request.url.path} {response.status_code}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "user_id": getattr(request.state, "user_id", None),
                },
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
