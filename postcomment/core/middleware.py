"""Request middleware: logging context and access log."""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from postcomment.core.context import (
    RequestContext,
    begin_request,
    bind_user,
    clear_context,
)
from postcomment.core.logging import get_logger


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"
TRACEPARENT_HEADER = "traceparent"
USER_ID_HEADER = "X-User-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Opens the logging context for each request and logs its outcome.

    The request id comes from ``X-Request-ID`` (generated when absent) and is
    echoed on the response. ``X-Trace-ID`` or a W3C ``traceparent`` supplies
    the trace id; ``X-User-Id`` from the gateway supplies the caller.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or ["/health"])

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        context = _open_context(request)
        request.state.request_id = context.request_id
        path = request.url.path
        logged = self.log_requests and not path.startswith(self.exclude_paths)
        started = time.perf_counter()

        if logged:
            logger.info("request_started", method=request.method, path=path)
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                error_type=type(e).__name__,
                duration_ms=_elapsed_ms(started),
            )
            clear_context()
            raise

        if logged:
            log = logger.warning if response.status_code >= 400 else logger.info
            log(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )
        clear_context()
        response.headers[REQUEST_ID_HEADER] = context.request_id
        return response


def _open_context(request: Request) -> RequestContext:
    headers = request.headers
    context = begin_request(
        headers.get(REQUEST_ID_HEADER),
        headers.get(TRACE_ID_HEADER)
        or _extract_traceparent(headers.get(TRACEPARENT_HEADER)),
    )
    raw_user_id = headers.get(USER_ID_HEADER, "")
    if raw_user_id.isdigit():
        bind_user(int(raw_user_id))
    return context


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _extract_traceparent(traceparent: str | None) -> str | None:
    """Trace id of a ``{version}-{trace-id}-{parent-id}-{flags}`` header."""
    if not traceparent:
        return None
    parts = traceparent.split("-")
    return parts[1] if len(parts) >= 2 else None
