from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal_id", default=None)
trace_ctx_var: ContextVar[str | None] = ContextVar("trace", default=None)
logger = logging.getLogger("tasktracker.request")

TRACE_HEADER = "X-Cloud-Trace-Context"


def trace_from_header(value: str | None, project_id: str | None) -> str | None:
    """Turn ``TRACE_ID/SPAN_ID;o=1`` into a Cloud Logging trace resource name."""
    if not value or not project_id:
        return None
    trace_id = value.split("/")[0].strip()
    if not trace_id:
        return None
    return f"projects/{project_id}/traces/{trace_id}"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Give every request a correlation id and trace, and log its completion."""

    def __init__(self, app, header_name: str = "X-Request-ID", project_id: str | None = None) -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name
        self.project_id = project_id

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid4())
        token = request_id_ctx_var.set(request_id)
        principal_token = principal_ctx_var.set(None)
        trace_token = trace_ctx_var.set(trace_from_header(request.headers.get(TRACE_HEADER), self.project_id))
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                # the 500 body is rendered further out, by the server error handler
                self._log_completion(request, 500, start)
                raise
            duration_ms = self._log_completion(request, response.status_code, start)
            response.headers[self.header_name] = request_id
            response.headers.setdefault("X-Response-Time", f"{duration_ms:.2f}ms")
            return response
        finally:
            request_id_ctx_var.reset(token)
            principal_ctx_var.reset(principal_token)
            trace_ctx_var.reset(trace_token)

    def _log_completion(self, request: Request, status_code: int, start: float) -> float:
        duration_ms = (time.perf_counter() - start) * 1000
        extra = {
            "extra_data": {
                "method": request.method,
                "path": request.url.path,
                "status": status_code,
                "duration_ms": round(duration_ms, 2),
            }
        }
        principal = getattr(request.state, "principal", None)
        if principal:
            extra["extra_data"]["principal"] = principal
        logger.info("request.completed", extra=extra)
        return duration_ms
