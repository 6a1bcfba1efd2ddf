"""Single source for request trace_id, plus a middleware that logs each request with it."""
import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("uvicorn.error")

SCOPE_KEY = "trace_id"
HEADER = "X-Trace-Id"

_WEBHOOK_SECRET_RE = re.compile(r"(/webhook/)[^/]+")


def ensure_trace_id(scope: dict) -> str:
    """Get or set trace_id on ASGI scope. Returns the same trace_id for the request lifecycle."""
    tid = scope.get(SCOPE_KEY)
    if tid and isinstance(tid, str):
        return tid
    tid = str(uuid.uuid4())[:16]
    scope[SCOPE_KEY] = tid
    return tid


def mask_path(path: str) -> str:
    return _WEBHOOK_SECRET_RE.sub(r"\1[MASKED]", path)


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = ensure_trace_id(request.scope)
        request.state.trace_id = trace_id
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)
        response.headers[HEADER] = trace_id
        logger.info(
            "request trace_id=%s method=%s path=%s status=%s latency_ms=%s",
            trace_id, request.method, mask_path(request.url.path), response.status_code, latency_ms,
        )
        return response
