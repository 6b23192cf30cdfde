# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Request-id propagation and per-request Prometheus metrics.
"""

import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from teamflow.core.logging import request_id_var
from teamflow.metrics.prometheus import HTTP_ERRORS, REQUEST_COUNT, REQUEST_LATENCY

ROUTE_WORDS = frozenset({
    "api", "v1", "users", "teams", "tasks", "attachments", "admin",
    "mine", "eligible", "roster", "members", "leader", "status", "comments",
    "permissions", "promote", "demote", "activate", "deactivate",
    "consistency", "reconcile",
})

UNTRACKED = frozenset({
    "/health", "/health/ready", "/metrics", "/openapi.json", "/docs", "/redoc",
})


def route_label(path: str) -> str:
    """Collapse ids out of a path so label cardinality stays bounded."""
    segments = [s for s in path.split("/") if s]
    if not segments:
        return "/"
    return "/" + "/".join(s if s in ROUTE_WORDS else "{id}" for s in segments)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, and echo it back."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        if request.url.path in UNTRACKED:
            return response

        endpoint = route_label(request.url.path)
        code = str(response.status_code)
        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=code).inc()
        REQUEST_LATENCY.labels(method=request.method, endpoint=endpoint).observe(
            time.perf_counter() - started
        )
        if response.status_code >= 400:
            HTTP_ERRORS.labels(method=request.method, endpoint=endpoint, status=code).inc()
        return response
