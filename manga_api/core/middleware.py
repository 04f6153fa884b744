# File: manga_api/core/middleware.py

"""
HTTP middleware: response-time metrics and security headers.
"""

import logging
import time

from fastapi import FastAPI, Request

from manga_api.core.errors import handle_unexpected

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def endpoint_key(request: Request) -> str:
    """``"<METHOD> <full route template>"``, falling back to the raw path."""
    registry = getattr(request.app.state, "route_registry", None)
    template = None
    if registry is not None:
        route = request.scope.get("route")
        endpoint = getattr(route, "endpoint", None) or request.scope.get("endpoint")
        template = registry.template_for(endpoint)
    return f"{request.method} {template or request.url.path}"


def register_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def track_metrics(request: Request, call_next):
        metrics = request.app.state.metrics
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = round((time.perf_counter() - started) * 1000, 2)
            endpoint = endpoint_key(request)
            metrics.record_response(endpoint, duration, 500)
            metrics.record_error(str(exc) or exc.__class__.__name__, endpoint, 500)
            raise

        duration = round((time.perf_counter() - started) * 1000, 2)
        endpoint = endpoint_key(request)
        metrics.record_response(endpoint, duration, response.status_code)

        if response.status_code >= 400:
            message = getattr(request.state, "error_message", None) or (
                f"HTTP {response.status_code} - {request.method} {request.url.path}"
            )
            metrics.record_error(message, endpoint, response.status_code)

        logger.debug(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration,
            },
        )
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        # Outermost of our middleware; unhandled errors are rendered here so
        # the 500 carries the headers too.
        try:
            response = await call_next(request)
        except Exception as exc:
            response = await handle_unexpected(request, exc)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response
