"""
Request middleware: correlation IDs and HTTP metrics.
"""
import time
import uuid
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from .metrics import Metrics

UNMATCHED_ROUTE = "<unmatched>"


def route_template(request: Request) -> str:
    """
    Path template of the route that served the request.

    `/v1/identities/76561199036446150` is reported as
    `/v1/identities/{peer_id}`, so metric label values stay bounded.
    """
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a correlation ID.

    The X-Correlation-ID header is reused when the client sends one, bound
    to the structlog context and echoed on the response.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            http_method=request.method,
            http_path=request.url.path,
        )

        response = await call_next(request)
        response.headers["x-correlation-id"] = correlation_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts and times API requests per route template."""

    def __init__(self, app, metrics: Metrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/metrics"):
            return await call_next(request)

        log = structlog.get_logger()
        self.metrics.http_requests_active.inc()
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            self.metrics.record_http_request(request.method, route_template(request), 500)
            log.error(
                "http_request_error",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise
        finally:
            self.metrics.http_requests_active.dec()

        duration = time.perf_counter() - started
        route = route_template(request)
        self.metrics.record_http_request(request.method, route, response.status_code, duration)
        log.info(
            "http_request",
            http_route=route,
            http_status=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )
        return response
