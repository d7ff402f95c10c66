"""
valheim-watcher - Valheim dedicated server log watcher.

Features:
- Server log ingestion from a supervised process or a log file
- Peer to character identity correlation
- Notifications to memory, Redis Streams or a Discord webhook
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from .config import get_settings
from .logging import setup_logging, get_logger
from .api.router import router
from .api.ws_router import router as ws_router
from .middleware import CorrelationIdMiddleware, MetricsMiddleware
from .metrics import Metrics
from .health import HealthChecker
from .services.notification_bus import bus
from .services.watcher import watcher

VERSION = "0.1.0"

settings = get_settings()

setup_logging(json_output=settings.LOG_JSON, service_name="valheim-watcher", level=settings.LOG_LEVEL)
logger = get_logger()

metrics = Metrics(service_name="valheim-watcher", version=VERSION)
health_checker = HealthChecker(service_name="valheim-watcher", version=VERSION)

app = FastAPI(
    title="valheim-watcher",
    version=VERSION,
    description="Watches a Valheim dedicated server and tracks who is playing as whom",
)

# Order matters: correlation ID first, then metrics
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware, metrics=metrics)

app.include_router(router)
app.include_router(ws_router)

metrics_app = make_asgi_app(registry=metrics.registry)
app.mount("/metrics", metrics_app)


@app.get("/health")
async def health():
    """
    Liveness probe - basic health check.

    Returns 200 if service is running.
    """
    logger.debug("health_check_liveness")
    return health_checker.liveness()


@app.get("/health/ready")
async def health_ready():
    """
    Readiness probe.

    Returns:
        200: Sink reachable and ingestion healthy
        503: Service is not ready
    """
    logger.debug("health_check_readiness")
    metrics.update_system_metrics()
    result = await health_checker.readiness(bus, watcher)
    status_code = 200 if result["status"] == "ready" else 503
    return JSONResponse(result, status_code=status_code)


@app.on_event("startup")
async def startup_event():
    """Log startup and begin ingesting server output."""
    logger.info(
        "service_starting",
        version=VERSION,
        env=settings.ENV,
        source_mode=settings.SOURCE_MODE,
        sink=bus.adapter_name,
    )
    watcher.start(settings, metrics)


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the server (if supervised) and flush the archive."""
    logger.info("service_stopping")
    await watcher.stop()
    await bus.close()
    metrics.app_up.labels(service="valheim-watcher", version=VERSION).set(0)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "valheim_watcher.main:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
    )
