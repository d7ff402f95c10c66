"""
Health checks for liveness and readiness probes.
"""
from datetime import datetime, timezone
from typing import Dict, Any
import psutil
from .logging import get_logger
from .services.notification_bus import NotificationBus
from .services.watcher import WatcherService

logger = get_logger()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HealthChecker:
    """
    Health checker for the watcher service.

    Provides:
    - Liveness checks (is the service running?)
    - Readiness checks (is the sink reachable and is ingestion alive?)
    """

    def __init__(self, service_name: str = "valheim-watcher", version: str = "0.1.0"):
        self.service_name = service_name
        self.version = version

    def liveness(self) -> Dict[str, Any]:
        """
        Liveness check - basic health check.

        Returns:
            dict: Health status with service info and timestamp
        """
        return {
            "status": "ok",
            "service": self.service_name,
            "version": self.version,
            "timestamp": _now(),
        }

    async def readiness(self, notification_bus: NotificationBus, watcher: WatcherService) -> Dict[str, Any]:
        """
        Readiness check - comprehensive health check.

        Checks:
        - Notification sink reachability
        - Ingestion pipeline state (a failed pipeline is not ready)
        - Disk space and memory availability

        Returns:
            dict: Readiness status with detailed check results
        """
        checks = {
            "sink": await self._check_sink(notification_bus),
            "pipeline": self._check_pipeline(watcher),
            "disk_space": self._check_disk_space(),
            "memory": self._check_memory(),
        }
        overall_status = "ready"
        if any(check["status"] == "error" for check in checks.values()):
            overall_status = "not_ready"

        return {
            "status": overall_status,
            "service": self.service_name,
            "version": self.version,
            "timestamp": _now(),
            "checks": checks,
        }

    async def _check_sink(self, notification_bus: NotificationBus) -> Dict[str, Any]:
        try:
            healthy = await notification_bus.health_check()
        except Exception as e:
            logger.warning("sink_health_check_failed", error=str(e))
            return {"status": "error", "adapter": notification_bus.adapter_name, "error": str(e)}
        return {
            "status": "ok" if healthy else "error",
            "adapter": notification_bus.adapter_name,
        }

    def _check_pipeline(self, watcher: WatcherService) -> Dict[str, Any]:
        stats = watcher.stats
        if stats is None:
            return {"status": "skipped", "message": "No line source configured"}
        if stats.error:
            return {"status": "error", "error": stats.error}
        return {
            "status": "ok",
            "running": watcher.running,
            "lines": stats.lines,
            "events": stats.events,
        }

    def _check_disk_space(self, threshold_gb: float = 1.0) -> Dict[str, Any]:
        """
        Check available disk space.

        Args:
            threshold_gb: Minimum available disk space in GB (default: 1.0)
        """
        try:
            disk = psutil.disk_usage("/")
            available_gb = disk.free / (1024**3)

            if available_gb < threshold_gb:
                status = "error"
            elif available_gb < threshold_gb * 2:
                status = "warning"
            else:
                status = "ok"

            return {
                "status": status,
                "available_gb": round(available_gb, 2),
                "total_gb": round(disk.total / (1024**3), 2),
                "used_percent": disk.percent,
            }

        except Exception as e:
            logger.warning("disk_health_check_failed", error=str(e))
            return {
                "status": "error",
                "error": str(e),
            }

    def _check_memory(self, threshold_mb: float = 50.0) -> Dict[str, Any]:
        """
        Check available memory.

        Args:
            threshold_mb: Minimum available memory in MB (default: 50.0)
        """
        try:
            memory = psutil.virtual_memory()
            available_mb = memory.available / (1024**2)

            if available_mb < threshold_mb:
                status = "error"
            elif available_mb < threshold_mb * 2:
                status = "warning"
            else:
                status = "ok"

            return {
                "status": status,
                "available_mb": round(available_mb, 2),
                "total_mb": round(memory.total / (1024**2), 2),
                "used_percent": memory.percent,
            }

        except Exception as e:
            logger.warning("memory_health_check_failed", error=str(e))
            return {
                "status": "error",
                "error": str(e),
            }
