"""Background ingestion service for the HTTP app."""
import asyncio
import structlog
from ..config import Settings
from ..correlator import IdentityCorrelator
from ..metrics import Metrics
from ..pipeline import PipelineStats, WatcherPipeline
from ..sources import FileLineSource, LogArchive, ServerProcess, SourceError
from .notification_bus import NotificationBus, bus

log = structlog.get_logger()


def build_source(settings: Settings) -> FileLineSource | ServerProcess | None:
    """
    Create the line source selected by SOURCE_MODE.

    Raises:
        SourceError: The selected mode is missing its path setting
    """
    if settings.SOURCE_MODE == "process":
        if not settings.START_SCRIPT:
            raise SourceError("SOURCE_MODE=process requires START_SCRIPT")
        return ServerProcess(settings.START_SCRIPT)
    if settings.SOURCE_MODE == "file":
        if not settings.LOG_FILE:
            raise SourceError("SOURCE_MODE=file requires LOG_FILE")
        return FileLineSource(settings.LOG_FILE, follow=settings.FOLLOW_LOG_FILE)
    return None


class WatcherService:
    """Owns the correlator and runs the pipeline as a background task."""

    def __init__(self, correlator: IdentityCorrelator | None = None, notification_bus: NotificationBus | None = None):
        self.correlator = correlator or IdentityCorrelator()
        self.bus = notification_bus or bus
        self.pipeline: WatcherPipeline | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stats(self) -> PipelineStats | None:
        return self.pipeline.stats if self.pipeline else None

    def start(self, settings: Settings, metrics: Metrics | None = None) -> bool:
        """
        Start ingesting in the background.

        Returns:
            False when SOURCE_MODE is "none" and nothing was started
        """
        source = build_source(settings)
        if source is None:
            log.info("watcher.idle", reason="SOURCE_MODE=none")
            return False

        archive = LogArchive(settings.ARCHIVE_DIR) if settings.ARCHIVE_DIR else None
        self.pipeline = WatcherPipeline(
            source,
            self.correlator,
            self.bus,
            archive=archive,
            metrics=metrics,
        )
        self._task = asyncio.create_task(self.pipeline.run())
        self._task.add_done_callback(self._on_done)
        return True

    async def stop(self):
        """Stop the pipeline and wait for it to finish."""
        if self.pipeline is None or self._task is None:
            return
        await self.pipeline.stop()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=5.0)
        except asyncio.TimeoutError:
            self._task.cancel()
        except Exception:
            # Already logged by the done callback
            pass

    @staticmethod
    def _on_done(task: asyncio.Task):
        if task.cancelled():
            log.info("watcher.cancelled")
        elif task.exception() is not None:
            log.error("watcher.failed", error=str(task.exception()))
        else:
            log.info("watcher.finished")


# Global watcher instance
watcher = WatcherService()
