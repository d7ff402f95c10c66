"""Line ingestion pipeline: source -> extractor -> correlator -> notification bus."""
import asyncio
import math
import time
from typing import AsyncIterable
import structlog
from pydantic import BaseModel
from .correlator import IdentityCorrelator
from .event_models import Notification, ServerStatus, WorldPersisted
from .metrics import Metrics
from .parser import EventExtractor, ParseError
from .services.notification_bus import NotificationBus
from .sources import FileLineSource, LogArchive, ServerProcess

log = structlog.get_logger()


class PipelineStats(BaseModel):
    running: bool = False
    lines: int = 0
    events: int = 0
    parse_failures: int = 0
    notifications: int = 0
    delivery_failures: int = 0
    delivery_backlog: int = 0
    started_at: float | None = None
    finished_at: float | None = None
    error: str | None = None


class WatcherPipeline:
    """
    Feeds server log lines through extraction and correlation.

    Lines are handled strictly in arrival order. Parse failures are logged
    and skipped; a failing source (I/O error, server crash on read) ends
    the run and propagates to the caller.

    While `run` is active, notifications are queued and handed to the bus
    by a separate delivery task, so a slow sink delays delivery but never
    ingestion. The queue is drained before `run` returns.
    """

    def __init__(
        self,
        source: AsyncIterable[str],
        correlator: IdentityCorrelator,
        bus: NotificationBus,
        extractor: EventExtractor | None = None,
        archive: LogArchive | None = None,
        metrics: Metrics | None = None,
        announce_status: bool | None = None,
    ):
        """
        Args:
            source: Async iterable of raw log lines
            correlator: Identity state to update
            bus: Where notifications are published
            extractor: Event extractor (a fresh one by default)
            archive: Optional raw copy of every line
            metrics: Optional Prometheus metrics
            announce_status: Publish server started/stopping notices;
                defaults to True when supervising a server process
        """
        self.source = source
        self.correlator = correlator
        self.bus = bus
        self.extractor = extractor or EventExtractor()
        self.archive = archive
        self.metrics = metrics
        if announce_status is None:
            announce_status = isinstance(source, ServerProcess)
        self.announce_status = announce_status
        self.stats = PipelineStats()
        self._outbox: asyncio.Queue[Notification | None] = asyncio.Queue()
        self._delivery_task: asyncio.Task | None = None
        self._start_announced = False
        self._stop_announced = False

    async def run(self) -> PipelineStats:
        """
        Consume the source until end of stream.

        Returns:
            Final pipeline statistics
        """
        self.stats.running = True
        self.stats.started_at = time.time()
        self._delivery_task = asyncio.create_task(self._deliver_queued())
        log.info("pipeline.started", source=type(self.source).__name__)

        try:
            if isinstance(self.source, ServerProcess) and not self.source.running:
                await self.source.start()
            if self.announce_status:
                self._start_announced = True
                await self._send(ServerStatus(status="started"))

            async for line in self.source:
                await self.handle_line(line)

        except asyncio.CancelledError:
            self._stop_announced = True
            self._abandon_delivery()
            raise

        except Exception as e:
            self.stats.error = str(e)
            log.error("pipeline.source_failed", error=str(e), error_type=type(e).__name__)
            raise

        finally:
            if self._start_announced and not self._stop_announced:
                self._stop_announced = True
                await self._send(ServerStatus(status="stopping"))
            if self.archive:
                self.archive.close()
            try:
                await self._drain()
            finally:
                self.stats.running = False
                self.stats.finished_at = time.time()
                log.info("pipeline.finished", **self.stats.model_dump(include={"lines", "events", "parse_failures"}))

        return self.stats

    async def handle_line(self, line: str) -> list[Notification]:
        """
        Process one raw line.

        Returns:
            Notifications the line produced. Outside `run` they are
            published before this returns; during `run` they are queued.
        """
        self.stats.lines += 1
        if self.archive:
            self.archive.write(line)
        if self.metrics:
            self.metrics.record_line()

        try:
            event = self.extractor.extract(line)
        except ParseError as e:
            self.stats.parse_failures += 1
            if self.metrics:
                self.metrics.record_parse_failure(e.kind)
            log.warning("line.parse_failed", error=str(e), error_kind=e.kind, line=e.line)
            return []

        if event is None:
            return []

        self.stats.events += 1
        if self.metrics:
            self.metrics.record_event(event.kind)
            if isinstance(event, WorldPersisted) and math.isfinite(event.duration_ms):
                self.metrics.record_world_save(event.duration_ms)

        # The correlator lock is released by the time apply returns
        notifications = self.correlator.apply(event)

        if self.metrics:
            snapshot = self.correlator.snapshot()
            self.metrics.set_identity_state(
                len(snapshot.identities),
                len(snapshot.pending_peers),
                len(snapshot.pending_characters),
            )

        for notification in notifications:
            await self._send(notification)
        return notifications

    async def stop(self):
        """
        Stop ingesting.

        A supervised server is sent SIGINT after the stopping notice is
        queued; its stdout then closes and `run` returns. A followed file
        stops at its next poll.
        """
        if isinstance(self.source, ServerProcess):
            if self.announce_status and not self._stop_announced:
                self._stop_announced = True
                await self._send(ServerStatus(status="stopping"))
            await self.source.shutdown()
        elif isinstance(self.source, FileLineSource):
            self.source.stop()

    async def _send(self, notification: Notification):
        if self._delivery_task is None or self._delivery_task.done():
            await self._publish(notification)
            return
        self._outbox.put_nowait(notification)
        self.stats.delivery_backlog = self._outbox.qsize()

    async def _deliver_queued(self):
        while True:
            notification = await self._outbox.get()
            self.stats.delivery_backlog = self._outbox.qsize()
            if notification is None:
                return
            await self._publish(notification)

    async def _drain(self):
        """Wait for queued notifications to be delivered."""
        if self._delivery_task is None:
            return
        self._outbox.put_nowait(None)
        try:
            await self._delivery_task
        except asyncio.CancelledError:
            self._abandon_delivery()
            raise
        self._delivery_task = None

    def _abandon_delivery(self):
        if self._delivery_task is not None:
            self._delivery_task.cancel()
            self._delivery_task = None
            log.warning("pipeline.delivery_abandoned", pending=self._outbox.qsize())

    async def _publish(self, notification: Notification):
        self.stats.notifications += 1
        if self.metrics:
            self.metrics.record_notification(notification.kind)
        if not await self.bus.publish(notification):
            self.stats.delivery_failures += 1
            if self.metrics:
                self.metrics.record_delivery_failure(notification.kind)
