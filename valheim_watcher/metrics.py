"""
Prometheus metrics for the watcher service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import os


class Metrics:
    """
    Centralized metrics for the watcher service.
    """

    def __init__(self, service_name: str = "valheim-watcher", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "route", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "route"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            registry=self.registry,
        )

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Log stream metrics
        self.lines_total = Counter(
            "valheim_lines_total",
            "Server log lines read",
            registry=self.registry,
        )

        self.events_total = Counter(
            "valheim_events_total",
            "Events extracted from server log lines",
            ["kind"],
            registry=self.registry,
        )

        self.parse_failures_total = Counter(
            "valheim_parse_failures_total",
            "Recognised lines with malformed fields",
            ["error"],
            registry=self.registry,
        )

        self.notifications_total = Counter(
            "valheim_notifications_total",
            "Notifications produced by the correlator",
            ["kind"],
            registry=self.registry,
        )

        self.delivery_failures_total = Counter(
            "valheim_delivery_failures_total",
            "Notifications the sink failed to deliver",
            ["kind"],
            registry=self.registry,
        )

        self.world_save_duration = Histogram(
            "valheim_world_save_duration_ms",
            "World save duration reported by the server",
            buckets=(10, 25, 50, 100, 250, 500, 1000, 2500, 5000),
            registry=self.registry,
        )

        # Correlator state
        self.identities_active = Gauge(
            "valheim_identities_active",
            "Peers currently bound to a character",
            registry=self.registry,
        )

        self.pending_peers = Gauge(
            "valheim_pending_peers",
            "Connected peers waiting for a character",
            registry=self.registry,
        )

        self.pending_characters = Gauge(
            "valheim_pending_characters",
            "Spawned characters waiting for a peer",
            registry=self.registry,
        )

        # System Metrics
        self._setup_process_metrics()

    def _setup_process_metrics(self):
        """Set up process-level metrics using psutil."""
        self.process_cpu_seconds = Counter(
            "process_cpu_seconds_total",
            "Total CPU time consumed by process",
            ["service"],
            registry=self.registry,
        )

        self.process_memory_bytes = Gauge(
            "process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )

        self.process_open_fds = Gauge(
            "process_open_fds",
            "Number of open file descriptors",
            ["service"],
            registry=self.registry,
        )

        self._last_cpu_total = 0.0
        self.update_system_metrics()

    def update_system_metrics(self):
        """Update system metrics from psutil."""
        try:
            process = psutil.Process(os.getpid())

            cpu_times = process.cpu_times()
            cpu_total = cpu_times.user + cpu_times.system
            cpu_diff = cpu_total - self._last_cpu_total
            if cpu_diff > 0:
                self.process_cpu_seconds.labels(service=self.service_name).inc(cpu_diff)
            self._last_cpu_total = cpu_total

            memory_info = process.memory_info()
            self.process_memory_bytes.labels(service=self.service_name).set(memory_info.rss)

            try:
                num_fds = process.num_fds()
                self.process_open_fds.labels(service=self.service_name).set(num_fds)
            except AttributeError:
                # num_fds() not available on all platforms
                pass

        except psutil.Error:
            pass

    def record_http_request(self, method: str, route: str, status: int, duration: float | None = None):
        self.http_requests_total.labels(
            service=self.service_name, method=method, route=route, status=status
        ).inc()
        if duration is not None:
            self.http_request_duration.labels(
                service=self.service_name, method=method, route=route
            ).observe(duration)

    def record_line(self):
        self.lines_total.inc()

    def record_event(self, kind: str):
        self.events_total.labels(kind=kind).inc()

    def record_parse_failure(self, error: str):
        self.parse_failures_total.labels(error=error).inc()

    def record_notification(self, kind: str):
        self.notifications_total.labels(kind=kind).inc()

    def record_delivery_failure(self, kind: str):
        self.delivery_failures_total.labels(kind=kind).inc()

    def record_world_save(self, duration_ms: float):
        self.world_save_duration.observe(duration_ms)

    def set_identity_state(self, identities: int, pending_peers: int, pending_characters: int):
        """Publish the size of the identity table and pending queues."""
        self.identities_active.set(identities)
        self.pending_peers.set(pending_peers)
        self.pending_characters.set(pending_characters)
