"""
Namespace supervisor: one NamespaceMonitor per eligible namespace
"""

import queue
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from .context import NamespaceContext, PodKiller
from .errors import TransientStreamError
from .logger import WatchdogLogger
from .metrics import WatchdogMetrics
from .models import EventKind, WatchEvent
from .monitor import EXIT_STOPPED, MonitorSettings, NamespaceMonitor
from .streams import StreamClosed, StreamEvent, start_pump

# How often run() checks for a stop request while the inbox is idle
STOP_POLL_SECONDS = 1.0


@dataclass
class MonitorExited:
    monitor: NamespaceMonitor


class NamespaceSupervisor:
    """Follows the namespace lifecycle stream and owns the monitor registry.

    The API replays an ADDED event for every existing namespace each time
    the namespace watch is opened, so ADDED for a tracked namespace is a
    no-op. The registry is only touched from the thread running ``run``;
    monitors report their exit by posting to ``inbox``.
    """

    def __init__(self, k8s_client: Any, namespace_filter: "re.Pattern", grace_period: timedelta,
                 kill_pod: PodKiller, metrics: WatchdogMetrics,
                 settings: Optional[MonitorSettings] = None,
                 join_timeout: float = 5.0,
                 now_fn: Callable[[], datetime] = datetime.now,
                 logger: Optional[WatchdogLogger] = None):
        self.client = k8s_client
        self.namespace_filter = namespace_filter
        self.grace_period = grace_period
        self.kill_pod = kill_pod
        self.metrics = metrics
        self.settings = settings or MonitorSettings()
        self.join_timeout = join_timeout
        self.now_fn = now_fn
        self.logger = logger or WatchdogLogger(component="supervisor")

        self.registry: Dict[str, NamespaceMonitor] = {}
        self.inbox: "queue.Queue[Any]" = queue.Queue()
        self.backoff = self.settings.make_backoff()

        self._stopping = threading.Event()
        self._stream = None
        self._generation = 0
        self._events_since_subscribe = 0

    @property
    def generation(self) -> int:
        return self._generation

    def is_eligible(self, namespace: str) -> bool:
        return self.namespace_filter.search(namespace) is not None

    def run(self) -> None:
        """Watch namespaces until ``request_stop`` is called"""
        self.logger.log_info("Starting to watch namespaces",
                             namespace_filter=self.namespace_filter.pattern)
        try:
            self.subscribe()
            while not self._stopping.is_set():
                try:
                    message = self.inbox.get(timeout=STOP_POLL_SECONDS)
                except queue.Empty:
                    continue
                self.handle(message)
        finally:
            self.shutdown()

    def request_stop(self) -> None:
        """Ask ``run`` to return. Safe to call from a signal handler."""
        self._stopping.set()

    def handle(self, message: Any) -> None:
        if isinstance(message, MonitorExited):
            self.handle_monitor_exit(message.monitor)
            return

        if message.generation != self._generation:
            return

        if isinstance(message, StreamClosed):
            self._handle_closed(message.error)
        elif isinstance(message, StreamEvent):
            self.handle_namespace_event(message.event)

    def handle_namespace_event(self, event: WatchEvent) -> None:
        if event.kind is EventKind.ERROR:
            self._handle_closed(TransientStreamError("namespaces", event.raw))
            return

        if event.kind is None or event.name is None:
            self.logger.log_warning("Ignoring malformed namespace event", error=str(event.error))
            return

        self._events_since_subscribe += 1

        if event.kind is EventKind.ADDED:
            self._namespace_added(event.name)
        elif event.kind is EventKind.DELETED:
            self._namespace_deleted(event.name)
        else:
            # Namespace status changes carry nothing actionable
            self.logger.log_debug("Namespace modified", namespace=event.name)

    def handle_monitor_exit(self, monitor: NamespaceMonitor) -> None:
        """Replace a monitor that exited without being asked to"""
        if self.registry.get(monitor.namespace) is not monitor:
            return

        if monitor.exit_reason == EXIT_STOPPED or self._stopping.is_set():
            del self.registry[monitor.namespace]
            self._update_gauge()
            return

        self.logger.log_warning(
            "Namespace monitor exited, restarting it",
            namespace=monitor.namespace,
            reason=monitor.exit_reason
        )
        # Same context: the pod table and health state survive the restart
        self.registry[monitor.namespace] = self._spawn(monitor.context)

    def _namespace_added(self, namespace: str) -> None:
        if not self.is_eligible(namespace):
            self.logger.log_debug("Namespace ignored by filter", namespace=namespace)
            return

        if namespace in self.registry:
            self.logger.log_debug("Namespace already watched", namespace=namespace)
            return

        context = NamespaceContext(
            namespace=namespace,
            grace_period=self.grace_period,
            kill_pod=self.kill_pod,
            metrics=self.metrics,
        )
        self.registry[namespace] = self._spawn(context)
        self._update_gauge()
        self.logger.log_namespace_event(EventKind.ADDED.value, namespace, "monitor_started")

    def _namespace_deleted(self, namespace: str) -> None:
        monitor = self.registry.pop(namespace, None)
        if monitor is None:
            self.logger.log_debug("Deleted namespace was not watched", namespace=namespace)
            return

        monitor.stop()
        if not monitor.join(self.join_timeout):
            self.logger.log_warning("Namespace monitor did not stop in time", namespace=namespace,
                                    timeout_seconds=self.join_timeout)
        self._update_gauge()
        self.logger.log_namespace_event(EventKind.DELETED.value, namespace, "monitor_stopped")

    def _spawn(self, context: NamespaceContext) -> NamespaceMonitor:
        monitor = NamespaceMonitor(
            context,
            self.client,
            settings=self.settings,
            on_exit=lambda m: self.inbox.put(MonitorExited(m)),
            now_fn=self.now_fn,
        )
        monitor.start()
        return monitor

    def subscribe(self) -> None:
        """(Re)open the namespace watch, retrying until it opens or we stop"""
        while not self._stopping.is_set():
            self._close_stream()
            self._generation += 1
            self._events_since_subscribe = 0
            try:
                self._stream = self.client.watch_namespaces()
            except Exception as e:
                self._wait_before_reconnect(e)
                continue

            start_pump(self._stream, self.inbox, self._generation,
                       name=f"namespaces-{self._generation}")
            return

    def _handle_closed(self, error: Optional[BaseException]) -> None:
        """Resubscribe, leaving every tracked namespace and its monitor alone"""
        self.metrics.stream_reconnects.labels(stream="namespaces").inc()

        if error is None or self._events_since_subscribe > 0:
            self.backoff.reset()
        if error is None:
            self.logger.log_stream_closed("namespaces", None)
            self.subscribe()
            return

        self._wait_before_reconnect(error)
        self.subscribe()

    def _wait_before_reconnect(self, error: Optional[BaseException]) -> None:
        delay = self.backoff.next_delay()
        self.logger.log_stream_closed("namespaces", error, delay)
        self._stopping.wait(delay.total_seconds())

    def _close_stream(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream = None

    def _update_gauge(self) -> None:
        self.metrics.watched_namespaces.set(len(self.registry))

    def shutdown(self) -> None:
        """Stop the namespace watch and every monitor, waiting for each to exit"""
        self._stopping.set()
        self._close_stream()

        monitors = list(self.registry.values())
        for monitor in monitors:
            monitor.stop()
        for monitor in monitors:
            if not monitor.join(self.join_timeout):
                self.logger.log_warning("Namespace monitor did not stop in time",
                                        namespace=monitor.namespace)

        self.registry.clear()
        self._update_gauge()
        self.logger.log_info("Supervisor stopped", monitors_stopped=len(monitors))
