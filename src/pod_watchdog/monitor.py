"""
One worker per namespace: records pod states, keeps the namespace health
up to date and retaliates when it has been unhealthy for too long.
"""

import queue
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from .context import NamespaceContext
from .errors import TransientStreamError
from .health import evaluate_cluster_state, merge_cluster_state
from .models import ClusterState, EventKind, WatchEvent
from .retaliation import retaliate
from .streams import ReconnectBackoff, StreamClosed, StreamEvent, start_pump

_STOP = object()

EXIT_STOPPED = "stopped"
EXIT_RECONNECT_EXHAUSTED = "reconnect_exhausted"
EXIT_CRASHED = "crashed"


@dataclass
class MonitorSettings:
    liveness_interval: timedelta = timedelta(minutes=1)
    reconnect_backoff_seconds: float = 1.0
    reconnect_backoff_max_seconds: float = 30.0
    max_reconnect_attempts: int = 5
    jitter: bool = True

    @classmethod
    def from_config(cls, config) -> "MonitorSettings":
        return cls(
            liveness_interval=timedelta(seconds=config.liveness_interval_seconds),
            reconnect_backoff_seconds=config.reconnect_backoff_seconds,
            reconnect_backoff_max_seconds=config.reconnect_backoff_max_seconds,
            max_reconnect_attempts=config.max_reconnect_attempts,
        )

    def make_backoff(self) -> ReconnectBackoff:
        return ReconnectBackoff(self.reconnect_backoff_seconds, self.reconnect_backoff_max_seconds,
                                jitter=self.jitter)


class NamespaceMonitor:
    """Watches the pods of a single namespace on its own thread.

    The thread owns ``context.pods`` and ``context.cluster_state``. A pump
    thread per pod subscription feeds events into ``inbox``; each
    subscription gets a new generation so messages from a replaced stream
    are dropped.

    Every handled message, and every ``liveness_interval`` of silence, runs
    one evaluation cycle: recompute the namespace state, keep the old one
    unless it materially changed, then give retaliation a chance.
    """

    def __init__(self, context: NamespaceContext, k8s_client: Any,
                 settings: Optional[MonitorSettings] = None,
                 on_exit: Optional[Callable[["NamespaceMonitor"], None]] = None,
                 now_fn: Callable[[], datetime] = datetime.now):
        self.context = context
        self.client = k8s_client
        self.settings = settings or MonitorSettings()
        self.on_exit = on_exit
        self.now_fn = now_fn
        self.logger = context.logger
        self.backoff = self.settings.make_backoff()
        self.inbox: "queue.Queue[Any]" = queue.Queue()
        self.exit_reason: Optional[str] = None

        self._stream = None
        self._generation = 0
        self._events_since_subscribe = 0
        self._thread: Optional[threading.Thread] = None

    @property
    def namespace(self) -> str:
        return self.context.namespace

    @property
    def stream_name(self) -> str:
        return f"pods/{self.namespace}"

    @property
    def generation(self) -> int:
        """Identifier of the current pod subscription"""
        return self._generation

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name=f"monitor-{self.namespace}", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Ask the monitor to stop. Never blocks."""
        self.context.stop_event.set()
        self.inbox.put(_STOP)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the monitor thread, True once it has exited"""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        try:
            if self.subscribe():
                self.logger.log_info("Starting to watch pods change")
                while self.step():
                    pass
        except Exception as e:
            self.exit_reason = EXIT_CRASHED
            self.logger.log_error(e, context="namespace monitor")
        finally:
            self._close_stream()
            if self.exit_reason is None:
                self.exit_reason = EXIT_STOPPED
            self.logger.log_info("Stopped watching pods changes", reason=self.exit_reason)
            if self.on_exit is not None:
                self.on_exit(self)

    def step(self) -> bool:
        """Handle one inbox message (or a liveness tick) then run a cycle.

        Returns False when the monitor has to exit.
        """
        try:
            message = self.inbox.get(timeout=self.settings.liveness_interval.total_seconds())
        except queue.Empty:
            message = None

        if message is _STOP or self.context.stop_event.is_set():
            self.logger.log_info("Notified to stop, stopping to watch for pods changes")
            return False

        if not self.handle(message):
            return False

        self.run_cycle()
        return True

    def handle(self, message: Any) -> bool:
        if message is None:
            self.logger.log_debug("Liveness tick, forcing a health check")
            return True

        if message.generation != self._generation:
            return True

        if isinstance(message, StreamClosed):
            return self._handle_closed(message.error)

        if isinstance(message, StreamEvent):
            return self.handle_pod_event(message.event)

        return True

    def handle_pod_event(self, event: WatchEvent) -> bool:
        """Record a pod lifecycle event. False when the monitor has to exit."""
        if event.kind is EventKind.ERROR:
            return self._handle_closed(TransientStreamError(self.stream_name, event.raw))

        if event.kind is None or event.pod is None:
            self.logger.log_warning("Ignoring malformed pod event", error=str(event.error))
            return True

        self._events_since_subscribe += 1
        self.logger.log_pod_event(event.kind.value, event.pod)

        if event.kind is EventKind.DELETED:
            self.context.pods.pop(event.pod.name, None)
        else:
            self.context.pods[event.pod.name] = event.pod

        return True

    def run_cycle(self, now: Optional[datetime] = None) -> ClusterState:
        """Refresh the namespace state and retaliate if needed"""
        now = now or self.now_fn()
        context = self.context

        self.update_cluster_state(now)

        if retaliate(context, now):
            # A freshly killed pod must survive a full grace period again
            context.cluster_state.since = now

        return context.cluster_state

    def update_cluster_state(self, now: datetime) -> ClusterState:
        context = self.context
        previous = context.cluster_state
        context.cluster_state = merge_cluster_state(previous, evaluate_cluster_state(context.pods, now))

        if context.cluster_state is not previous:
            self.logger.log_health_transition(previous, context.cluster_state)
        else:
            self.logger.log_cluster_state(context.cluster_state)

        return context.cluster_state

    def subscribe(self) -> bool:
        """Open a new pod watch, backing off on failure.

        Returns False if the monitor was stopped or gave up reconnecting.
        """
        while not self.context.stop_event.is_set():
            self._close_stream()
            self._generation += 1
            self._events_since_subscribe = 0
            try:
                self._stream = self.client.watch_pods(self.namespace)
            except Exception as e:
                if not self._wait_before_reconnect(e):
                    return False
                continue

            start_pump(self._stream, self.inbox, self._generation,
                       name=f"pods-{self.namespace}-{self._generation}")
            return True

        return False

    def _handle_closed(self, error: Optional[BaseException]) -> bool:
        """Resubscribe after the pod stream closed, keeping pods and state"""
        self.context.metrics.stream_reconnects.labels(stream="pods").inc()

        # A clean close is the server ending an idle watch, not a failed open
        if error is None or self._events_since_subscribe > 0:
            self.backoff.reset()
        if error is None:
            self.logger.log_stream_closed(self.stream_name, None)
            return self.subscribe()

        if not self._wait_before_reconnect(error):
            return False
        return self.subscribe()

    def _wait_before_reconnect(self, error: Optional[BaseException]) -> bool:
        if self.backoff.failures >= self.settings.max_reconnect_attempts:
            self.exit_reason = EXIT_RECONNECT_EXHAUSTED
            self.logger.log_warning(
                "Giving up on the pod watch",
                stream=self.stream_name,
                attempts=self.backoff.failures,
                error=str(error) if error else None
            )
            return False

        delay = self.backoff.next_delay()
        self.logger.log_stream_closed(self.stream_name, error, delay)
        return not self.context.stop_event.wait(delay.total_seconds())

    def _close_stream(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream = None
