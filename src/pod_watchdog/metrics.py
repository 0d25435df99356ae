"""
Prometheus metrics exposed by Pod Watchdog
"""

from typing import Optional
from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, start_http_server


class WatchdogMetrics:
    """Metrics sink injected into the supervisor and every monitor"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY

        self.pods_killed = Counter(
            'pods_killed_total',
            'The total number of times a pod has been killed by the watchdog',
            ['namespace'],
            registry=self.registry
        )

        self.retaliations_suppressed = Counter(
            'retaliations_suppressed_total',
            'Evaluation cycles of an unhealthy namespace that did not retaliate, by reason',
            ['namespace', 'reason'],
            registry=self.registry
        )

        self.stream_reconnects = Counter(
            'stream_reconnects_total',
            'Number of times a watch stream had to be reopened',
            ['stream'],
            registry=self.registry
        )

        self.watched_namespaces = Gauge(
            'watched_namespaces',
            'Number of namespaces currently monitored',
            registry=self.registry
        )

    def kill_counter(self, namespace: str) -> Counter:
        """Per-namespace child of pods_killed_total"""
        return self.pods_killed.labels(namespace=namespace)


def start_metrics_server(port: int, registry: Optional[CollectorRegistry] = None) -> None:
    """Serve /metrics on the given port from a background thread"""
    start_http_server(port, registry=registry if registry is not None else REGISTRY)
