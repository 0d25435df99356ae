"""
Per-namespace state owned by a NamespaceMonitor
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from .logger import WatchdogLogger
from .metrics import WatchdogMetrics
from .models import ClusterState, PodObservation

# (namespace, pod name, last observation of the pod)
PodKiller = Callable[[str, str, PodObservation], None]


@dataclass
class NamespaceContext:
    """Everything needed to watch a single namespace over time

    ``pods`` and ``cluster_state`` are only written by the monitor thread
    bound to this context. ``stop_event`` stays set once the namespace is
    gone, so a monitor busy reconnecting still sees it on its next check.
    """

    namespace: str
    grace_period: timedelta
    kill_pod: PodKiller
    metrics: WatchdogMetrics
    pods: Dict[str, PodObservation] = field(default_factory=dict)
    cluster_state: Optional[ClusterState] = None
    stop_event: threading.Event = field(default_factory=threading.Event)
    logger: Optional[WatchdogLogger] = None

    def __post_init__(self):
        if self.cluster_state is None:
            self.cluster_state = ClusterState.from_unhealthy({}, datetime.now())
        if self.logger is None:
            self.logger = WatchdogLogger(namespace=self.namespace)
        self.kill_counter = self.metrics.kill_counter(self.namespace)
