"""
Pod and namespace health evaluation
"""

from datetime import datetime
from typing import Mapping

from .models import ClusterState, PodObservation, PodPhase


def is_pod_healthy(pod: PodObservation) -> bool:
    """A pod is healthy when Running and every condition is True"""
    if pod.phase is not PodPhase.RUNNING:
        return False

    # Conditions hold the pod's lifecycle steps (Scheduled, Initialized,
    # ContainersReady, Ready...). One missing step means the pod is not serving.
    return all(condition.is_true for condition in pod.conditions)


def evaluate_cluster_state(pods: Mapping[str, PodObservation], now: datetime) -> ClusterState:
    """Compute a fresh state for a namespace, stamped with ``now``"""
    unhealthy = {name: pod for name, pod in pods.items() if not is_pod_healthy(pod)}
    return ClusterState.from_unhealthy(unhealthy, now)


def merge_cluster_state(current: ClusterState, candidate: ClusterState) -> ClusterState:
    """Adopt ``candidate`` only on a material change.

    The grace period is measured from ``since``, so a re-evaluation that
    sees the same state must keep its earlier timestamp.
    """
    if candidate.differs_from(current):
        return candidate
    return current
