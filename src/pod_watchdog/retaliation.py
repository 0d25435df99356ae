"""
Retaliation: deleting the single stuck pod of an unhealthy namespace
"""

from datetime import datetime
from typing import Optional

from .context import NamespaceContext, PodKiller
from .errors import DeleteFailed
from .logger import get_logger
from .models import ClusterHealth, PodObservation

logger = get_logger("pod-watchdog.retaliation")


def retaliate(context: NamespaceContext, now: datetime) -> bool:
    """Kill the only unhealthy pod of a namespace once the grace period elapsed.

    Returns True when a pod was targeted, even if its deletion failed, so the
    caller restarts the grace period clock either way.
    """
    state = context.cluster_state
    log = context.logger

    if state.health is ClusterHealth.HEALTHY:
        return False

    # The state must have been stable for long enough
    elapsed = now - state.since
    if elapsed < context.grace_period:
        log.log_retaliation_suppressed(
            "grace_period",
            elapsed_seconds=elapsed.total_seconds(),
            grace_period_seconds=context.grace_period.total_seconds()
        )
        context.metrics.retaliations_suppressed.labels(
            namespace=context.namespace, reason="grace_period"
        ).inc()
        return False

    # Safeguard against a killing spree: several unhealthy pods point at a
    # systemic failure that deleting pods will not fix.
    if len(state.unhealthy_pods) > 1:
        log.log_retaliation_suppressed(
            "multiple_unhealthy_pods",
            level="info",
            unhealthy_pods=sorted(state.unhealthy_pods)
        )
        context.metrics.retaliations_suppressed.labels(
            namespace=context.namespace, reason="multiple_unhealthy_pods"
        ).inc()
        return False

    for pod_name, pod in state.unhealthy_pods.items():
        log.log_retaliation(pod_name, pod)
        context.kill_counter.inc()
        try:
            context.kill_pod(context.namespace, pod_name, pod)
        except Exception as e:
            # Any failure still counts as a retaliation
            log.log_error(e, context="retaliation")

    return True


def make_pod_killer(k8s_client, dry_run: bool, grace_period_seconds: int = 0,
                    notifier=None) -> PodKiller:
    """Build the pod deletion capability handed to every namespace"""
    if dry_run:
        def fake_kill_pod(namespace: str, pod_name: str, pod: PodObservation) -> None:
            logger.info("FAKE killing pod", namespace=namespace, pod_name=pod_name)
            _notify(notifier, namespace, pod, "dry_run")

        return fake_kill_pod

    def kill_pod(namespace: str, pod_name: str, pod: PodObservation) -> None:
        logger.info("KILLING pod", namespace=namespace, pod_name=pod_name,
                    grace_period_seconds=grace_period_seconds)
        try:
            k8s_client.delete_pod(namespace, pod_name, grace_period_seconds)
        except DeleteFailed as e:
            _notify(notifier, namespace, pod, "failed", str(e))
            raise
        _notify(notifier, namespace, pod, "killed")

    return kill_pod


def _notify(notifier, namespace: str, pod: PodObservation, outcome: str,
            details: Optional[str] = None) -> None:
    if notifier is not None:
        notifier.notify_retaliation(namespace, pod, outcome, details)
