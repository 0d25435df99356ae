"""
Tests for the retaliation decision and the pod killer
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from fakes import T0, FakeClient, KillRecorder, kills, make_context, make_metrics, pod
from pod_watchdog.errors import DeleteFailed
from pod_watchdog.health import evaluate_cluster_state
from pod_watchdog.retaliation import make_pod_killer, retaliate


def _unhealthy(context, pods, since=T0):
    context.pods = dict((p.name, p) for p in pods)
    context.cluster_state = evaluate_cluster_state(context.pods, since)


def test_healthy_namespace_never_retaliates():
    kill_pod = KillRecorder()
    context = make_context(kill_pod=kill_pod)

    assert not retaliate(context, T0 + timedelta(days=1))
    assert kill_pod.calls == []


def test_no_retaliation_within_grace_period():
    kill_pod = KillRecorder()
    context = make_context(kill_pod=kill_pod)
    _unhealthy(context, [pod("p1", "Pending")])

    assert not retaliate(context, T0 + timedelta(seconds=59))
    assert kill_pod.calls == []


def test_retaliates_once_grace_period_elapsed():
    """Running pod with PodScheduled=False, two minutes into a one minute grace period"""
    kill_pod = KillRecorder()
    metrics = make_metrics()
    context = make_context(kill_pod=kill_pod, metrics=metrics)
    p1 = pod("p1", "Running", PodScheduled="False")
    _unhealthy(context, [p1])

    assert retaliate(context, T0 + timedelta(minutes=2))
    assert kill_pod.calls == [("default", "p1", p1)]
    assert kills(metrics) == 1


def test_grace_period_boundary_is_inclusive():
    context = make_context()
    _unhealthy(context, [pod("p1", "Pending")])

    assert retaliate(context, T0 + timedelta(minutes=1))


@pytest.mark.parametrize("elapsed", [timedelta(minutes=2), timedelta(days=30)])
def test_several_unhealthy_pods_never_trigger_retaliation(elapsed):
    kill_pod = KillRecorder()
    metrics = make_metrics()
    context = make_context(kill_pod=kill_pod, metrics=metrics)
    _unhealthy(context, [pod("p1", "Pending"), pod("p2", "Failed")])

    assert not retaliate(context, T0 + elapsed)
    assert kill_pod.calls == []
    assert kills(metrics) == 0
    assert metrics.registry.get_sample_value(
        "retaliations_suppressed_total", {"namespace": "default", "reason": "multiple_unhealthy_pods"}
    ) == 1


def test_failed_deletion_still_counts_as_retaliation():
    kill_pod = KillRecorder(error=DeleteFailed("default", "p1", "forbidden"))
    metrics = make_metrics()
    context = make_context(kill_pod=kill_pod, metrics=metrics)
    _unhealthy(context, [pod("p1", "Pending")])

    assert retaliate(context, T0 + timedelta(minutes=2))
    assert len(kill_pod.calls) == 1
    assert kills(metrics) == 1


def test_unexpected_killer_error_still_counts_as_retaliation():
    kill_pod = KillRecorder(error=RuntimeError("notifier exploded"))
    metrics = make_metrics()
    context = make_context(kill_pod=kill_pod, metrics=metrics)
    _unhealthy(context, [pod("p1", "Pending")])

    assert retaliate(context, T0 + timedelta(minutes=2))
    assert kills(metrics) == 1


def test_dry_run_killer_never_deletes():
    client = FakeClient()
    notifier = Mock()
    kill_pod = make_pod_killer(client, dry_run=True, notifier=notifier)

    kill_pod("default", "p1", pod("p1", "Pending"))

    assert client.deleted == []
    notifier.notify_retaliation.assert_called_once()
    assert notifier.notify_retaliation.call_args[0][2] == "dry_run"


def test_killer_deletes_with_forced_grace_period():
    client = FakeClient()
    notifier = Mock()
    p1 = pod("p1", "Pending")
    kill_pod = make_pod_killer(client, dry_run=False, grace_period_seconds=0, notifier=notifier)

    kill_pod("default", "p1", p1)

    assert client.deleted == [("default", "p1", 0)]
    notifier.notify_retaliation.assert_called_once_with("default", p1, "killed", None)


def test_killer_reports_failed_deletion():
    client = Mock()
    client.delete_pod.side_effect = DeleteFailed("default", "p1", "boom")
    notifier = Mock()
    kill_pod = make_pod_killer(client, dry_run=False, notifier=notifier)

    with pytest.raises(DeleteFailed):
        kill_pod("default", "p1", pod("p1", "Pending"))

    assert notifier.notify_retaliation.call_args[0][2] == "failed"
