"""
Tests for pod classification and namespace state evaluation
"""

from datetime import timedelta

import pytest

from fakes import T0, pod
from pod_watchdog.health import evaluate_cluster_state, is_pod_healthy, merge_cluster_state
from pod_watchdog.models import ClusterHealth


@pytest.mark.parametrize("phase", ["Pending", "Succeeded", "Failed", "Unknown"])
def test_pod_not_running_is_unhealthy(phase):
    """Phase other than Running is unhealthy whatever its conditions"""
    assert not is_pod_healthy(pod("p1", phase))
    assert not is_pod_healthy(pod("p1", phase, Ready="True", PodScheduled="True"))


def test_running_pod_without_conditions_is_healthy():
    assert is_pod_healthy(pod("p1", "Running"))


def test_running_pod_with_true_conditions_is_healthy():
    assert is_pod_healthy(pod("p1", "Running", PodScheduled="True", Initialized="True", Ready="True"))


@pytest.mark.parametrize("status", ["False", "Unknown"])
def test_running_pod_with_a_condition_not_true_is_unhealthy(status):
    assert not is_pod_healthy(pod("p1", "Running", PodScheduled="True", Ready=status))


def test_empty_namespace_is_healthy():
    state = evaluate_cluster_state({}, T0)

    assert state.health is ClusterHealth.HEALTHY
    assert state.unhealthy_pods == {}
    assert state.since == T0


def test_pod_lifecycle_scenarios():
    """Pending pod, then Running without conditions, then one false condition"""
    pods = {"p1": pod("p1", "Pending")}
    state = evaluate_cluster_state(pods, T0)
    assert state.health is ClusterHealth.UNHEALTHY
    assert list(state.unhealthy_pods) == ["p1"]

    pods["p1"] = pod("p1", "Running")
    state = evaluate_cluster_state(pods, T0)
    assert state.health is ClusterHealth.HEALTHY
    assert state.unhealthy_pods == {}

    pods["p2"] = pod("p2", "Running", PodScheduled="False")
    state = evaluate_cluster_state(pods, T0)
    assert state.health is ClusterHealth.UNHEALTHY
    assert list(state.unhealthy_pods) == ["p2"]


def test_merge_keeps_state_when_nothing_changed():
    pods = {"p1": pod("p1", "Pending")}
    current = evaluate_cluster_state(pods, T0)

    merged = merge_cluster_state(current, evaluate_cluster_state(pods, T0 + timedelta(minutes=5)))

    assert merged is current
    assert merged.since == T0


def test_merge_ignores_changes_of_healthy_pods():
    current = evaluate_cluster_state({"p1": pod("p1", "Pending")}, T0)
    pods = {"p1": pod("p1", "Pending"), "p2": pod("p2", "Running", Ready="True")}

    merged = merge_cluster_state(current, evaluate_cluster_state(pods, T0 + timedelta(minutes=1)))

    assert merged.since == T0


def test_merge_adopts_health_flip():
    current = evaluate_cluster_state({}, T0)
    later = T0 + timedelta(minutes=1)

    merged = merge_cluster_state(current, evaluate_cluster_state({"p1": pod("p1", "Failed")}, later))

    assert merged.health is ClusterHealth.UNHEALTHY
    assert merged.since == later


def test_merge_adopts_membership_change():
    current = evaluate_cluster_state({"p1": pod("p1", "Pending"), "p2": pod("p2", "Pending")}, T0)
    later = T0 + timedelta(minutes=1)

    merged = merge_cluster_state(current, evaluate_cluster_state({"p1": pod("p1", "Pending")}, later))

    assert set(merged.unhealthy_pods) == {"p1"}
    assert merged.since == later


def test_merge_adopts_status_change_of_unhealthy_pod():
    current = evaluate_cluster_state({"p1": pod("p1", "Running", PodScheduled="False")}, T0)
    later = T0 + timedelta(minutes=1)

    phase_changed = evaluate_cluster_state({"p1": pod("p1", "Pending", PodScheduled="False")}, later)
    assert merge_cluster_state(current, phase_changed).since == later

    conditions_changed = evaluate_cluster_state(
        {"p1": pod("p1", "Running", PodScheduled="True", Ready="False")}, later
    )
    assert merge_cluster_state(current, conditions_changed).since == later
