"""
Tests for the domain logger
"""

from structlog.testing import capture_logs

from fakes import pod
from pod_watchdog.logger import WatchdogLogger


def test_namespace_and_pod_events_are_logged():
    with capture_logs() as logs:
        log = WatchdogLogger(component="supervisor")
        log.log_namespace_event("ADDED", "app-1", "monitor_started")
        log.log_pod_event("MODIFIED", pod("p1", "Pending"))

    assert [entry["event"] for entry in logs] == ["Namespace event", "Pod event"]
    assert [entry["event_type"] for entry in logs] == ["ADDED", "MODIFIED"]
    assert logs[0]["action"] == "monitor_started"
    assert logs[1]["phase"] == "Pending"


def test_clean_stream_close_is_not_a_warning():
    with capture_logs() as logs:
        log = WatchdogLogger()
        log.log_stream_closed("pods/app-1", None)
        log.log_stream_closed("pods/app-1", ConnectionResetError("reset"))

    assert [entry["log_level"] for entry in logs] == ["info", "warning"]
    assert logs[1]["error_type"] == "ConnectionResetError"
