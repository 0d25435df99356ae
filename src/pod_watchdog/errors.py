"""
Error kinds raised and absorbed by Pod Watchdog
"""


class WatchdogError(Exception):
    """Base class for every error the watchdog knows how to handle"""


class ConfigurationError(WatchdogError):
    """Invalid configuration, fatal at startup"""


class ClientInitError(WatchdogError):
    """The Kubernetes client could not be configured, fatal at startup"""


class TransientStreamError(WatchdogError):
    """A watch stream closed or reported a server-side error"""

    def __init__(self, stream: str, cause: object = None):
        self.stream = stream
        self.cause = cause
        super().__init__(f"Watch stream {stream} failed: {cause}")


class DeleteFailed(WatchdogError):
    """The pod deletion capability reported a failure"""

    def __init__(self, namespace: str, pod_name: str, cause: object = None):
        self.namespace = namespace
        self.pod_name = pod_name
        self.cause = cause
        super().__init__(f"Cannot kill pod {namespace}/{pod_name}: {cause}")


class MalformedEvent(WatchdogError):
    """A watch event whose type or payload could not be understood"""

    def __init__(self, stream: str, event_type: object, reason: str):
        self.stream = stream
        self.event_type = event_type
        self.reason = reason
        super().__init__(f"Malformed {stream} event {event_type!r}: {reason}")
