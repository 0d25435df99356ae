import os
import logging
from typing import Any, Callable, Dict, Iterator, Optional
from kubernetes import client, config, watch
from kubernetes.config.config_exception import ConfigException

from .errors import ClientInitError, DeleteFailed, MalformedEvent
from .models import EventKind, PodObservation, WatchEvent

logger = logging.getLogger(__name__)

# Server-side lifetime of a watch request; a stopped stream is released within it
DEFAULT_WATCH_TIMEOUT_SECONDS = 300

KUBECONFIG_FALLBACK_PATHS = [
    os.path.expanduser("~/.kube/config"),
    "/etc/kubernetes/admin.conf",
    "/etc/rancher/k3s/k3s.yaml"
]


def decode_event(stream: str, raw: Any, to_payload: Callable[[Any], Dict[str, Any]]) -> WatchEvent:
    """Turn a kubernetes watch event dict into a WatchEvent"""
    event_type = raw.get("type") if isinstance(raw, dict) else None
    try:
        kind = EventKind(event_type)
    except ValueError:
        return WatchEvent.malformed(MalformedEvent(stream, event_type, "unknown event type"), raw)

    obj = raw.get("object")
    if kind is EventKind.ERROR:
        return WatchEvent(kind=kind, raw=obj)
    if obj is None:
        return WatchEvent.malformed(MalformedEvent(stream, event_type, "event has no object"), raw)

    try:
        return WatchEvent(kind=kind, raw=obj, **to_payload(obj))
    except MalformedEvent as e:
        return WatchEvent.malformed(e, raw)


def _namespace_payload(namespace: Any) -> Dict[str, Any]:
    name = getattr(getattr(namespace, "metadata", None), "name", None)
    if not name:
        raise MalformedEvent("namespaces", None, "namespace has no metadata.name")
    return {"name": name}


def _pod_payload(pod: Any) -> Dict[str, Any]:
    observation = PodObservation.from_kubernetes(pod)
    return {"name": observation.name, "pod": observation}


class WatchStream:
    """A stoppable iterator of decoded watch events"""

    def __init__(self, name: str, list_func: Callable, to_payload: Callable[[Any], Dict[str, Any]],
                 **kwargs: Any):
        self.name = name
        self._list_func = list_func
        self._to_payload = to_payload
        self._kwargs = kwargs
        self._watch = watch.Watch()

    def __iter__(self) -> Iterator[WatchEvent]:
        for raw in self._watch.stream(self._list_func, **self._kwargs):
            yield decode_event(self.name, raw, self._to_payload)

    def stop(self) -> None:
        self._watch.stop()


class KubernetesClient:
    def __init__(self, kube_config_path: Optional[str] = None, in_cluster: bool = False,
                 watch_timeout_seconds: int = DEFAULT_WATCH_TIMEOUT_SECONDS):
        self.client = client
        self.watch_timeout_seconds = watch_timeout_seconds

        try:
            if in_cluster:
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes configuration")
            elif kube_config_path:
                logger.info(f"Loading kubeconfig from: {kube_config_path}")
                config.load_kube_config(config_file=kube_config_path)
            else:
                self._load_default_config()
        except ConfigException as e:
            raise ClientInitError(f"Could not load Kubernetes configuration: {e}")

        self.v1 = client.CoreV1Api()
        logger.info("✅ Kubernetes client initialized successfully")

    def _load_default_config(self):
        """Try KUBECONFIG, in-cluster, default kubeconfig, then common paths"""
        kubeconfig_path = os.getenv('KUBECONFIG')
        if kubeconfig_path and os.path.exists(kubeconfig_path):
            logger.info(f"Loading kubeconfig from KUBECONFIG environment: {kubeconfig_path}")
            config.load_kube_config(config_file=kubeconfig_path)
            return

        try:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes configuration")
            return
        except ConfigException:
            pass

        try:
            config.load_kube_config()
            logger.info("Loaded kubeconfig from default location")
            return
        except ConfigException:
            pass

        for kube_path in KUBECONFIG_FALLBACK_PATHS:
            if os.path.exists(kube_path):
                logger.info(f"Loading kubeconfig from: {kube_path}")
                config.load_kube_config(config_file=kube_path)
                return

        raise ClientInitError(
            "Could not load Kubernetes configuration. "
            "Please ensure you have:\n"
            "1. A running Kubernetes cluster\n"
            "2. kubectl configured properly\n"
            "3. Or set KUBE_CONFIG_PATH / KUBECONFIG\n"
            "4. Or set IN_CLUSTER=true when running inside a pod"
        )

    def watch_namespaces(self) -> WatchStream:
        """Watch namespace lifecycle, starting with ADDED for every existing namespace"""
        return WatchStream("namespaces", self.v1.list_namespace, _namespace_payload,
                           timeout_seconds=self.watch_timeout_seconds)

    def watch_pods(self, namespace: str) -> WatchStream:
        """Watch pod lifecycle in a namespace, starting with ADDED for every existing pod"""
        return WatchStream(f"pods/{namespace}", self.v1.list_namespaced_pod, _pod_payload,
                           namespace=namespace, timeout_seconds=self.watch_timeout_seconds)

    def delete_pod(self, namespace: str, name: str, grace_period_seconds: int = 0) -> None:
        """Delete a pod, raising DeleteFailed on any API error"""
        try:
            self.v1.delete_namespaced_pod(
                name=name,
                namespace=namespace,
                body=client.V1DeleteOptions(grace_period_seconds=grace_period_seconds)
            )
        except Exception as e:
            raise DeleteFailed(namespace, name, e)
        logger.info(f"✅ Successfully deleted pod {namespace}/{name}")

    def test_connection(self) -> bool:
        """Test Kubernetes connection"""
        try:
            self.v1.get_api_resources()
            return True
        except Exception:
            return False
