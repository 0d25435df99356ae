"""
Retaliation notifications pushed to a Prometheus Pushgateway
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import requests

from .models import PodObservation

logger = logging.getLogger(__name__)


class NotificationManager:
    def __init__(self, pushgateway_url: Optional[str] = None, job_name: str = "pod_watchdog",
                 cluster_name: str = "Unknown", cooldown: timedelta = timedelta(minutes=30),
                 now_fn: Callable[[], datetime] = datetime.now):
        self.pushgateway_url = pushgateway_url
        self.job_name = job_name
        self.cluster_name = cluster_name
        self.notification_cooldown = cooldown
        self.now_fn = now_fn
        self.sent_notifications: Dict[str, datetime] = {}

    def notify_retaliation(self, namespace: str, pod: PodObservation, outcome: str,
                           details: Optional[str] = None) -> bool:
        """Report a retaliation outcome (killed, failed or dry_run) for a pod"""
        pod_key = f"{namespace}/{pod.name}/{outcome}"
        now = self.now_fn()

        last_notification = self.sent_notifications.get(pod_key)
        if last_notification and now - last_notification < self.notification_cooldown:
            logger.debug(f"Notification for {pod_key} is in cooldown")
            return False

        self.sent_notifications[pod_key] = now
        if not self.pushgateway_url:
            return self._send_log_notification(namespace, pod, outcome, details)

        try:
            self._push_to_pushgateway(namespace, pod, outcome, now)
            logger.info(f"📊 Prometheus alert sent for {namespace}/{pod.name}")
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to push to Pushgateway: {e}")
            return self._send_log_notification(namespace, pod, outcome, details)

    def _send_log_notification(self, namespace, pod, outcome, details):
        """Log-based notification (fallback)"""
        logger.warning(
            f" POD RETALIATION {outcome.upper()} - {namespace}/{pod.name}\n"
            f"   Phase: {pod.phase.value}\n"
            f"   Details: {details or 'n/a'}\n"
            f"   Timestamp: {self.now_fn().isoformat()}"
        )
        return True

    def render_metrics(self, namespace: str, pod: PodObservation, outcome: str, now: datetime) -> str:
        """Prometheus text exposition of a single retaliation event"""
        labels = (
            f'namespace="{namespace}",pod="{pod.name}",phase="{pod.phase.value}",'
            f'outcome="{outcome}",cluster="{self.cluster_name}"'
        )
        return f"""# HELP pod_watchdog_retaliation Pod retaliation event
# TYPE pod_watchdog_retaliation gauge
pod_watchdog_retaliation{{{labels}}} 1

# HELP pod_watchdog_last_retaliation_timestamp Timestamp of last pod retaliation
# TYPE pod_watchdog_last_retaliation_timestamp gauge
pod_watchdog_last_retaliation_timestamp{{namespace="{namespace}",pod="{pod.name}"}} {now.timestamp()}
"""

    def _push_to_pushgateway(self, namespace, pod, outcome, now):
        """Push metrics to Prometheus Pushgateway"""
        url = f"{self.pushgateway_url}/metrics/job/{self.job_name}"
        response = requests.put(url, data=self.render_metrics(namespace, pod, outcome, now), timeout=10)
        response.raise_for_status()
        logger.debug(f"Successfully pushed metrics to Pushgateway for {namespace}/{pod.name}")
