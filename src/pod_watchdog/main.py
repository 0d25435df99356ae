#!/usr/bin/env python3
"""
Pod Watchdog - Main Application
"""

import signal
import sys
from datetime import timedelta

from .config import load_config
from .errors import ClientInitError, ConfigurationError
from .kubernetes_client import KubernetesClient
from .logger import WatchdogLogger, get_logger, setup_logging
from .metrics import WatchdogMetrics, start_metrics_server
from .monitor import MonitorSettings
from .notifications import NotificationManager
from .retaliation import make_pod_killer
from .supervisor import NamespaceSupervisor


def main() -> int:
    """Main application entry point"""
    try:
        config = load_config()
    except ConfigurationError as e:
        # Logging is not configured yet
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    logger = get_logger("main")
    WatchdogLogger().log_startup(config.to_dict())
    logger.info("GracePeriod before killing a pod", grace_period_minutes=config.grace_period_minutes)

    if config.dry_run:
        logger.info("🔧 Running in DRY RUN mode - pods will not be deleted")

    try:
        k8s_client = KubernetesClient(
            kube_config_path=config.kube_config_path,
            in_cluster=config.in_cluster,
            watch_timeout_seconds=config.watch_timeout_seconds
        )
    except ClientInitError as e:
        logger.error("Cannot create the kube client driver", error=str(e))
        return 1

    if not k8s_client.test_connection():
        logger.warning("Kubernetes connection test failed, watch streams will keep retrying")

    metrics = WatchdogMetrics()
    logger.info("Starting HTTP server", port=config.http_listen_port)
    start_metrics_server(config.http_listen_port)

    notifier = NotificationManager(
        pushgateway_url=config.prometheus_pushgateway_url,
        job_name=config.prometheus_job_name,
        cluster_name=config.cluster_name,
        cooldown=timedelta(minutes=config.notification_cooldown_minutes)
    )

    kill_pod = make_pod_killer(
        k8s_client,
        dry_run=config.dry_run,
        grace_period_seconds=config.delete_grace_period_seconds,
        notifier=notifier
    )

    supervisor = NamespaceSupervisor(
        k8s_client,
        namespace_filter=config.compile_namespace_filter(),
        grace_period=config.grace_period,
        kill_pod=kill_pod,
        metrics=metrics,
        settings=MonitorSettings.from_config(config),
        join_timeout=config.monitor_join_timeout_seconds
    )

    def handle_signal(signum, frame):
        logger.info("Received signal, shutting down...", signal=signum)
        supervisor.request_stop()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    supervisor.run()
    logger.info("Pod Watchdog stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
