"""
Logging configuration for Pod Watchdog
"""

import logging
import sys
from datetime import timedelta
from typing import Any, Dict, Optional
import structlog
from colorama import init as colorama_init

from .config import Config
from .models import ClusterState, PodObservation

# Initialize colorama for cross-platform colored output
colorama_init()


def setup_logging(config: Config) -> None:
    """Setup structured logging for the application"""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if config.log_format == "json"
            else structlog.dev.ConsoleRenderer(colors=True)
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.effective_log_level),
    )

    # Suppress verbose kubernetes client logs
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


class WatchdogLogger:
    """Specialized logger for watchdog lifecycle and retaliation events"""

    def __init__(self, name: str = "pod-watchdog", **context: Any):
        self.logger = get_logger(name).bind(**context)

    def log_startup(self, config_dict: Dict[str, Any]) -> None:
        """Log application startup"""
        self.logger.info(
            "Pod Watchdog starting up",
            version="1.0.0",
            config=config_dict
        )

    def log_namespace_event(self, event_kind: str, namespace: str, action: str) -> None:
        """Log a namespace lifecycle event and what the supervisor did with it"""
        self.logger.info(
            "Namespace event",
            event_type=event_kind,
            namespace=namespace,
            action=action
        )

    def log_pod_event(self, event_kind: str, pod: PodObservation) -> None:
        self.logger.info(
            "Pod event",
            event_type=event_kind,
            pod_name=pod.name,
            phase=pod.phase.value
        )

    def log_health_transition(self, previous: ClusterState, current: ClusterState) -> None:
        """Log a material change of the namespace state"""
        self.logger.info(
            "Cluster state changed",
            previous_health=previous.health.value,
            health=current.health.value,
            unhealthy_pods=sorted(current.unhealthy_pods),
            since=current.since.isoformat()
        )

    def log_cluster_state(self, state: ClusterState) -> None:
        self.logger.debug(
            "Cluster state evaluated",
            health=state.health.value,
            unhealthy_pods=sorted(state.unhealthy_pods),
            since=state.since.isoformat()
        )

    def log_retaliation(self, pod_name: str, pod: PodObservation) -> None:
        """Log the decision to kill a pod"""
        self.logger.warning(
            "Retaliating against pod",
            pod_name=pod_name,
            pod=pod.to_dict()
        )

    def log_retaliation_suppressed(self, reason: str, level: str = "debug", **kwargs: Any) -> None:
        """Log why a retaliation was not carried out"""
        getattr(self.logger, level)(
            "Retaliation suppressed",
            reason=reason,
            **kwargs
        )

    def log_stream_closed(self, stream: str, error: Optional[BaseException],
                          retry_in: Optional[timedelta] = None) -> None:
        """Log a watch stream closure before resubscribing"""
        # Watches end cleanly on every server timeout
        log = self.logger.warning if error else self.logger.info
        log(
            "Watch stream closed, resubscribing",
            stream=stream,
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
            retry_in_seconds=retry_in.total_seconds() if retry_in else 0
        )

    def log_error(self, error: Exception, context: str = None) -> None:
        """Log errors with context"""
        self.logger.error(
            "Error occurred",
            error=str(error),
            error_type=type(error).__name__,
            context=context,
            exc_info=True
        )

    def log_info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, **kwargs)

    def log_warning(self, message: str, **kwargs: Any) -> None:
        """Log warnings"""
        self.logger.warning(message, **kwargs)

    def log_debug(self, message: str, **kwargs: Any) -> None:
        """Log debug information"""
        self.logger.debug(message, **kwargs)
