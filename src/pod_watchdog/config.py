"""
Configuration management for Pod Watchdog
"""

import os
import re
from datetime import timedelta
from typing import Optional
from dataclasses import dataclass, asdict
from dotenv import load_dotenv

from .errors import ConfigurationError


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


@dataclass
class Config:
    """Configuration class for Pod Watchdog"""

    # Kubernetes configuration
    kube_config_path: Optional[str] = None
    in_cluster: bool = False

    # Namespace eligibility, matched anywhere in the namespace name
    namespace_filter: str = ""

    # Retaliation
    grace_period_minutes: int = 10
    dry_run: bool = False
    delete_grace_period_seconds: int = 0

    # Watch loops
    liveness_interval_seconds: int = 60
    reconnect_backoff_seconds: float = 1.0
    reconnect_backoff_max_seconds: float = 30.0
    max_reconnect_attempts: int = 5
    monitor_join_timeout_seconds: float = 5.0
    watch_timeout_seconds: int = 300

    # Metrics endpoint
    http_listen_port: int = 8080

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"
    verbose: bool = False

    # Pushgateway notifications
    prometheus_pushgateway_url: Optional[str] = None
    prometheus_job_name: str = "pod_watchdog"
    cluster_name: str = "Unknown"
    notification_cooldown_minutes: int = 30

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration overridden by environment variables"""
        defaults = cls()
        return cls(
            kube_config_path=os.getenv("KUBE_CONFIG_PATH", defaults.kube_config_path),
            in_cluster=_env_bool("IN_CLUSTER", defaults.in_cluster),
            namespace_filter=os.getenv("NAMESPACE_FILTER", defaults.namespace_filter),
            grace_period_minutes=_env_int("RETALIATE_GRACE_PERIOD_MIN", defaults.grace_period_minutes),
            dry_run=_env_bool("DRY_RUN", defaults.dry_run),
            delete_grace_period_seconds=_env_int(
                "DELETE_GRACE_PERIOD_SECONDS", defaults.delete_grace_period_seconds
            ),
            liveness_interval_seconds=_env_int(
                "LIVENESS_INTERVAL_SECONDS", defaults.liveness_interval_seconds
            ),
            reconnect_backoff_seconds=_env_float(
                "RECONNECT_BACKOFF_SECONDS", defaults.reconnect_backoff_seconds
            ),
            reconnect_backoff_max_seconds=_env_float(
                "RECONNECT_BACKOFF_MAX_SECONDS", defaults.reconnect_backoff_max_seconds
            ),
            max_reconnect_attempts=_env_int("MAX_RECONNECT_ATTEMPTS", defaults.max_reconnect_attempts),
            monitor_join_timeout_seconds=_env_float(
                "MONITOR_JOIN_TIMEOUT_SECONDS", defaults.monitor_join_timeout_seconds
            ),
            watch_timeout_seconds=_env_int("WATCH_TIMEOUT_SECONDS", defaults.watch_timeout_seconds),
            http_listen_port=_env_int("HTTP_LISTEN_PORT", defaults.http_listen_port),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("LOG_FORMAT", defaults.log_format),
            verbose=_env_bool("VERBOSE", defaults.verbose),
            prometheus_pushgateway_url=os.getenv(
                "PROMETHEUS_PUSHGATEWAY_URL", defaults.prometheus_pushgateway_url
            ),
            prometheus_job_name=os.getenv("PROMETHEUS_JOB_NAME", defaults.prometheus_job_name),
            cluster_name=os.getenv("CLUSTER_NAME", defaults.cluster_name),
            notification_cooldown_minutes=_env_int(
                "NOTIFICATION_COOLDOWN_MINUTES", defaults.notification_cooldown_minutes
            ),
        )

    @property
    def grace_period(self) -> timedelta:
        return timedelta(minutes=self.grace_period_minutes)

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.verbose else self.log_level.upper()

    def compile_namespace_filter(self) -> "re.Pattern":
        """Compile the namespace eligibility expression"""
        try:
            return re.compile(self.namespace_filter)
        except re.error as e:
            raise ConfigurationError(
                f"Cannot compile the namespace filter {self.namespace_filter!r}: {e}"
            )

    def validate(self) -> None:
        """Reject configurations the watchdog cannot start with"""
        self.compile_namespace_filter()

        if self.grace_period_minutes < 0:
            raise ConfigurationError("RETALIATE_GRACE_PERIOD_MIN cannot be negative")
        if self.delete_grace_period_seconds < 0:
            raise ConfigurationError("DELETE_GRACE_PERIOD_SECONDS cannot be negative")
        if self.liveness_interval_seconds <= 0:
            raise ConfigurationError("LIVENESS_INTERVAL_SECONDS must be positive")
        if self.reconnect_backoff_seconds <= 0:
            raise ConfigurationError("RECONNECT_BACKOFF_SECONDS must be positive")
        if self.reconnect_backoff_max_seconds < self.reconnect_backoff_seconds:
            raise ConfigurationError(
                "RECONNECT_BACKOFF_MAX_SECONDS cannot be lower than RECONNECT_BACKOFF_SECONDS"
            )
        if self.watch_timeout_seconds <= 0:
            raise ConfigurationError("WATCH_TIMEOUT_SECONDS must be positive")
        if self.max_reconnect_attempts < 1:
            raise ConfigurationError("MAX_RECONNECT_ATTEMPTS must be at least 1")
        if self.log_format not in ("json", "console"):
            raise ConfigurationError(f"LOG_FORMAT must be json or console, got {self.log_format!r}")
        if self.effective_log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Unknown LOG_LEVEL {self.log_level!r}")

    def to_dict(self) -> dict:
        return asdict(self)


def load_config(env_path: Optional[str] = None) -> Config:
    """Load .env (if any) then build and validate the configuration"""
    load_dotenv(dotenv_path=env_path)
    config = Config.from_env()
    config.validate()
    return config
