"""
Pod Watchdog - Self-healing namespace watchdog for Kubernetes

Watches every eligible namespace, tracks pod readiness, and deletes a single
stuck pod once the namespace has stayed unhealthy past a grace period.
"""

__version__ = "1.0.0"
__author__ = "Pod Watchdog Team"
