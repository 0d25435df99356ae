"""
Data model shared by the namespace supervisor and its monitors
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import MalformedEvent


class PodPhase(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PodPhase":
        """Map an API phase string to a PodPhase, Unknown when unrecognised"""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ConditionStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Condition:
    """A pod condition such as Ready or PodScheduled"""

    kind: str
    status: ConditionStatus

    @property
    def is_true(self) -> bool:
        return self.status is ConditionStatus.TRUE


@dataclass(frozen=True)
class PodObservation:
    """Last reported phase and conditions of a pod"""

    name: str
    phase: PodPhase
    conditions: Tuple[Condition, ...] = ()

    @classmethod
    def from_kubernetes(cls, pod: Any) -> "PodObservation":
        """Build an observation from a kubernetes V1Pod"""
        name = getattr(getattr(pod, "metadata", None), "name", None)
        if not name:
            raise MalformedEvent("pods", None, "pod has no metadata.name")

        status = getattr(pod, "status", None)
        phase = PodPhase.parse(getattr(status, "phase", None))
        conditions = tuple(
            Condition(kind=c.type, status=ConditionStatus.parse(c.status))
            for c in (getattr(status, "conditions", None) or [])
        )
        return cls(name=name, phase=phase, conditions=conditions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "phase": self.phase.value,
            "conditions": {c.kind: c.status.value for c in self.conditions},
        }


class ClusterHealth(str, Enum):
    HEALTHY = "HEALTHY"
    UNHEALTHY = "UNHEALTHY"


@dataclass
class ClusterState:
    """Aggregate health of one namespace and since when it has held"""

    health: ClusterHealth
    unhealthy_pods: Dict[str, PodObservation]
    since: datetime

    @classmethod
    def from_unhealthy(cls, unhealthy_pods: Dict[str, PodObservation], now: datetime) -> "ClusterState":
        health = ClusterHealth.UNHEALTHY if unhealthy_pods else ClusterHealth.HEALTHY
        return cls(health=health, unhealthy_pods=unhealthy_pods, since=now)

    def differs_from(self, other: "ClusterState") -> bool:
        """True when health, unhealthy membership or a member's status changed"""
        if self.health != other.health:
            return True

        if set(self.unhealthy_pods) != set(other.unhealthy_pods):
            return True

        for name, pod in self.unhealthy_pods.items():
            previous = other.unhealthy_pods[name]
            if pod.phase != previous.phase or pod.conditions != previous.conditions:
                return True

        return False


class EventKind(str, Enum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"


@dataclass
class WatchEvent:
    """A decoded namespace or pod watch event

    ``kind`` is None when the event could not be decoded, in which case
    ``error`` explains why.
    """

    kind: Optional[EventKind]
    name: Optional[str] = None
    pod: Optional[PodObservation] = None
    raw: Any = field(default=None, repr=False)
    error: Optional[MalformedEvent] = None

    @classmethod
    def malformed(cls, error: MalformedEvent, raw: Any = None) -> "WatchEvent":
        return cls(kind=None, raw=raw, error=error)
