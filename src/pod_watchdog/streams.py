"""
Helpers turning blocking watch streams into inbox messages
"""

import queue
import random
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Iterable, Optional

from .models import WatchEvent


@dataclass
class StreamEvent:
    generation: int
    event: WatchEvent


@dataclass
class StreamClosed:
    """The stream ended; ``error`` is None on a clean server-side close"""

    generation: int
    error: Optional[BaseException] = None


def _pump(stream: Iterable[WatchEvent], inbox: "queue.Queue[Any]", generation: int) -> None:
    try:
        for event in stream:
            inbox.put(StreamEvent(generation, event))
    except Exception as e:
        # The pump runs on its own thread: every failure is handed to the owner.
        inbox.put(StreamClosed(generation, e))
    else:
        inbox.put(StreamClosed(generation))


def start_pump(stream: Iterable[WatchEvent], inbox: "queue.Queue[Any]", generation: int,
               name: str) -> threading.Thread:
    """Iterate ``stream`` on a daemon thread, posting every event to ``inbox``"""
    thread = threading.Thread(target=_pump, args=(stream, inbox, generation), name=name, daemon=True)
    thread.start()
    return thread


class ReconnectBackoff:
    """Exponential reconnect delay, capped and optionally jittered"""

    def __init__(self, base_seconds: float, max_seconds: float, jitter: bool = True):
        self.base_seconds = base_seconds
        self.max_seconds = max_seconds
        self.jitter = jitter
        self.failures = 0

    def next_delay(self) -> timedelta:
        """Register one more failure and return how long to wait"""
        self.failures += 1
        exponent = min(self.failures - 1, 32)
        delay = min(self.base_seconds * (2 ** exponent), self.max_seconds)
        if self.jitter:
            delay *= 0.5 + random.random()
        return timedelta(seconds=delay)

    def reset(self) -> None:
        self.failures = 0
