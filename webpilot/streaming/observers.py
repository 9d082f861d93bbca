"""
Observer Registry

Thread-safe registry of stream observers. The execution flow iterates and
broadcasts while the transport layer adds and removes observers, so every
mutation happens under one lock and delivery iterates over a snapshot.

Usage:
    registry = ObserverRegistry()
    registry.add("client-1", QueueObserver())
    registry.broadcast(message)
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, runtime_checkable

from webpilot.models.events import StreamMessage

logger = logging.getLogger(__name__)


@runtime_checkable
class Observer(Protocol):
    """Anything that can receive stream messages. Raising means the observer is gone."""

    def send(self, message: StreamMessage) -> None:
        ...


@dataclass
class ObserverEntry:
    observer: Observer
    connected_at: float = field(default_factory=time.monotonic)
    last_seen: float = field(default_factory=time.monotonic)
    # Push-style sinks (webhooks) have no heartbeat and are never swept
    sweepable: bool = True


class ObserverClosedError(ConnectionError):
    """Raised by an observer whose underlying connection has gone away."""


class QueueObserver:
    """
    Observer backed by an asyncio.Queue, consumed by an SSE response generator.

    Messages may be sent from any thread; they are handed to the queue's loop.
    """

    def __init__(self, maxsize: int = 1000, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._loop = loop
        self.closed = False

    def send(self, message: StreamMessage) -> None:
        if self.closed:
            raise ObserverClosedError("observer connection closed")
        if self._loop is not None and self._loop.is_running():
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not self._loop:
                self._loop.call_soon_threadsafe(self.queue.put_nowait, message)
                return
        # QueueFull propagates so a stuck consumer is deregistered
        self.queue.put_nowait(message)

    def close(self) -> None:
        self.closed = True


class ObserverRegistry:
    """Registry of observers keyed by observer id."""

    def __init__(self):
        self._lock = threading.RLock()
        self._observers: Dict[str, ObserverEntry] = {}

    def add(self, observer_id: str, observer: Observer, sweepable: bool = True) -> None:
        with self._lock:
            self._observers[observer_id] = ObserverEntry(observer=observer, sweepable=sweepable)
        logger.info(f"Observer connected: {observer_id} (total: {self.count()})")

    def remove(self, observer_id: str) -> bool:
        with self._lock:
            entry = self._observers.pop(observer_id, None)
        if entry is None:
            return False
        logger.info(f"Observer disconnected: {observer_id} (total: {self.count()})")
        return True

    def count(self) -> int:
        with self._lock:
            return len(self._observers)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._observers.keys())

    def touch(self, observer_id: str) -> None:
        """Mark an observer as reachable (e.g. after a transport heartbeat)."""
        with self._lock:
            entry = self._observers.get(observer_id)
            if entry is not None:
                entry.last_seen = time.monotonic()

    def send_to(self, observer_id: str, message: StreamMessage) -> bool:
        """
        Deliver one message to one observer.

        A failing observer is removed and False is returned; other observers
        are unaffected.
        """
        with self._lock:
            entry = self._observers.get(observer_id)
        if entry is None:
            return False

        try:
            entry.observer.send(message)
        except Exception as e:
            logger.warning(f"Failed to deliver to observer {observer_id}: {e}")
            self.remove(observer_id)
            return False

        entry.last_seen = time.monotonic()
        return True

    def broadcast(self, message: StreamMessage) -> int:
        """Deliver a message to every observer. Returns the number reached."""
        delivered = 0
        for observer_id in self.ids():
            if self.send_to(observer_id, message):
                delivered += 1
        return delivered

    def remove_stale(self, timeout_seconds: float, now: Optional[float] = None) -> List[str]:
        """Remove sweepable observers not reached within ``timeout_seconds``."""
        now = time.monotonic() if now is None else now
        with self._lock:
            stale = [
                observer_id for observer_id, entry in self._observers.items()
                if entry.sweepable and now - entry.last_seen > timeout_seconds
            ]
        for observer_id in stale:
            self.remove(observer_id)
        if stale:
            logger.info(f"Removed {len(stale)} stale observer(s)")
        return stale

    def clear(self) -> None:
        with self._lock:
            self._observers.clear()
