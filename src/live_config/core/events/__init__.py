"""
Event system for the live configuration engine.

Provides publish/subscribe messaging between the update pipeline and
its consumers. Events are dispatched synchronously, in subscription
order, with each callback bounded by the hook timeout.
"""

from typing import Dict, Any, List, Optional, Callable, Union
from dataclasses import dataclass, field
from enum import Enum
import time
import logging
import threading
from collections import defaultdict
import json

from ..exceptions import HookTimeoutError
from ...utils.hooks import HookRunner

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Standard event types."""

    # Lifecycle events
    INITIALIZED = "config.initialized"

    # Commit events
    CONFIG_CHANGED = "config.changed"
    CONFIG_UPDATED = "config.updated"
    BACKED_UP = "config.backed_up"
    RESTORED = "config.restored"
    PRESET_APPLIED = "config.preset_applied"
    RELOADED = "config.reloaded"

    # Failure events
    VALIDATION_FAILED = "config.validation_failed"
    PERSIST_FAILED = "config.persist_failed"
    RELOAD_FAILED = "config.reload_failed"

    # Watcher events
    WATCHER_STARTED = "watcher.started"
    WATCHER_STOPPED = "watcher.stopped"
    WATCHER_ERROR = "watcher.error"

    @classmethod
    def resolve(cls, name: Union[str, "EventType"]) -> "EventType":
        """Look up an event type by enum, dotted value or member name."""
        if isinstance(name, cls):
            return name
        for member in cls:
            if name == member.value or name == member.name:
                return member
        raise ValueError(f"Unknown event type: {name}")


@dataclass
class Event:
    """Base event class."""

    event_type: EventType
    source: str
    data: Dict[str, Any]
    timestamp: float = field(default_factory=time.time)

    @property
    def name(self) -> str:
        return self.event_type.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_type": self.event_type.value,
            "source": self.source,
            "data": self.data,
            "timestamp": self.timestamp
        }

    def to_json(self) -> str:
        """Convert event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class EventBus:
    """Central event bus for publish/subscribe messaging."""

    def __init__(self, hook_runner: Optional[HookRunner] = None, hook_timeout: float = 5.0):
        self.subscribers: Dict[EventType, List[Callable]] = defaultdict(list)
        self._runner = hook_runner or HookRunner(timeout=hook_timeout)
        self._owns_runner = hook_runner is None
        self._lock = threading.Lock()
        self._stats = {
            "events_published": 0,
            "events_handled": 0,
            "handler_errors": 0,
            "handler_timeouts": 0
        }

    def subscribe(self, event_type: Union[str, EventType], callback: Callable[[Event], Any]) -> None:
        """Subscribe to event type with callback."""
        resolved = EventType.resolve(event_type)
        with self._lock:
            self.subscribers[resolved].append(callback)
        logger.debug(f"Subscribed callback {getattr(callback, '__name__', callback)} to {resolved.value}")

    def unsubscribe(self, event_type: Union[str, EventType], callback: Callable) -> None:
        """Unsubscribe callback from event type."""
        resolved = EventType.resolve(event_type)
        with self._lock:
            if callback in self.subscribers[resolved]:
                self.subscribers[resolved].remove(callback)
                logger.debug(f"Unsubscribed callback {getattr(callback, '__name__', callback)} from {resolved.value}")

    def publish(self, event: Event) -> None:
        """Deliver an event to every subscriber of its type."""
        self._stats["events_published"] += 1
        with self._lock:
            callbacks = list(self.subscribers.get(event.event_type, []))

        for callback in callbacks:
            try:
                self._runner.call(callback, event)
                self._stats["events_handled"] += 1
            except HookTimeoutError as e:
                self._stats["handler_timeouts"] += 1
                logger.warning(f"Subscriber timed out on {event.name}: {e.message}")
            except Exception as e:
                self._stats["handler_errors"] += 1
                logger.error(f"Subscriber error on {event.name}: {e}")

    def emit(self, event_type: EventType, source: str, **data: Any) -> Event:
        """Build and publish an event in one call."""
        event = Event(event_type=event_type, source=source, data=data)
        self.publish(event)
        return event

    def subscriber_count(self, event_type: Optional[Union[str, EventType]] = None) -> int:
        with self._lock:
            if event_type is None:
                return sum(len(callbacks) for callbacks in self.subscribers.values())
            return len(self.subscribers.get(EventType.resolve(event_type), []))

    def clear(self) -> None:
        """Drop every subscription."""
        with self._lock:
            self.subscribers.clear()

    def close(self) -> None:
        """Drop subscriptions and release the hook runner if owned."""
        self.clear()
        if self._owns_runner:
            self._runner.shutdown()

    def get_stats(self) -> Dict[str, Any]:
        """Get event bus statistics."""
        return self._stats.copy()


__all__ = [
    "EventType",
    "Event",
    "EventBus",
]
