"""Event system for FormSync.

This module provides the event data structures and event emitter used for
fine-grained change notification. Every observable cell of a form (raw input,
a field's error messages, a field's touched flag, the submit lifecycle) emits
a typed FormEvent when, and only when, it changes.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import json
import logging

from .types import EventType, Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormEvent:
    """A single change notification emitted by a form.

    Attributes:
        event_id: Unique event identifier (e.g., "evt_01H8...")
        type: Event type from EventType enum
        ts: UTC timestamp when the event occurred
        path: Path of the field concerned, None for form-level events
        payload: Optional event-specific data (e.g., new error messages)

    Examples:
        >>> from datetime import datetime, timezone
        >>> event = FormEvent(
        ...     event_id="evt_001",
        ...     type=EventType.FIELD_TOUCHED_CHANGED,
        ...     ts=datetime.now(timezone.utc),
        ...     path=("name",),
        ...     payload={"touched": True},
        ... )
    """
    event_id: str
    type: EventType
    ts: datetime
    path: Optional[Path] = None
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        """Normalize fields."""
        if isinstance(self.type, str):
            object.__setattr__(self, "type", EventType(self.type))
        if self.path is not None and not isinstance(self.path, tuple):
            object.__setattr__(self, "path", tuple(self.path))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Returns:
            Dictionary with all event fields, suitable for JSON serialization.
            Timestamp is formatted as ISO 8601 string.
        """
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "ts": self.ts.isoformat(),
        }
        if self.path is not None:
            result["path"] = list(self.path)
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Convert event to JSONL format (single-line JSON)."""
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormEvent":
        """Create FormEvent from dictionary (camelCase keys)."""
        ts = datetime.fromisoformat(data["ts"].replace('Z', '+00:00'))
        path = data.get("path")
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            ts=ts,
            path=tuple(path) if path is not None else None,
            payload=data.get("payload"),
        )


EventListener = Callable[[FormEvent], None]
"""Type alias for event listener callbacks.

Event listeners are called synchronously when events are emitted, possibly
in the middle of a validation pass. They must not request a synchronous
validation themselves.
"""


class EventEmitter:
    """Event emitter for managing event listeners and dispatching events.

    Features:
    - Type-specific subscriptions (listen to specific event types)
    - Wildcard subscriptions (listen to all events)
    - Synchronous dispatch (listeners called in registration order)
    - Error isolation (listener exceptions are logged and don't affect
      other listeners or the emitting form)

    Examples:
        >>> emitter = EventEmitter()
        >>> emitter.on(EventType.FIELD_ERRORS_CHANGED, lambda e: print(e.path))
        >>> emitter.on_any(lambda e: print(e.type.value))
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Subscribe to a specific event type."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        self._listeners[event_type].append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types (wildcard subscription)."""
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type."""
        if event_type in self._listeners:
            try:
                self._listeners[event_type].remove(listener)
            except ValueError:
                pass  # Listener not registered, ignore

    def off_any(self, listener: EventListener) -> None:
        """Unsubscribe from wildcard subscription."""
        try:
            self._any_listeners.remove(listener)
        except ValueError:
            pass  # Listener not registered, ignore

    def emit(self, event: FormEvent) -> None:
        """Dispatch an event to all registered listeners.

        Listeners are called synchronously in registration order:
        1. Type-specific listeners for this event type
        2. Wildcard listeners (subscribed to all events)

        If a listener raises an exception, it is logged and suppressed so
        that it cannot leave the form half-updated.

        Args:
            event: Event to dispatch
        """
        # Copy so listeners may unsubscribe while being dispatched
        for listener in list(self._listeners.get(event.type, [])):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener for %s failed", event.type.value)

        for listener in list(self._any_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Wildcard listener failed on %s", event.type.value)

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Get count of registered listeners.

        Args:
            event_type: If provided, count listeners for this type only.
                        If None, count all listeners (including wildcard).
        """
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        total = len(self._any_listeners)
        for listeners in self._listeners.values():
            total += len(listeners)
        return total


__all__ = [
    "FormEvent",
    "EventType",
    "EventListener",
    "EventEmitter",
]
