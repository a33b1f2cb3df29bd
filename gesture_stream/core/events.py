"""
Lightweight event bus for the observer layer.

Components publish what happened (state changes, confirmed gestures,
soft failures) and the console / UI layer subscribes. Handlers run
synchronously on the event loop thread, in priority order.

Usage:
    bus = EventBus()
    bus.subscribe(Events.GESTURE_CONFIRMED, my_handler)
    bus.emit(Events.GESTURE_CONFIRMED, label="thumbs_up")
"""

import time
import logging
from collections import defaultdict, deque
from typing import Callable

logger = logging.getLogger(__name__)


def _name(callback) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


class EventBus:
    """Publish/subscribe event bus owned by one session.

    A failing handler is logged and skipped; it never propagates back
    into the component that emitted the event.
    """

    def __init__(self, max_history: int = 100):
        self._listeners = defaultdict(list)  # event_name -> [(priority, callback)], highest first
        self._event_history = deque(maxlen=max_history)
        self._enabled = True

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0):
        """Register `callback(**data)` for `event_name`.

        Higher `priority` runs earlier; equal priorities keep subscription order.
        """
        listeners = self._listeners[event_name]
        position = next((i for i, (p, _) in enumerate(listeners) if p < priority), len(listeners))
        listeners.insert(position, (priority, callback))
        logger.debug("'%s' <- %s (priority=%d)", event_name, _name(callback), priority)

    def unsubscribe(self, event_name: str, callback: Callable):
        remaining = [entry for entry in self._listeners.get(event_name, []) if entry[1] is not callback]
        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)

    def emit(self, event_name: str, **kwargs):
        """Record the event, then call each listener. Listener errors are logged only."""
        if not self._enabled:
            return

        self._event_history.append({"event": event_name, "time": time.time(), "data": dict(kwargs)})

        for _, callback in tuple(self._listeners.get(event_name, ())):
            try:
                callback(**kwargs)
            except Exception:
                logger.exception("Listener %s failed on '%s'", _name(callback), event_name)

    def clear(self, event_name: str = None):
        """Drop listeners for one event, or for all events."""
        if event_name is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event_name, None)

    def disable(self):
        self._enabled = False

    def enable(self):
        self._enabled = True

    @property
    def registered_events(self) -> list:
        return [name for name, listeners in self._listeners.items() if listeners]

    @property
    def listener_count(self) -> int:
        return sum(map(len, self._listeners.values()))

    def get_history(self, last_n: int = 10, event_name: str = None) -> list:
        """Most recent `last_n` events, oldest first, optionally for one event name."""
        history = [h for h in self._event_history if event_name is None or h["event"] == event_name]
        return history[-last_n:]


# =============================================================================
# Standard Event Names (constants to avoid typos)
# =============================================================================

class Events:
    """Standard event names used throughout the system."""

    # Gesture pipeline
    FRAME_SAMPLED = "frame_sampled"
    GESTURE_CLASSIFIED = "gesture_classified"
    GESTURE_PENDING = "gesture_pending"
    GESTURE_CONFIRMED = "gesture_confirmed"
    CLASSIFICATION_FAILED = "classification_failed"
    CLASSIFICATION_RATE_LIMITED = "classification_rate_limited"
    GESTURES_ENABLED = "gestures_enabled"
    GESTURES_DISABLED = "gestures_disabled"
    GESTURE_SETUP_FAILED = "gesture_setup_failed"

    # Session
    CONNECTION_CHANGED = "connection_changed"
    STREAM_STATE_CHANGED = "stream_state_changed"
    SLIDE_CHANGED = "slide_changed"
    SESSION_ERROR = "session_error"

    # Interactions
    INTERACTION_SENT = "interaction_sent"
    INTERACTION_FAILED = "interaction_failed"

    # Voice
    RECORDING_STARTED = "recording_started"
    TRANSCRIPT_READY = "transcript_ready"
    SPEECH_FAILED = "speech_failed"
