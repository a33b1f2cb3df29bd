"""
Quiet-period debouncer for remote gesture labels.

A label must be observed and then left undisturbed by any *different*
label for ``debounce_ms`` before it is confirmed:

    observe(none)       ignored, never cancels a stabilizing gesture
    observe(new label)  replace pending, cancel old timer, arm new one
    observe(same label) no-op, the first deadline stands

Tie-break: replacing a pending label cancels its timer handle before
the new one is armed. A cancelled handle never runs, even if it was
already due in the same loop iteration, so cancel-then-reschedule
strictly precedes fire.
"""

import asyncio
import logging
from typing import Callable, Optional

from gesture_stream.core.types import GestureLabel, PendingGesture

logger = logging.getLogger(__name__)


class DebounceScheduler:
    """Turns a jittery stream of labels into single confirmed gestures."""

    def __init__(self, config: dict = None, on_confirm: Callable = None, scheduler=None):
        config = config or {}
        self._debounce_ms = float(config.get("debounce_ms", 1200))
        self._on_confirm = on_confirm
        self._scheduler = scheduler  # anything with call_later(); defaults to the running loop

        self._pending: Optional[PendingGesture] = None
        self._timer = None

    def set_callback(self, on_confirm: Callable):
        self._on_confirm = on_confirm

    def observe(self, label: GestureLabel, now: float):
        """Feed one classification result observed at ``now`` (ms)."""
        if not label.is_actionable:
            return

        if self._pending is not None and self._pending.label is label:
            return

        if self._timer is not None:
            self._timer.cancel()

        self._pending = PendingGesture(label=label, deadline=now + self._debounce_ms)
        self._timer = self._get_scheduler().call_later(
            self._debounce_ms / 1000.0, self._fire, label
        )
        logger.debug("Gesture pending: %s (confirm at %.0fms)", label.value, self._pending.deadline)

    def _fire(self, label: GestureLabel):
        self._timer = None
        pending, self._pending = self._pending, None
        if pending is None:
            return
        logger.debug("Gesture confirmed: %s", label.value)
        if self._on_confirm is not None:
            self._on_confirm(label)

    def cancel(self):
        """Drop the pending gesture and its timer. Safe when idle."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None

    def _get_scheduler(self):
        if self._scheduler is None:
            return asyncio.get_running_loop()
        return self._scheduler

    @property
    def pending(self) -> Optional[PendingGesture]:
        return self._pending

    @property
    def debounce_ms(self) -> float:
        return self._debounce_ms
