"""
Admission control for the metered remote classifier.

Three independent gates must all pass before a classification call
is issued:

    in-flight   at most one outstanding request
    cooldown    now - last_call_at >= cooldown_ms
    retry-after now >= server-issued retry deadline (from a 429)

Refused attempts are dropped, never queued: under a polling model a
missed sample is cheaper than a backlog.
"""

import logging

from gesture_stream.core.errors import DEFAULT_RETRY_AFTER_MS

logger = logging.getLogger(__name__)


class RateGovernor:
    """Decides whether a new classification attempt is allowed."""

    def __init__(self, config: dict = None):
        config = config or {}
        self._cooldown_ms = float(config.get("cooldown_ms", 8000))
        self._default_retry_ms = float(config.get("default_retry_after_ms", DEFAULT_RETRY_AFTER_MS))

        self._last_call_at = None
        self._in_flight = False
        self._retry_not_before = 0.0

    def try_acquire(self, now: float) -> bool:
        """Claim the single request slot at time ``now`` (ms).

        Returns True and marks the governor in-flight only if every gate
        passes. The caller must call release() when the call completes.
        """
        if self._in_flight:
            return False
        if now < self._retry_not_before:
            return False
        if self._last_call_at is not None and now - self._last_call_at < self._cooldown_ms:
            return False

        self._in_flight = True
        self._last_call_at = now
        return True

    def release(self):
        """Clear the in-flight flag. Safe to call when nothing is in flight."""
        self._in_flight = False

    def defer(self, now: float, retry_after_ms: float = None):
        """Honor a server throttle signal received at ``now``."""
        if retry_after_ms is None:
            retry_after_ms = self._default_retry_ms
        deadline = now + retry_after_ms
        # A later deadline always wins over an earlier one
        self._retry_not_before = max(self._retry_not_before, deadline)
        logger.info("Classifier throttled, next attempt not before +%.0fms", retry_after_ms)

    def reset(self):
        """Forget in-flight and cooldown state (gesture loop disabled).

        The server retry deadline survives: a 429 must be honored even
        if the loop is toggled off and on again.
        """
        self._in_flight = False
        self._last_call_at = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def cooldown_ms(self) -> float:
        return self._cooldown_ms

    @property
    def next_allowed_at(self) -> float:
        """Earliest time (ms) at which try_acquire() could succeed."""
        cooldown_end = 0.0
        if self._last_call_at is not None:
            cooldown_end = self._last_call_at + self._cooldown_ms
        return max(cooldown_end, self._retry_not_before)
