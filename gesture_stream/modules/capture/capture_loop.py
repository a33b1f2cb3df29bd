"""
Fixed-cadence frame sampler.

Runs at display-refresh cadence (cheap) but only pulls a still every
``poll_interval_ms``. The camera read happens in a worker thread so
timers and callbacks on the event loop keep running meanwhile.

Each still is handed to ``submit`` only while the session is
stream-ready; ``submit`` applies the RateGovernor and starts
classification as its own task so the cadence never waits on the
network.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CaptureLoop:
    """Samples the camera on a timer and forwards frames for classification."""

    def __init__(self, config: dict, source, submit: Callable, is_ready: Callable[[], bool],
                 clock: Callable[[], float] = None):
        config = config or {}
        self._poll_interval_ms = float(config.get("poll_interval_ms", 1200))
        self._frame_interval_s = float(config.get("frame_interval_ms", 33)) / 1000.0

        self._source = source
        self._submit = submit
        self._is_ready = is_ready
        self._clock = clock or (lambda: time.monotonic() * 1000)

        self._last_sample_at = None
        self._task: Optional[asyncio.Task] = None
        self._sample_count = 0

    def _due(self, now: float) -> bool:
        if not self._source.is_open:
            return False
        return self._last_sample_at is None or now - self._last_sample_at >= self._poll_interval_ms

    def _accept(self, sample, now: float):
        self._last_sample_at = now
        if sample is None:
            return None
        self._sample_count += 1

        if not self._is_ready():
            return None
        return self._submit(sample, now)

    def tick(self, now: float = None):
        """Run one cadence iteration, reading the source inline.

        Returns:
            Whatever ``submit`` returned (usually the classification task),
            or None when nothing was submitted.
        """
        now = self._clock() if now is None else now
        if not self._due(now):
            return None
        return self._accept(self._source.capture_still(), now)

    async def sample(self, now: float = None):
        """Like tick(), but the blocking camera read runs in a worker thread."""
        now = self._clock() if now is None else now
        if not self._due(now):
            return None
        still = await asyncio.to_thread(self._source.capture_still)
        return self._accept(still, now)

    async def _run(self):
        while True:
            try:
                await self.sample()
            except Exception as e:
                # Loop survives capture failures; next tick tries again
                logger.warning("Capture tick failed: %s", e)
            await asyncio.sleep(self._frame_interval_s)

    def start(self):
        """Start the cadence task on the running loop."""
        if self.running:
            return
        self._last_sample_at = None
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Capture loop started (poll every %.0fms)", self._poll_interval_ms)

    def stop(self):
        """Cancel the pending iteration and release the source.

        Safe to call when the loop was never started.
        """
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Capture loop stopped after %d samples", self._sample_count)
        self._source.stop()
        self._last_sample_at = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def poll_interval_ms(self) -> float:
        return self._poll_interval_ms
