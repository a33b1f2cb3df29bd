"""
Gesture pipeline orchestrator.

Wires the stages together:

    CaptureLoop -> RateGovernor (gate) -> RemoteClassifier
    -> DebounceScheduler -> InteractionDispatcher

and owns enable/disable of gesture detection. All stages run on one
asyncio loop; the governor's in-flight flag keeps at most one
classification outstanding, and classification failures are absorbed
here so the capture cadence keeps running.
"""

import asyncio
import logging
import time
from typing import Optional

from gesture_stream.core.errors import CameraUnavailableError, RateLimited, TransientBoundaryError
from gesture_stream.core.events import EventBus, Events
from gesture_stream.core.types import FrameSample, GestureLabel
from gesture_stream.modules.capture.capture_loop import CaptureLoop
from gesture_stream.modules.recognition.debouncer import DebounceScheduler
from gesture_stream.modules.recognition.rate_governor import RateGovernor

logger = logging.getLogger(__name__)


class GesturePipeline:
    """Composable capture -> classify -> debounce -> dispatch pipeline.

    Args:
        camera: frame source with open() / capture_still() / is_open / stop()
        classifier: object with ``async classify(FrameSample) -> GestureLabel``
        dispatcher: InteractionDispatcher
        session: anything exposing ``is_stream_ready``
        config: dict with optional ``capture``, ``governor``, ``debounce`` sections
        clock: ms clock shared by every stage (defaults to monotonic)
        scheduler: timer source for the debouncer (defaults to the running loop)
    """

    def __init__(self, camera, classifier, dispatcher, session, config: dict = None,
                 bus: EventBus = None, gesture_logger=None, clock=None, scheduler=None):
        config = config or {}
        self._camera = camera
        self._classifier = classifier
        self._dispatcher = dispatcher
        self._session = session
        self._bus = bus or EventBus()
        self._gesture_logger = gesture_logger
        self._clock = clock or (lambda: time.monotonic() * 1000)

        self._governor = RateGovernor(config.get("governor", {}))
        self._debouncer = DebounceScheduler(
            config.get("debounce", {}), on_confirm=self._on_confirmed, scheduler=scheduler
        )
        self._capture = CaptureLoop(
            config.get("capture", {}),
            source=camera,
            submit=self.submit,
            is_ready=lambda: self._session.is_stream_ready,
            clock=self._clock,
        )

        self._enabled = False
        self._generation = 0  # bumped by disable(); stales an in-progress enable_async()
        self._opening = False
        self._classify_task: Optional[asyncio.Task] = None
        self._tasks = set()

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    def enable(self, start_loop: bool = True):
        """Acquire the camera inline and start sampling.

        Raises:
            CameraUnavailableError: the camera could not be opened
        """
        if self._enabled:
            return
        self._activate(self._camera.open(), start_loop)

    async def enable_async(self, start_loop: bool = True):
        """Like enable(), but opens the camera (and its warmup reads) in a worker thread.

        A disable() that lands while the camera is opening wins: the
        freshly opened camera is released again and nothing starts.

        Raises:
            CameraUnavailableError: the camera could not be opened
        """
        if self._enabled or self._opening:
            return
        generation = self._generation
        self._opening = True
        try:
            opened = await asyncio.to_thread(self._camera.open)
        finally:
            self._opening = False
        if generation != self._generation:
            logger.info("Gesture enable superseded by disable")
            self._camera.stop()
            return
        self._activate(opened, start_loop)

    def _activate(self, opened: bool, start_loop: bool):
        if not opened:
            self._bus.emit(Events.GESTURE_SETUP_FAILED, message="Camera unavailable")
            raise CameraUnavailableError("Gesture setup failed: camera unavailable")

        self._governor.reset()
        self._debouncer.cancel()
        self._enabled = True
        if start_loop:
            self._capture.start()
        logger.info("Gesture detection on")
        self._bus.emit(Events.GESTURES_ENABLED)

    def disable(self):
        """Stop sampling, drop pending state and release the camera.

        Safe to call when nothing is running.
        """
        was_enabled = self._enabled
        self._enabled = False
        self._generation += 1
        self._capture.stop()
        self._debouncer.cancel()
        if self._classify_task is not None:
            self._classify_task.cancel()
            self._classify_task = None
        self._governor.reset()
        if was_enabled:
            logger.info("Gesture detection off")
            self._bus.emit(Events.GESTURES_DISABLED)

    def tick(self, now: float = None):
        """Run one capture iteration by hand (benchmarks, tests)."""
        if not self._enabled:
            return None
        return self._capture.tick(now)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def submit(self, sample: FrameSample, now: float) -> Optional[asyncio.Task]:
        """Start classifying ``sample`` if the governor admits it."""
        if not self._governor.try_acquire(now):
            return None
        self._bus.emit(Events.FRAME_SAMPLED, captured_at=sample.captured_at)
        task = asyncio.get_running_loop().create_task(self._classify(sample))
        self._classify_task = task
        self._track(task)
        return task

    async def _classify(self, sample: FrameSample):
        current = asyncio.current_task()
        try:
            label = await self._classifier.classify(sample)
        except RateLimited as e:
            self._governor.defer(self._clock(), e.retry_after_ms)
            self._bus.emit(Events.CLASSIFICATION_RATE_LIMITED, retry_after_ms=e.retry_after_ms)
            return
        except TransientBoundaryError as e:
            logger.warning("Gesture classification failed: %s", e)
            self._bus.emit(Events.CLASSIFICATION_FAILED, message=str(e))
            return
        except Exception as e:
            logger.error("Unexpected classifier error: %s", e)
            self._bus.emit(Events.CLASSIFICATION_FAILED, message=str(e))
            return
        finally:
            if self._classify_task is current:
                self._governor.release()
                self._classify_task = None

        if not self._enabled:
            return

        now = self._clock()
        latency_ms = now - sample.captured_at
        self._bus.emit(Events.GESTURE_CLASSIFIED, label=label, latency_ms=latency_ms)
        if label.is_actionable:
            if self._gesture_logger is not None:
                self._gesture_logger.log_gesture(label.value, latency_ms)
            self._debouncer.observe(label, now)
            pending = self._debouncer.pending
            if pending is not None:
                self._bus.emit(Events.GESTURE_PENDING, label=pending.label, deadline=pending.deadline)

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def _on_confirmed(self, label: GestureLabel):
        if not self._enabled:
            return
        logger.info("Gesture: %s", label.value)
        if self._gesture_logger is not None:
            self._gesture_logger.log_gesture(label.value, confirmed=True)
        self._bus.emit(Events.GESTURE_CONFIRMED, label=label)
        self._track(asyncio.get_running_loop().create_task(self._dispatcher.dispatch_gesture(label)))

    def _track(self, task: asyncio.Task):
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self):
        """Wait for outstanding classification and dispatch tasks."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def governor(self) -> RateGovernor:
        return self._governor

    @property
    def debouncer(self) -> DebounceScheduler:
        return self._debouncer

    @property
    def capture_loop(self) -> CaptureLoop:
        return self._capture
