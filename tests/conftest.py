"""
Shared test fixtures: a virtual ms clock with timers, and fake
collaborators for the streaming SDK, slide images and the camera.
"""

import pytest

from gesture_stream.core.types import ConnectionStatus, FrameSample, Slide, StreamImage
from gesture_stream.modules.streaming.client import StreamHandlers


class FakeTimerHandle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Virtual clock (ms) exposing call_later() like an asyncio loop.

    Calling the instance returns the current time, so it doubles as the
    ``clock`` argument of the pipeline components.
    """

    def __init__(self, start: float = 0.0):
        self.now = start
        self._timers = []

    def __call__(self) -> float:
        return self.now

    def call_later(self, delay_s, callback, *args):
        handle = FakeTimerHandle(self.now + delay_s * 1000.0, callback, args)
        self._timers.append(handle)
        return handle

    def advance(self, ms: float):
        """Move time forward, firing due timers in deadline order."""
        target = self.now + ms
        while True:
            due = [h for h in self._timers if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._timers.remove(handle)
            self.now = handle.when
            handle.callback(*handle.args)
        self.now = target

    @property
    def pending(self) -> list:
        return [h for h in self._timers if not h.cancelled]


class FakeStreamingClient:
    """Records every verb; the test drives connection callbacks by hand."""

    def __init__(self):
        self.handlers = StreamHandlers()
        self.calls = []
        self.started = []
        self.interactions = []
        self.auto_start = True
        self.start_error = None
        self.interact_error = None
        self.end_error = None
        self.disconnect_error = None
        self.connect_error = None

    async def connect(self, handlers):
        self.calls.append("connect")
        self.handlers = handlers
        if self.connect_error is not None:
            raise self.connect_error

    async def start_stream(self, options):
        self.calls.append("start_stream")
        self.started.append(options)
        if self.start_error is not None:
            raise self.start_error
        if self.auto_start:
            self.handlers.on_stream_started()

    async def interact(self, prompt):
        self.calls.append("interact")
        if self.interact_error is not None:
            raise self.interact_error
        self.interactions.append(prompt)

    async def end_stream(self):
        self.calls.append("end_stream")
        if self.end_error is not None:
            raise self.end_error

    async def disconnect(self):
        self.calls.append("disconnect")
        if self.disconnect_error is not None:
            raise self.disconnect_error

    def report_connected(self):
        for status in (ConnectionStatus.AUTHENTICATING, ConnectionStatus.CONNECTING,
                       ConnectionStatus.CONNECTED):
            self.handlers.on_status_change(status)


class FakeImageLoader:
    """Slide image loader whose loads can be held open with asyncio.Event gates."""

    def __init__(self):
        self.gates = {}
        self.errors = {}
        self.loaded = []

    async def load(self, slide):
        self.loaded.append(slide.id)
        gate = self.gates.get(slide.id)
        if gate is not None:
            await gate.wait()
        if slide.id in self.errors:
            raise self.errors[slide.id]
        return StreamImage(name=f"{slide.id}.png", data=b"\x89PNG")


class FakeCamera:
    """Camera stand-in with the CameraManager surface used by the pipeline."""

    def __init__(self, clock=None, can_open: bool = True):
        self._clock = clock
        self._can_open = can_open
        self._open = False
        self.open_calls = 0
        self.stop_calls = 0
        self.captures = 0

    def open(self) -> bool:
        self.open_calls += 1
        self._open = self._can_open
        return self._open

    @property
    def is_open(self) -> bool:
        return self._open

    def capture_still(self):
        self.captures += 1
        captured_at = self._clock() if self._clock is not None else 0.0
        return FrameSample(image_b64="aGFuZA==", mime_type="image/jpeg", captured_at=captured_at)

    def stop(self):
        self.stop_calls += 1
        self._open = False


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def slides():
    return [
        Slide(id="intro", prompt="a quiet harbor at dawn", cta="ring the bell", image="intro.png"),
        Slide(id="market", prompt="a busy night market", cta="light a lantern", image="market.png"),
        Slide(id="orchard", prompt="an apple orchard", cta="shake the tree", image="orchard.png"),
    ]


@pytest.fixture
def fake_client():
    return FakeStreamingClient()


@pytest.fixture
def image_loader():
    return FakeImageLoader()
