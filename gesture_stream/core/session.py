"""
Streaming session state machine.

Owns the connection status and stream state of the single live session,
decides when interactions are legal, and sequences stream restarts when
the slide changes.

Connection status is never invented here: it only changes when the
streaming collaborator reports it. Stream state changes through named
SessionEvents and the transition table below; events that have no
entry for the current state are ignored.

Every stream-start sequence runs under a request token. Tokens only
increase, and a continuation whose token is no longer current drops
its result without touching any state, so two overlapping slide
changes can never both start a stream.

    idle ──connected / slide──► starting ──started──► streaming ──ended──► ended
      starting ──ended──► ended ──started──► streaming
      any ──stream error / client error──► error
      any ──teardown──► ended
"""

import asyncio
import logging
from enum import Enum
from typing import List, Optional

from gesture_stream.core.errors import StreamLifecycleError
from gesture_stream.core.events import EventBus, Events
from gesture_stream.core.types import ConnectionStatus, Slide, StreamOptions, StreamState
from gesture_stream.modules.streaming.client import StreamHandlers

logger = logging.getLogger(__name__)


class SessionEvent(Enum):
    """Named inputs to the stream-state transition table."""
    START_REQUESTED = "start_requested"
    STREAM_STARTED = "stream_started"
    STREAM_ENDED = "stream_ended"
    STREAM_FAILED = "stream_failed"
    CLIENT_ERROR = "client_error"
    TEARDOWN = "teardown"


_ALL_STREAM_STATES = tuple(StreamState)

# event -> {from_state: to_state}
_STREAM_TRANSITIONS = {
    SessionEvent.START_REQUESTED: {state: StreamState.STARTING for state in _ALL_STREAM_STATES},
    # From ended too: a restart reports the old stream ending before the new one starts
    SessionEvent.STREAM_STARTED: {StreamState.STARTING: StreamState.STREAMING,
                                  StreamState.ENDED: StreamState.STREAMING},
    SessionEvent.STREAM_ENDED: {StreamState.STARTING: StreamState.ENDED,
                                StreamState.STREAMING: StreamState.ENDED},
    SessionEvent.STREAM_FAILED: {state: StreamState.ERROR for state in _ALL_STREAM_STATES},
    SessionEvent.CLIENT_ERROR: {state: StreamState.ERROR for state in _ALL_STREAM_STATES},
    SessionEvent.TEARDOWN: {state: StreamState.ENDED for state in _ALL_STREAM_STATES},
}

# Expected connection transitions; anything else is logged but still applied
_CONNECTION_TRANSITIONS = {
    ConnectionStatus.DISCONNECTED: {ConnectionStatus.AUTHENTICATING, ConnectionStatus.CONNECTING,
                                    ConnectionStatus.CONNECTED, ConnectionStatus.FAILED},
    ConnectionStatus.AUTHENTICATING: {ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED,
                                      ConnectionStatus.RECONNECTING, ConnectionStatus.FAILED,
                                      ConnectionStatus.DISCONNECTED},
    ConnectionStatus.CONNECTING: {ConnectionStatus.CONNECTED, ConnectionStatus.RECONNECTING,
                                  ConnectionStatus.FAILED, ConnectionStatus.DISCONNECTED},
    ConnectionStatus.CONNECTED: {ConnectionStatus.RECONNECTING, ConnectionStatus.DISCONNECTED,
                                 ConnectionStatus.FAILED},
    ConnectionStatus.RECONNECTING: {ConnectionStatus.CONNECTED, ConnectionStatus.FAILED,
                                    ConnectionStatus.DISCONNECTED},
    ConnectionStatus.FAILED: {ConnectionStatus.AUTHENTICATING, ConnectionStatus.CONNECTING,
                              ConnectionStatus.RECONNECTING, ConnectionStatus.DISCONNECTED},
}


class SessionStateMachine:
    """Connection/stream state for one live session.

    Example:
        >>> session = SessionStateMachine(client, slides, image_loader, bus)
        >>> await session.start()          # connect; stream starts once connected
        >>> session.next_slide()           # restart the stream on the next slide
        >>> await session.teardown()
    """

    def __init__(self, client, slides: List[Slide], image_loader, bus: Optional[EventBus] = None,
                 start_index: int = 0, portrait: bool = False):
        if not slides:
            raise ValueError("Session needs at least one slide")
        self._client = client
        self._slides = list(slides)
        self._image_loader = image_loader
        self._bus = bus or EventBus()
        self._portrait = portrait

        self._index = start_index % len(self._slides)
        self._connection = ConnectionStatus.DISCONNECTED
        self._stream = StreamState.IDLE
        self._token = 0
        self._last_error: Optional[str] = None
        self._media = None
        self._tasks = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def handlers(self) -> StreamHandlers:
        """Callback set handed to the collaborator's connect()."""
        return StreamHandlers(
            on_connected=self._on_connected,
            on_status_change=self.on_status_change,
            on_stream_started=self._on_stream_started,
            on_stream_ended=lambda: self.handle(SessionEvent.STREAM_ENDED),
            on_stream_error=self._on_stream_error,
            on_error=self._on_client_error,
        )

    async def start(self):
        """Connect to the collaborator. A failure leaves the session in error, not raised."""
        self._closed = False
        logger.info("Connecting streaming session (slide %d/%d)", self._index + 1, len(self._slides))
        try:
            await self._client.connect(self.handlers)
        except Exception as e:
            logger.error("Streaming connect failed: %s", e)
            self.handle(SessionEvent.CLIENT_ERROR, message=str(e))

    async def teardown(self):
        """Best-effort end stream then disconnect. Never raises."""
        self._closed = True
        # Any in-flight start sequence is now stale
        self._token += 1
        try:
            await self._client.end_stream()
        except Exception as e:
            logger.debug("end_stream during teardown failed: %s", e)
        try:
            await self._client.disconnect()
        except Exception as e:
            logger.debug("disconnect during teardown failed: %s", e)
        self.handle(SessionEvent.TEARDOWN)
        logger.info("Session torn down")

    # ------------------------------------------------------------------
    # Collaborator callbacks
    # ------------------------------------------------------------------

    def on_status_change(self, status: ConnectionStatus):
        previous = self._connection
        if status is previous:
            return
        if status not in _CONNECTION_TRANSITIONS.get(previous, set()):
            logger.warning("Unexpected connection transition %s -> %s", previous.value, status.value)
        self._connection = status
        logger.info("Connection: %s -> %s", previous.value, status.value)
        self._bus.emit(Events.CONNECTION_CHANGED, status=status, previous=previous)

        if status is ConnectionStatus.CONNECTED and not self._closed:
            self._begin_stream_sequence()

    def _on_connected(self, media):
        self._media = media

    def _on_stream_started(self):
        if self._closed:
            logger.debug("Ignoring stream start after teardown")
            return
        self.handle(SessionEvent.STREAM_STARTED)

    def _on_stream_error(self, reason: str, message: str):
        self.handle(SessionEvent.STREAM_FAILED, reason=reason, message=message)

    def _on_client_error(self, error: Exception):
        self.handle(SessionEvent.CLIENT_ERROR, message=str(error))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def handle(self, event: SessionEvent, reason: str = None, message: str = None) -> bool:
        """Apply a stream event. Returns True if the stream state changed."""
        target = _STREAM_TRANSITIONS[event].get(self._stream)
        if target is None:
            logger.debug("Ignoring %s while %s", event.value, self._stream.value)
            return False

        if event in (SessionEvent.STREAM_FAILED, SessionEvent.CLIENT_ERROR):
            self._set_error(reason, message)
        elif event is SessionEvent.START_REQUESTED:
            self._last_error = None

        if target is self._stream:
            return False

        previous, self._stream = self._stream, target
        logger.info("Stream: %s -> %s", previous.value, target.value)
        self._bus.emit(Events.STREAM_STATE_CHANGED, state=target, previous=previous)
        return True

    def _set_error(self, reason: Optional[str], message: Optional[str]):
        error = StreamLifecycleError(reason, message or "Unknown error")
        self._last_error = str(error)
        logger.error("Session error: %s", self._last_error)
        self._bus.emit(Events.SESSION_ERROR, reason=reason, message=error.message, error=error)

    # ------------------------------------------------------------------
    # Slides
    # ------------------------------------------------------------------

    def next_slide(self):
        return self.go_to(self._index + 1)

    def previous_slide(self):
        return self.go_to(self._index - 1)

    def go_to(self, index: int):
        """Select a slide (wraps around). Restarts the stream when connected.

        Returns:
            The stream-start task, or None when not connected.
        """
        self._index = index % len(self._slides)
        slide = self.current_slide
        logger.info("Slide %d/%d: %s", self._index + 1, len(self._slides), slide.id)
        self._bus.emit(Events.SLIDE_CHANGED, index=self._index, slide=slide)
        if self._connection is not ConnectionStatus.CONNECTED or self._closed:
            return None
        return self._begin_stream_sequence()

    def _begin_stream_sequence(self) -> asyncio.Task:
        self._token += 1
        token = self._token
        self.handle(SessionEvent.START_REQUESTED)
        task = asyncio.get_running_loop().create_task(
            self._run_stream_sequence(token, self.current_slide)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_stream_sequence(self, token: int, slide: Slide):
        try:
            try:
                await self._client.end_stream()
            except Exception as e:
                logger.debug("end_stream before restart failed: %s", e)
            if token != self._token:
                return

            image = await self._image_loader.load(slide)
            if token != self._token:
                logger.debug("Discarding stale stream start (token %d, current %d)", token, self._token)
                return

            await self._client.start_stream(
                StreamOptions(prompt=slide.prompt, image=image, portrait=self._portrait)
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if token != self._token:
                logger.debug("Discarding stale stream failure (token %d): %s", token, e)
                return
            self.handle(SessionEvent.STREAM_FAILED, reason="start_failed", message=str(e))

    async def wait_idle(self):
        """Wait for in-flight stream-start sequences to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._connection

    @property
    def stream_state(self) -> StreamState:
        return self._stream

    @property
    def is_stream_ready(self) -> bool:
        return self._stream is StreamState.STREAMING

    @property
    def token(self) -> int:
        return self._token

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def current_slide(self) -> Slide:
        return self._slides[self._index]

    @property
    def slide_index(self) -> int:
        return self._index

    @property
    def slide_count(self) -> int:
        return len(self._slides)

    @property
    def media(self):
        return self._media

    @property
    def status_summary(self) -> str:
        return f"{self._connection.label} · {self._stream.label}"
