"""
Simulated streaming collaborator for demo mode.

Behaves like the real SDK at the boundary (status callbacks while
connecting, stream started/ended callbacks after a short delay) but
only logs what it would have rendered.
"""

import asyncio
import logging

from gesture_stream.core.types import ConnectionStatus, StreamOptions
from gesture_stream.modules.streaming.client import StreamHandlers

logger = logging.getLogger(__name__)


class SimulatedStreamingClient:
    """Logged-only stand-in for the streaming SDK."""

    def __init__(self, config: dict = None):
        config = config or {}
        self._connect_delay_s = float(config.get("connect_delay_ms", 200)) / 1000.0
        self._start_delay_s = float(config.get("start_delay_ms", 500)) / 1000.0

        self._handlers = StreamHandlers()
        self._streaming = False
        self._connected = False
        self._interactions = []

    async def connect(self, handlers: StreamHandlers):
        self._handlers = handlers
        loop = asyncio.get_running_loop()
        self._handlers.on_status_change(ConnectionStatus.AUTHENTICATING)
        await asyncio.sleep(self._connect_delay_s)
        self._handlers.on_status_change(ConnectionStatus.CONNECTING)
        await asyncio.sleep(self._connect_delay_s)
        self._connected = True
        loop.call_soon(self._handlers.on_connected, None)
        loop.call_soon(self._handlers.on_status_change, ConnectionStatus.CONNECTED)
        logger.info("[simulated] connected")

    async def start_stream(self, options: StreamOptions):
        if not self._connected:
            raise RuntimeError("Not connected")
        image = f"{options.image.name} ({options.image.size} bytes)" if options.image else "none"
        logger.info("[simulated] start stream: prompt=%r image=%s", options.prompt, image)
        await asyncio.sleep(self._start_delay_s)
        self._streaming = True
        self._handlers.on_stream_started()

    async def interact(self, prompt: str):
        if not self._streaming:
            raise RuntimeError("No active stream")
        self._interactions.append(prompt)
        logger.info("[simulated] interact: %r", prompt)

    async def end_stream(self):
        if not self._streaming:
            return
        self._streaming = False
        logger.info("[simulated] stream ended")
        self._handlers.on_stream_ended()

    async def disconnect(self):
        if not self._connected:
            return
        self._connected = False
        self._streaming = False
        logger.info("[simulated] disconnected")
        self._handlers.on_status_change(ConnectionStatus.DISCONNECTED)

    @property
    def interactions(self) -> list:
        return list(self._interactions)
