"""
Boundary to the generative video streaming collaborator.

The session treats the collaborator as an event source plus a handful
of verbs. Concrete SDK adapters live outside this package and are
loaded from a ``module:callable`` path in the config; without one the
simulated client is used (demo mode).
"""

import importlib
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from gesture_stream.core.errors import ConfigurationError
from gesture_stream.core.types import ConnectionStatus, StreamOptions

logger = logging.getLogger(__name__)


def _noop(*args, **kwargs):
    return None


@dataclass
class StreamHandlers:
    """Callbacks the collaborator invokes on the event loop thread."""
    on_connected: Callable[[Any], None] = _noop
    on_status_change: Callable[[ConnectionStatus], None] = _noop
    on_stream_started: Callable[[], None] = _noop
    on_stream_ended: Callable[[], None] = _noop
    on_stream_error: Callable[[str, str], None] = _noop
    on_error: Callable[[Exception], None] = _noop


class StreamingClient(Protocol):
    """Verbs the session needs from the streaming SDK."""

    async def connect(self, handlers: StreamHandlers) -> Any: ...

    async def start_stream(self, options: StreamOptions) -> Any: ...

    async def interact(self, prompt: str) -> Any: ...

    async def end_stream(self) -> Any: ...

    async def disconnect(self) -> Any: ...


def load_streaming_client(config: dict) -> StreamingClient:
    """Build the streaming client described by the ``streaming`` config section.

    ``adapter: "package.module:factory"`` selects a real SDK adapter; the
    factory is called with ``api_key=...`` and the remaining options.
    Raises ConfigurationError if an adapter is configured without a key.
    """
    config = config or {}
    adapter = config.get("adapter")

    if not adapter:
        from gesture_stream.modules.streaming.simulated import SimulatedStreamingClient
        logger.warning("No streaming adapter configured - stream will be simulated (logged only)")
        return SimulatedStreamingClient(config.get("simulated", {}))

    api_key = config.get("api_key") or os.environ.get(config.get("api_key_env", "STREAMING_API_KEY"))
    if not api_key:
        raise ConfigurationError(
            "Missing streaming API key. Set STREAMING_API_KEY or streaming.api_key."
        )

    module_name, _, attr = str(adapter).partition(":")
    if not attr:
        raise ConfigurationError(f"Streaming adapter must look like 'module:factory', got {adapter!r}")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load streaming adapter {adapter!r}: {e}") from e

    options = dict(config.get("options", {}))
    logger.info("Streaming adapter: %s", adapter)
    return factory(api_key=api_key, **options)

