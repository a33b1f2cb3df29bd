"""Core types, errors, event bus and the session/pipeline orchestration."""
from .errors import (
    GestureStreamError,
    ConfigurationError,
    ValidationError,
    RateLimited,
    TransientBoundaryError,
    ClassificationError,
    TranscriptionError,
    StreamLifecycleError,
)
from .events import EventBus, Events
from .types import GestureLabel, ConnectionStatus, StreamState, Slide, FrameSample

__all__ = [
    "GestureStreamError",
    "ConfigurationError",
    "ValidationError",
    "RateLimited",
    "TransientBoundaryError",
    "ClassificationError",
    "TranscriptionError",
    "StreamLifecycleError",
    "EventBus",
    "Events",
    "GestureLabel",
    "ConnectionStatus",
    "StreamState",
    "Slide",
    "FrameSample",
]
