"""
Error taxonomy shared by the pipeline, the session and the boundary service.

    ConfigurationError      missing credentials / unusable config, fatal to its boundary
    ValidationError         missing or empty required input, request rejected
    RateLimited             remote throttling, absorbed by the RateGovernor
    TransientBoundaryError  any other classifier / transcriber failure
    StreamLifecycleError    failure reported by the streaming collaborator
"""

from typing import Optional

DEFAULT_RETRY_AFTER_MS = 10000


class GestureStreamError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(GestureStreamError):
    """A required credential or setting is missing."""


class ValidationError(GestureStreamError):
    """Required input was missing or empty."""


class RateLimited(GestureStreamError):
    """The remote endpoint asked us to back off."""

    def __init__(self, retry_after_ms: Optional[float] = None):
        if retry_after_ms is None or retry_after_ms < 0:
            retry_after_ms = DEFAULT_RETRY_AFTER_MS
        self.retry_after_ms = float(retry_after_ms)
        super().__init__(f"Rate limited, retry after {self.retry_after_ms:.0f}ms")


class TransientBoundaryError(GestureStreamError):
    """A remote call failed for a reason other than throttling."""


class ClassificationError(TransientBoundaryError):
    """Gesture classification failed (network, endpoint, malformed response)."""


class TranscriptionError(TransientBoundaryError):
    """Speech transcription failed."""


class StreamLifecycleError(GestureStreamError):
    """The streaming collaborator reported a stream failure."""

    def __init__(self, reason: Optional[str], message: str):
        self.reason = reason
        self.message = message
        super().__init__(f"{reason}: {message}" if reason else message)


class CameraUnavailableError(GestureStreamError):
    """The camera could not be opened."""


class SlideImageError(GestureStreamError):
    """A slide image could not be loaded or is too large."""
