"""
Shared domain types for the gesture stream session.

Centralizes enums, data classes, and the gesture → prompt mapping used
across modules to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


# =============================================================================
# Gesture Types
# =============================================================================

class GestureLabel(Enum):
    """Closed set of gestures the remote classifier may report."""
    NONE = "none"
    HELLO = "hello"
    THUMBS_UP = "thumbs_up"
    VICTORY = "victory"
    NAMASTE = "namaste"

    @classmethod
    def from_string(cls, name: Optional[str]) -> 'GestureLabel':
        """Convert a raw label string to GestureLabel, unknown -> NONE."""
        if not name:
            return cls.NONE
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            return cls.NONE

    @property
    def is_actionable(self) -> bool:
        return self is not GestureLabel.NONE


KNOWN_LABELS = tuple(label.value for label in GestureLabel)


# =============================================================================
# Gesture ↔ Prompt Mapping
# =============================================================================

GESTURE_PROMPT_MAP: Dict[GestureLabel, str] = {
    GestureLabel.HELLO: "do hello",
    GestureLabel.THUMBS_UP: "do thumbs up",
    GestureLabel.VICTORY: "do victory sign",
    GestureLabel.NAMASTE: "do namaste",
}


# =============================================================================
# Session State
# =============================================================================

class ConnectionStatus(Enum):
    """Connection lifecycle reported by the streaming collaborator."""
    AUTHENTICATING = "authenticating"
    CONNECTING = "connecting"
    RECONNECTING = "reconnecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class StreamState(Enum):
    """Stream lifecycle owned by the session state machine."""
    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    ENDED = "ended"
    ERROR = "error"

    @property
    def label(self) -> str:
        if self is StreamState.STARTING:
            return "Starting stream"
        return self.value.capitalize()


# =============================================================================
# Data Containers
# =============================================================================

@dataclass(frozen=True)
class Slide:
    """One slide of the story deck. Read-only to the core."""
    id: str
    prompt: str
    cta: str
    image: str
    title: str = ""
    subtitle: str = ""
    body: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Slide":
        return cls(
            id=str(data.get("id", "")),
            prompt=str(data.get("prompt", "")),
            cta=str(data.get("cta", "")),
            image=str(data.get("image", "")),
            title=str(data.get("title", "")),
            subtitle=str(data.get("subtitle", "")),
            body=str(data.get("body", "")),
        )


@dataclass(frozen=True)
class FrameSample:
    """A single still frame, encoded for the classification endpoint."""
    image_b64: str
    mime_type: str
    captured_at: float  # ms on the pipeline clock


@dataclass(frozen=True)
class StreamImage:
    """Slide image payload handed to the streaming collaborator."""
    name: str
    data: bytes
    mime_type: str = "image/png"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StreamOptions:
    """Arguments for starting a stream."""
    prompt: str
    image: Optional[StreamImage] = None
    portrait: bool = False


@dataclass(frozen=True)
class PendingGesture:
    """Label awaiting debounce confirmation."""
    label: GestureLabel
    deadline: float  # ms
