"""
Client for the remote speech-to-text endpoint, plus the push-to-talk
flow that turns a recording into an interaction.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from gesture_stream.core.errors import TranscriptionError, ValidationError
from gesture_stream.core.events import EventBus, Events

logger = logging.getLogger(__name__)


@dataclass
class TranscriberConfig:
    base_url: str = "http://127.0.0.1:8787"
    path: str = "/transcribe"
    timeout_s: float = 30.0

    @classmethod
    def from_dict(cls, config: dict) -> "TranscriberConfig":
        return cls(
            base_url=config.get("base_url", "http://127.0.0.1:8787"),
            path=config.get("path", "/transcribe"),
            timeout_s=float(config.get("timeout_s", 30.0)),
        )


class SpeechTranscriber:
    """One-shot transcription request; no retries."""

    def __init__(self, config: Optional[TranscriberConfig] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.config = config or TranscriberConfig()
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_s,
            )
        return self._client

    async def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        """Return the transcript (possibly empty).

        Raises:
            ValidationError: no audio
            TranscriptionError: network failure or non-200 answer
        """
        if not audio:
            raise ValidationError("Missing audio file.")

        files = {"audio": ("wish" + _extension(mime_type), audio, mime_type)}
        try:
            response = await self._get_client().post(self.config.path, files=files)
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Transcription request failed: {e}") from e

        if response.status_code != 200:
            raise TranscriptionError(f"Transcription failed (HTTP {response.status_code})")
        try:
            data = response.json()
        except ValueError as e:
            raise TranscriptionError("Transcription returned malformed JSON") from e
        if not isinstance(data, dict):
            raise TranscriptionError("Transcription returned unexpected payload")
        return str(data.get("text") or "").strip()

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


def _extension(mime_type: str) -> str:
    return {
        "audio/wav": ".wav",
        "audio/x-wav": ".wav",
        "audio/webm": ".webm",
        "audio/ogg": ".ogg",
        "audio/mpeg": ".mp3",
    }.get(mime_type, "")


class VoiceInput:
    """Push-to-talk: record, transcribe, then dispatch the transcript."""

    def __init__(self, recorder, transcriber: SpeechTranscriber, dispatcher, bus: EventBus = None):
        self._recorder = recorder
        self._transcriber = transcriber
        self._dispatcher = dispatcher
        self._bus = bus or EventBus()
        self._transcribing = False

    def start(self) -> bool:
        """Begin recording. Returns False if busy or the microphone is blocked."""
        if self._recorder.is_recording or self._transcribing:
            return False
        try:
            self._recorder.start()
        except Exception as e:
            logger.warning("Microphone unavailable: %s", e)
            self._bus.emit(Events.SPEECH_FAILED, message="Microphone access was blocked.")
            return False
        self._bus.emit(Events.RECORDING_STARTED)
        return True

    async def finish(self) -> Optional[str]:
        """Stop recording, transcribe and dispatch.

        Returns:
            The transcript that was dispatched, or None.
        """
        if not self._recorder.is_recording:
            return None
        self._transcribing = True
        try:
            audio = self._recorder.stop()
            transcript = await self._transcriber.transcribe(audio, self._recorder.mime_type)
        except ValidationError:
            self._bus.emit(Events.SPEECH_FAILED, message="We did not hear anything. Try again.")
            return None
        except Exception as e:
            logger.warning("Transcription failed: %s", e)
            self._bus.emit(Events.SPEECH_FAILED, message="Transcription failed. Try again.")
            return None
        finally:
            self._recorder.close()
            self._transcribing = False

        if not transcript:
            self._bus.emit(Events.SPEECH_FAILED, message="We did not hear anything. Try again.")
            return None

        self._bus.emit(Events.TRANSCRIPT_READY, text=transcript)
        await self._dispatcher.dispatch_transcript(transcript)
        return transcript

    def cancel(self):
        self._recorder.close()

    @property
    def is_recording(self) -> bool:
        return self._recorder.is_recording

    @property
    def is_transcribing(self) -> bool:
        return self._transcribing
