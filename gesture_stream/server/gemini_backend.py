"""
Gemini-backed vision/speech backend for the boundary service.

Every call is a single generate_content request; throttling from the
model API is surfaced as RateLimited so the HTTP layer can answer 429.
"""

import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from gesture_stream.core.errors import (
    DEFAULT_RETRY_AFTER_MS,
    RateLimited,
    TranscriptionError,
    TransientBoundaryError,
)
from gesture_stream.core.types import GestureLabel, KNOWN_LABELS

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"

_LABEL_CHOICES = ", ".join(KNOWN_LABELS[1:] + KNOWN_LABELS[:1])

GESTURE_IMAGE_PROMPT = (
    f"Classify the hand gesture in this image. Only return one of: {_LABEL_CHOICES}. "
    "No extra words."
)
GESTURE_FEATURES_PROMPT = (
    f"Classify the gesture from the feature summary. Only return one of: {_LABEL_CHOICES}. "
    "No extra words."
)
TRANSCRIBE_PROMPT = "Transcribe the spoken words only. Return plain text with no extra words."


class GeminiBackend:
    """Thin async wrapper around the google-genai client."""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL,
                 retry_after_ms: float = DEFAULT_RETRY_AFTER_MS, client=None):
        self._client = client or genai.Client(api_key=api_key)
        self._model = model
        self._retry_after_ms = retry_after_ms
        logger.info("Gemini backend ready (model=%s)", model)

    async def _generate(self, parts, error_cls=TransientBoundaryError) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=[types.Content(role="user", parts=parts)],
            )
        except genai_errors.APIError as e:
            if e.code == 429:
                raise RateLimited(self._retry_after_ms) from e
            raise error_cls(f"Model request failed ({e.code}): {e.message}") from e
        except Exception as e:
            raise error_cls(f"Model request failed: {e}") from e
        return (response.text or "").strip()

    async def classify_image(self, image: bytes, mime_type: str = "image/jpeg") -> GestureLabel:
        text = await self._generate([
            types.Part.from_text(text=GESTURE_IMAGE_PROMPT),
            types.Part.from_bytes(data=image, mime_type=mime_type),
        ])
        return GestureLabel.from_string(text)

    async def classify_features(self, features: str) -> GestureLabel:
        text = await self._generate([
            types.Part.from_text(text=GESTURE_FEATURES_PROMPT),
            types.Part.from_text(text=features),
        ])
        return GestureLabel.from_string(text)

    async def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        return await self._generate([
            types.Part.from_text(text=TRANSCRIBE_PROMPT),
            types.Part.from_bytes(data=audio, mime_type=mime_type),
        ], error_cls=TranscriptionError)
