"""
Boundary service: a small FastAPI app that holds the model API key and
exposes gesture classification and transcription to the client.

Endpoints:
    GET  /health
    POST /transcribe                  multipart field "audio"
    POST /classify-gesture-image      JSON {image, mimeType}
    POST /classify-gesture-features   JSON {features}

Errors always come back as JSON ``{"error": ...}``; throttling adds
``retryAfterMs``.
"""

import base64
import binascii
import json
import logging
from typing import Optional

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gesture_stream import __version__
from gesture_stream.core.errors import RateLimited

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Missing GEMINI_API_KEY on server."


class HealthResponse(BaseModel):
    ok: bool = True


class LabelResponse(BaseModel):
    label: str


class TranscriptResponse(BaseModel):
    text: str


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


async def _read_json(request: Request) -> dict:
    """Parse the request body; anything unparseable counts as ``{}``."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def _decode_image(image: str) -> Optional[bytes]:
    if image.startswith("data:") and "," in image:
        image = image.split(",", 1)[1]
    try:
        return base64.b64decode(image, validate=True)
    except (binascii.Error, ValueError):
        return None


def create_app(config: dict = None, backend=None, api_key: str = None) -> FastAPI:
    """Build the boundary app.

    Args:
        config: ``server`` config section (model, cors_origins, ...)
        backend: object with classify_image / classify_features / transcribe;
            built from ``api_key`` when omitted
        api_key: model API key; without it every model endpoint answers 500
    """
    config = config or {}

    if backend is None and api_key:
        from gesture_stream.server.gemini_backend import DEFAULT_MODEL, GeminiBackend
        backend = GeminiBackend(
            api_key,
            model=config.get("model", DEFAULT_MODEL),
            retry_after_ms=config.get("retry_after_ms", 10000),
        )
    if backend is None:
        logger.error("Missing GEMINI_API_KEY in environment; model endpoints will fail")

    app = FastAPI(title="Gesture Stream boundary", version=__version__)
    app.state.backend = backend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get("cors_origins", ["*"]),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(ok=True)

    @app.post("/transcribe", response_model=TranscriptResponse)
    async def transcribe(audio: Optional[UploadFile] = File(None)):
        if app.state.backend is None:
            return _error(500, MISSING_KEY_MESSAGE)
        if audio is None:
            return _error(400, "Missing audio file.")
        data = await audio.read()
        if not data:
            return _error(400, "Missing audio file.")

        mime_type = audio.content_type or "audio/webm"
        try:
            text = await app.state.backend.transcribe(data, mime_type)
        except Exception as e:
            logger.error("Transcription failed: %s", e)
            return _error(500, "Transcription failed.")
        return TranscriptResponse(text=(text or "").strip())

    @app.post("/classify-gesture-image", response_model=LabelResponse)
    async def classify_gesture_image(request: Request):
        if app.state.backend is None:
            return _error(500, MISSING_KEY_MESSAGE)
        body = await _read_json(request)
        image = str(body.get("image") or "").strip()
        mime_type = str(body.get("mimeType") or "image/jpeg").strip()
        if not image:
            return _error(400, "Missing image.")
        data = _decode_image(image)
        if not data:
            return _error(400, "Invalid image.")

        try:
            label = await app.state.backend.classify_image(data, mime_type)
        except RateLimited as e:
            logger.warning("Model rate limited; retry in %.0f ms", e.retry_after_ms)
            return _error(429, "Rate limited", retryAfterMs=int(e.retry_after_ms))
        except Exception as e:
            logger.error("Gesture classification failed: %s", e)
            return _error(500, "Gesture classification failed.")
        return LabelResponse(label=label.value)

    @app.post("/classify-gesture-features", response_model=LabelResponse)
    async def classify_gesture_features(request: Request):
        if app.state.backend is None:
            return _error(500, MISSING_KEY_MESSAGE)
        body = await _read_json(request)
        features = body.get("features")
        if not features:
            return _error(400, "Missing features.")
        if not isinstance(features, str):
            features = json.dumps(features)

        try:
            label = await app.state.backend.classify_features(features)
        except RateLimited as e:
            logger.warning("Model rate limited; retry in %.0f ms", e.retry_after_ms)
            return _error(429, "Rate limited", retryAfterMs=int(e.retry_after_ms))
        except Exception as e:
            logger.error("Feature classification failed: %s", e)
            return _error(500, "Gesture classification failed.")
        return LabelResponse(label=label.value)

    return app


def run_server(config: dict = None, api_key: str = None):
    """Serve the boundary app with uvicorn (blocking)."""
    import uvicorn

    config = config or {}
    app = create_app(config, api_key=api_key)
    host = config.get("host", "127.0.0.1")
    port = int(config.get("port", 8787))
    logger.info("Boundary service listening on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=config.get("log_level", "info"))
