"""
Slide deck and slide image loading.

Decks are YAML lists of slides. Images may be local paths (relative to
the deck file) or http(s) URLs and are capped at 25 MB, the largest
image the streaming collaborator accepts.
"""

import logging
import mimetypes
import os
from pathlib import Path
from typing import List, Optional

import httpx
import yaml

from gesture_stream.core.errors import ConfigurationError, SlideImageError
from gesture_stream.core.types import Slide, StreamImage

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 25 * 1024 * 1024


def load_slides(path) -> List[Slide]:
    """Load a slide deck from YAML.

    Accepts either a top-level list or a mapping with a ``slides`` key.
    """
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or []
    except FileNotFoundError as e:
        raise ConfigurationError(f"Slide deck not found: {path}") from e

    if isinstance(data, dict):
        data = data.get("slides", [])
    slides = [Slide.from_dict(item) for item in data if isinstance(item, dict)]
    if not slides:
        raise ConfigurationError(f"Slide deck {path} has no slides")

    logger.info("Loaded %d slides from %s", len(slides), path)
    return slides


def _format_mb(size: int) -> str:
    return f"{size / (1024 * 1024):.2f}"


class SlideImageLoader:
    """Loads slide images for stream start."""

    def __init__(self, base_dir=None, client: Optional[httpx.AsyncClient] = None,
                 max_bytes: int = MAX_IMAGE_BYTES, timeout_s: float = 15.0):
        self._base_dir = Path(base_dir) if base_dir else Path.cwd()
        self._client = client
        self._max_bytes = max_bytes
        self._timeout_s = timeout_s

    async def load(self, slide: Slide) -> StreamImage:
        ref = slide.image
        if not ref:
            raise SlideImageError(f"Slide {slide.id!r} has no image")

        if ref.startswith(("http://", "https://")):
            data, mime_type = await self._fetch(ref)
        else:
            data, mime_type = self._read_local(ref)

        if len(data) > self._max_bytes:
            raise SlideImageError(
                f"Image is too large ({_format_mb(len(data))} MB). "
                f"Max is {self._max_bytes // (1024 * 1024)} MB."
            )
        return StreamImage(name=f"{slide.id}.png", data=data, mime_type=mime_type or "image/png")

    async def _fetch(self, url: str):
        client = self._client
        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=self._timeout_s)
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise SlideImageError(f"Failed to load image: {e}") from e
        finally:
            if owns_client:
                await client.aclose()

        if response.status_code != 200:
            raise SlideImageError(
                f"Failed to load image: {response.status_code} {response.reason_phrase}"
            )
        mime_type = response.headers.get("content-type", "").split(";")[0].strip()
        return response.content, mime_type or mimetypes.guess_type(url)[0]

    def _read_local(self, ref: str):
        path = Path(ref)
        if not path.is_absolute():
            path = self._base_dir / path
        try:
            size = os.path.getsize(path)
            if size > self._max_bytes:
                raise SlideImageError(
                    f"Image is too large ({_format_mb(size)} MB). "
                    f"Max is {self._max_bytes // (1024 * 1024)} MB."
                )
            data = path.read_bytes()
        except OSError as e:
            raise SlideImageError(f"Failed to load image: {e}") from e
        return data, mimetypes.guess_type(str(path))[0]
