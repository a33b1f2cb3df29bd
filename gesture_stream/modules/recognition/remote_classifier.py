"""
Client for the remote gesture classification endpoint.

One best-effort HTTP attempt per call. Retry and backoff policy lives
in the RateGovernor; this module only translates the endpoint's answer:

    200 {label}          -> GestureLabel (anything unknown -> NONE)
    429 {retryAfterMs}   -> RateLimited
    anything else        -> ClassificationError
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from gesture_stream.core.errors import ClassificationError, RateLimited
from gesture_stream.core.types import FrameSample, GestureLabel

logger = logging.getLogger(__name__)


@dataclass
class RemoteClassifierConfig:
    """Remote classifier settings."""
    base_url: str = "http://127.0.0.1:8787"
    path: str = "/classify-gesture-image"
    timeout_s: float = 10.0

    @classmethod
    def from_dict(cls, config: dict) -> "RemoteClassifierConfig":
        return cls(
            base_url=config.get("base_url", "http://127.0.0.1:8787"),
            path=config.get("path", "/classify-gesture-image"),
            timeout_s=float(config.get("timeout_s", 10.0)),
        )


class RemoteClassifier:
    """Stateless request/response boundary to the classify endpoint.

    Example:
        >>> classifier = RemoteClassifier(RemoteClassifierConfig())
        >>> label = await classifier.classify(sample)
    """

    def __init__(self, config: Optional[RemoteClassifierConfig] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.config = config or RemoteClassifierConfig()
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_s,
            )
        return self._client

    async def classify(self, sample: FrameSample) -> GestureLabel:
        """Classify one frame.

        Raises:
            RateLimited: endpoint answered 429
            ClassificationError: any other failure
        """
        payload = {"image": sample.image_b64, "mimeType": sample.mime_type}
        try:
            response = await self._get_client().post(self.config.path, json=payload)
        except httpx.HTTPError as e:
            raise ClassificationError(f"Classifier request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimited(_retry_after_ms(response))

        if response.status_code != 200:
            raise ClassificationError(
                f"Classifier returned HTTP {response.status_code}: {_error_message(response)}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ClassificationError("Classifier returned malformed JSON") from e
        if not isinstance(data, dict):
            raise ClassificationError("Classifier returned unexpected payload")

        label = GestureLabel.from_string(data.get("label"))
        logger.debug("Remote label: %r -> %s", data.get("label"), label.value)
        return label

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


def _retry_after_ms(response: httpx.Response) -> Optional[float]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        value = data.get("retryAfterMs")
        if isinstance(value, (int, float)):
            return float(value)
    return None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return str(data)[:200]
