"""
Tests for the RemoteClassifier
==============================
"""

import asyncio
import json

import httpx
import pytest

from gesture_stream.core.errors import ClassificationError, RateLimited
from gesture_stream.core.types import FrameSample, GestureLabel
from gesture_stream.modules.recognition.remote_classifier import (
    RemoteClassifier,
    RemoteClassifierConfig,
)

SAMPLE = FrameSample(image_b64="aGFuZA==", mime_type="image/jpeg", captured_at=0.0)


def classify_with(handler, sample=SAMPLE):
    async def run():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler),
                                   base_url="http://boundary")
        classifier = RemoteClassifier(RemoteClassifierConfig(base_url="http://boundary"),
                                      client=client)
        try:
            return await classifier.classify(sample)
        finally:
            await client.aclose()

    return asyncio.run(run())


class TestRemoteClassifierConfig:

    def test_defaults(self):
        config = RemoteClassifierConfig()
        assert config.path == "/classify-gesture-image"
        assert config.timeout_s == 10.0

    def test_from_dict_partial(self):
        config = RemoteClassifierConfig.from_dict({"base_url": "http://x:1", "timeout_s": 3})
        assert config.base_url == "http://x:1"
        assert config.timeout_s == 3.0
        assert config.path == "/classify-gesture-image"


class TestClassify:
    """Test translation of endpoint answers."""

    def test_request_payload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"label": "hello"})

        label = classify_with(handler)

        assert label is GestureLabel.HELLO
        assert seen["path"] == "/classify-gesture-image"
        assert seen["body"] == {"image": "aGFuZA==", "mimeType": "image/jpeg"}

    @pytest.mark.parametrize("raw,expected", [
        ("thumbs_up", GestureLabel.THUMBS_UP),
        ("  Victory\n", GestureLabel.VICTORY),
        ("NAMASTE", GestureLabel.NAMASTE),
        ("none", GestureLabel.NONE),
        ("wave", GestureLabel.NONE),
        ("", GestureLabel.NONE),
        (None, GestureLabel.NONE),
    ])
    def test_label_normalization(self, raw, expected):
        """Anything outside the closed set becomes NONE."""
        label = classify_with(lambda request: httpx.Response(200, json={"label": raw}))
        assert label is expected

    def test_rate_limited_with_hint(self):
        def handler(request):
            return httpx.Response(429, json={"error": "Rate limited", "retryAfterMs": 4000})

        with pytest.raises(RateLimited) as exc_info:
            classify_with(handler)
        assert exc_info.value.retry_after_ms == 4000

    def test_rate_limited_without_hint(self):
        with pytest.raises(RateLimited) as exc_info:
            classify_with(lambda request: httpx.Response(429, text="slow down"))
        assert exc_info.value.retry_after_ms == 10000

    def test_server_error(self):
        def handler(request):
            return httpx.Response(500, json={"error": "Gesture classification failed."})

        with pytest.raises(ClassificationError, match="Gesture classification failed"):
            classify_with(handler)

    def test_malformed_json(self):
        with pytest.raises(ClassificationError):
            classify_with(lambda request: httpx.Response(200, text="<html>"))

    def test_unexpected_payload(self):
        with pytest.raises(ClassificationError):
            classify_with(lambda request: httpx.Response(200, json=["hello"]))

    def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ClassificationError):
            classify_with(handler)

    def test_close_leaves_injected_client_open(self):
        async def run():
            client = httpx.AsyncClient(transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"label": "hello"})))
            classifier = RemoteClassifier(client=client)
            await classifier.close()
            closed = client.is_closed
            await client.aclose()
            return closed

        assert asyncio.run(run()) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
