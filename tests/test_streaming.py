"""
Tests for the streaming boundary, slide decks and slide images
==============================================================
"""

import asyncio
import sys
import types

import httpx
import pytest

from gesture_stream.core.errors import ConfigurationError, SlideImageError
from gesture_stream.core.events import EventBus
from gesture_stream.core.session import SessionStateMachine
from gesture_stream.core.types import ConnectionStatus, Slide, StreamState
from gesture_stream.modules.streaming.client import StreamHandlers, load_streaming_client
from gesture_stream.modules.streaming.simulated import SimulatedStreamingClient
from gesture_stream.modules.streaming.slides import SlideImageLoader, load_slides

FAST = {"connect_delay_ms": 0, "start_delay_ms": 0}


class TestLoadStreamingClient:

    def test_no_adapter_is_simulated(self):
        client = load_streaming_client({"simulated": FAST})
        assert isinstance(client, SimulatedStreamingClient)

    def test_adapter_requires_key(self, monkeypatch):
        monkeypatch.delenv("STREAMING_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            load_streaming_client({"adapter": "some_sdk:create"})

    def test_adapter_must_name_factory(self):
        with pytest.raises(ConfigurationError):
            load_streaming_client({"adapter": "some_sdk", "api_key": "k"})

    def test_adapter_not_importable(self):
        with pytest.raises(ConfigurationError):
            load_streaming_client({"adapter": "no_such_streaming_sdk_pkg:create", "api_key": "k"})

    def test_adapter_factory_called(self, monkeypatch):
        module = types.ModuleType("fake_stream_sdk")
        created = {}

        def create(api_key, **options):
            created.update(api_key=api_key, **options)
            return "client"

        module.create = create
        monkeypatch.setitem(sys.modules, "fake_stream_sdk", module)
        monkeypatch.setenv("MY_STREAM_KEY", "secret")

        client = load_streaming_client({
            "adapter": "fake_stream_sdk:create",
            "api_key_env": "MY_STREAM_KEY",
            "options": {"region": "eu"},
        })

        assert client == "client"
        assert created == {"api_key": "secret", "region": "eu"}


class TestSimulatedClient:

    def test_status_sequence(self):
        statuses = []

        async def run():
            client = SimulatedStreamingClient(FAST)
            await client.connect(StreamHandlers(on_status_change=statuses.append))
            await asyncio.sleep(0)

        asyncio.run(run())

        assert statuses == [ConnectionStatus.AUTHENTICATING, ConnectionStatus.CONNECTING,
                            ConnectionStatus.CONNECTED]

    def test_interact_requires_stream(self):
        client = SimulatedStreamingClient(FAST)
        with pytest.raises(RuntimeError):
            asyncio.run(client.interact("hello"))

    def test_drives_session_end_to_end(self, slides, image_loader):
        async def run():
            client = SimulatedStreamingClient(FAST)
            session = SessionStateMachine(client, slides, image_loader, bus=EventBus())
            await session.start()
            await asyncio.sleep(0)
            await session.wait_idle()
            ready = session.is_stream_ready
            await client.interact("do hello")
            await session.teardown()
            return client, session, ready

        client, session, ready = asyncio.run(run())

        assert ready
        assert client.interactions == ["do hello"]
        assert session.connection_status is ConnectionStatus.DISCONNECTED
        assert session.stream_state is StreamState.ENDED


class TestLoadSlides:

    def test_mapping_form(self, tmp_path):
        path = tmp_path / "slides.yaml"
        path.write_text(
            "slides:\n"
            "  - id: one\n    prompt: p1\n    cta: c1\n    image: one.png\n    title: First\n"
            "  - id: two\n    prompt: p2\n    cta: c2\n    image: two.png\n"
        )

        slides = load_slides(path)

        assert [s.id for s in slides] == ["one", "two"]
        assert slides[0].title == "First"

    def test_list_form(self, tmp_path):
        path = tmp_path / "deck.yaml"
        path.write_text("- id: solo\n  prompt: p\n  cta: c\n  image: solo.png\n")
        assert load_slides(path)[0].id == "solo"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_slides(tmp_path / "nope.yaml")

    def test_empty_deck(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("slides: []\n")
        with pytest.raises(ConfigurationError):
            load_slides(path)

    def test_bundled_deck(self):
        from pathlib import Path
        deck = Path(__file__).parent.parent / "config" / "slides.yaml"
        slides = load_slides(deck)
        assert len(slides) >= 2
        assert all(s.prompt and s.cta and s.image for s in slides)


class TestSlideImageLoader:

    def test_local_image(self, tmp_path):
        (tmp_path / "one.png").write_bytes(b"\x89PNG data")
        loader = SlideImageLoader(base_dir=tmp_path)

        image = asyncio.run(loader.load(Slide(id="one", prompt="p", cta="c", image="one.png")))

        assert image.name == "one.png"
        assert image.data == b"\x89PNG data"
        assert image.mime_type == "image/png"

    def test_local_image_too_large(self, tmp_path):
        (tmp_path / "big.jpg").write_bytes(b"x" * 2048)
        loader = SlideImageLoader(base_dir=tmp_path, max_bytes=1024)

        with pytest.raises(SlideImageError, match="too large"):
            asyncio.run(loader.load(Slide(id="big", prompt="p", cta="c", image="big.jpg")))

    def test_missing_local_image(self, tmp_path):
        loader = SlideImageLoader(base_dir=tmp_path)
        with pytest.raises(SlideImageError, match="Failed to load image"):
            asyncio.run(loader.load(Slide(id="x", prompt="p", cta="c", image="x.png")))

    def test_slide_without_image(self, tmp_path):
        loader = SlideImageLoader(base_dir=tmp_path)
        with pytest.raises(SlideImageError):
            asyncio.run(loader.load(Slide(id="x", prompt="p", cta="c", image="")))

    def remote(self, handler, max_bytes=1024):
        async def run():
            client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
            loader = SlideImageLoader(client=client, max_bytes=max_bytes)
            try:
                return await loader.load(
                    Slide(id="web", prompt="p", cta="c", image="https://cdn.example/web.jpg")
                )
            finally:
                await client.aclose()

        return asyncio.run(run())

    def test_remote_image(self):
        image = self.remote(lambda request: httpx.Response(
            200, content=b"jpeg", headers={"content-type": "image/jpeg; charset=binary"}))

        assert image.data == b"jpeg"
        assert image.mime_type == "image/jpeg"
        assert image.name == "web.png"

    def test_remote_not_found(self):
        with pytest.raises(SlideImageError, match="404"):
            self.remote(lambda request: httpx.Response(404))

    def test_remote_too_large(self):
        with pytest.raises(SlideImageError, match="Max is"):
            self.remote(lambda request: httpx.Response(200, content=b"x" * 4096), max_bytes=1024)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
