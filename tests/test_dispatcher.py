"""
Tests for the InteractionDispatcher
===================================
"""

import asyncio
from unittest.mock import Mock

import pytest

from gesture_stream.core.dispatcher import InteractionDispatcher
from gesture_stream.core.events import EventBus, Events
from gesture_stream.core.types import GestureLabel, Slide, StreamState


class StubSession:
    def __init__(self, state=StreamState.STREAMING):
        self.stream_state = state
        self.current_slide = Slide(id="s1", prompt="p", cta="  open the gate  ", image="s1.png")

    @property
    def is_stream_ready(self):
        return self.stream_state is StreamState.STREAMING


def make_dispatcher(fake_client, state=StreamState.STREAMING):
    bus = EventBus()
    gesture_logger = Mock()
    session = StubSession(state)
    dispatcher = InteractionDispatcher(session, fake_client, bus=bus, gesture_logger=gesture_logger)
    return dispatcher, session, bus, gesture_logger


class TestDispatch:

    def test_sends_trimmed_prompt(self, fake_client):
        dispatcher, _, bus, gesture_logger = make_dispatcher(fake_client)

        assert asyncio.run(dispatcher.dispatch("  make it rain  "))

        assert fake_client.interactions == ["make it rain"]
        assert dispatcher.sent_count == 1
        sent = bus.get_history(event_name=Events.INTERACTION_SENT)
        assert sent[0]["data"] == {"prompt": "make it rain", "source": "text"}
        gesture_logger.log_action.assert_called_once_with("make it rain", success=True, detail="text")

    @pytest.mark.parametrize("prompt", ["", "   ", None])
    def test_empty_prompt_is_noop(self, fake_client, prompt):
        dispatcher, _, _, _ = make_dispatcher(fake_client)

        assert not asyncio.run(dispatcher.dispatch(prompt))
        assert fake_client.calls == []

    @pytest.mark.parametrize("state", [
        StreamState.IDLE, StreamState.STARTING, StreamState.ENDED, StreamState.ERROR,
    ])
    def test_noop_unless_streaming(self, fake_client, state):
        """No outbound call in any non-streaming state, even for real prompts."""
        dispatcher, _, bus, _ = make_dispatcher(fake_client, state)

        assert not asyncio.run(dispatcher.dispatch("do hello"))
        assert not asyncio.run(dispatcher.dispatch_gesture(GestureLabel.HELLO))
        assert not asyncio.run(dispatcher.dispatch_cta())

        assert fake_client.calls == []
        assert bus.get_history(event_name=Events.INTERACTION_FAILED) == []

    def test_failure_surfaced_without_state_change(self, fake_client):
        fake_client.interact_error = RuntimeError("stream busy")
        dispatcher, session, bus, gesture_logger = make_dispatcher(fake_client)

        assert not asyncio.run(dispatcher.dispatch("jump"))

        assert session.stream_state is StreamState.STREAMING
        assert dispatcher.sent_count == 0
        failed = bus.get_history(event_name=Events.INTERACTION_FAILED)
        assert failed[0]["data"]["message"] == "stream busy"
        gesture_logger.log_action.assert_called_once()
        assert gesture_logger.log_action.call_args.kwargs["success"] is False


class TestModalities:

    @pytest.mark.parametrize("label,phrase", [
        (GestureLabel.HELLO, "do hello"),
        (GestureLabel.THUMBS_UP, "do thumbs up"),
        (GestureLabel.VICTORY, "do victory sign"),
        (GestureLabel.NAMASTE, "do namaste"),
    ])
    def test_gesture_phrases(self, fake_client, label, phrase):
        dispatcher, _, bus, _ = make_dispatcher(fake_client)

        assert asyncio.run(dispatcher.dispatch_gesture(label))

        assert fake_client.interactions == [phrase]
        sent = bus.get_history(event_name=Events.INTERACTION_SENT)
        assert sent[0]["data"]["source"] == f"gesture:{label.value}"

    def test_none_gesture_not_sent(self, fake_client):
        dispatcher, _, _, _ = make_dispatcher(fake_client)

        assert not asyncio.run(dispatcher.dispatch_gesture(GestureLabel.NONE))
        assert fake_client.calls == []

    def test_transcript(self, fake_client):
        dispatcher, _, bus, _ = make_dispatcher(fake_client)

        asyncio.run(dispatcher.dispatch_transcript("open the door"))

        assert fake_client.interactions == ["open the door"]
        assert bus.get_history(event_name=Events.INTERACTION_SENT)[0]["data"]["source"] == "speech"

    def test_cta(self, fake_client):
        dispatcher, _, _, _ = make_dispatcher(fake_client)

        asyncio.run(dispatcher.dispatch_cta())

        assert fake_client.interactions == ["open the gate"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
