"""
Single funnel for outbound interactions.

Confirmed gestures, transcribed speech, typed prompts and the slide's
call-to-action all end up in dispatch(), so the "is the stream ready"
check happens in exactly one place. A request that arrives while the
stream is not streaming is dropped silently: user input routinely
races the asynchronous stream start.
"""

import logging

from gesture_stream.core.events import EventBus, Events
from gesture_stream.core.types import GESTURE_PROMPT_MAP, GestureLabel

logger = logging.getLogger(__name__)


class InteractionDispatcher:
    """Turns user intent into one interact() call on the streaming client."""

    def __init__(self, session, client, bus: EventBus = None, gesture_logger=None):
        self._session = session
        self._client = client
        self._bus = bus or EventBus()
        self._gesture_logger = gesture_logger
        self._sent_count = 0

    async def dispatch(self, prompt: str, source: str = "text") -> bool:
        """Send ``prompt`` if the stream is ready.

        Returns:
            True if interact() was called and succeeded.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            return False
        if not self._session.is_stream_ready:
            logger.debug("Dropping %s interaction while %s", source, self._session.stream_state.value)
            return False

        try:
            await self._client.interact(prompt)
        except Exception as e:
            # Not a stream failure: stream state is left alone
            logger.warning("Interaction failed (%s): %s", source, e)
            self._bus.emit(Events.INTERACTION_FAILED, prompt=prompt, source=source, message=str(e))
            if self._gesture_logger is not None:
                self._gesture_logger.log_action(prompt, success=False, detail=f"{source}: {e}")
            return False

        self._sent_count += 1
        logger.info("Interact [%s]: %s", source, prompt)
        self._bus.emit(Events.INTERACTION_SENT, prompt=prompt, source=source)
        if self._gesture_logger is not None:
            self._gesture_logger.log_action(prompt, success=True, detail=source)
        return True

    async def dispatch_gesture(self, label: GestureLabel) -> bool:
        prompt = GESTURE_PROMPT_MAP.get(label)
        if prompt is None:
            return False
        return await self.dispatch(prompt, source=f"gesture:{label.value}")

    async def dispatch_transcript(self, text: str) -> bool:
        return await self.dispatch(text, source="speech")

    async def dispatch_cta(self) -> bool:
        """Send the current slide's call-to-action text."""
        return await self.dispatch(self._session.current_slide.cta, source="cta")

    @property
    def sent_count(self) -> int:
        return self._sent_count
