#!/usr/bin/env python3
"""
Gesture Stream - voice and hand-gesture control for a live generative
video session.
Application entry point and console session runner.

Usage:
    gesture-stream --mode serve              # Boundary service (transcribe / classify)
    gesture-stream --mode session            # Live session with the configured SDK adapter
    gesture-stream --mode demo --gestures    # Simulated stream, gesture detection on

Console commands (session/demo):
    next | prev          change slide (restarts the stream)
    cta                  send the current slide's call-to-action
    gestures on|off      toggle camera gesture detection
    rec / stop           push-to-talk: start recording / stop and send
    status               print connection and stream state
    quit                 end the session
    anything else        sent as a typed prompt
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

from gesture_stream import __version__
from gesture_stream.core.dispatcher import InteractionDispatcher
from gesture_stream.core.errors import CameraUnavailableError, ConfigurationError
from gesture_stream.core.events import EventBus, Events
from gesture_stream.core.pipeline import GesturePipeline
from gesture_stream.core.session import SessionStateMachine
from gesture_stream.modules.capture.camera_manager import CameraManager
from gesture_stream.modules.recognition.remote_classifier import RemoteClassifier, RemoteClassifierConfig
from gesture_stream.modules.streaming.client import load_streaming_client
from gesture_stream.modules.streaming.slides import SlideImageLoader, load_slides
from gesture_stream.modules.utils.config import Config
from gesture_stream.modules.utils.logger import GestureLogger, setup_logging
from gesture_stream.modules.voice.recorder import AudioRecorder
from gesture_stream.modules.voice.transcriber import SpeechTranscriber, TranscriberConfig, VoiceInput

logger = logging.getLogger(__name__)


class GestureStreamApp:
    """Console session: wires the session, pipeline and voice input to one event bus."""

    def __init__(self, config: Config, mode: str = "session"):
        self._config = config
        self._mode = mode
        self._bus = EventBus()
        self._gesture_logger = GestureLogger()
        self._stop_event = None
        self._tasks = set()

        # --- Streaming collaborator ---
        streaming_config = dict(config.streaming)
        if mode == "demo":
            streaming_config["adapter"] = None
        self._client = load_streaming_client(streaming_config)

        # --- Slides + session ---
        slides_path = config.resolve_path(config.get("session.slides_path", "slides.yaml"))
        slides = load_slides(slides_path)
        self._image_loader = SlideImageLoader(base_dir=os.path.dirname(slides_path))
        self._session = SessionStateMachine(
            self._client,
            slides,
            self._image_loader,
            bus=self._bus,
            start_index=int(config.get("session.start_index", 0)),
            portrait=bool(config.get("session.portrait", False)),
        )
        self._dispatcher = InteractionDispatcher(
            self._session, self._client, bus=self._bus, gesture_logger=self._gesture_logger
        )

        # --- Gesture pipeline ---
        self._camera = CameraManager(config.camera)
        self._classifier = RemoteClassifier(RemoteClassifierConfig.from_dict(config.classifier))
        self._pipeline = GesturePipeline(
            camera=self._camera,
            classifier=self._classifier,
            dispatcher=self._dispatcher,
            session=self._session,
            config=config.pipeline,
            bus=self._bus,
            gesture_logger=self._gesture_logger,
        )

        # --- Voice ---
        self._transcriber = SpeechTranscriber(TranscriberConfig.from_dict(config.transcriber))
        self._voice = VoiceInput(
            AudioRecorder(config.voice), self._transcriber, self._dispatcher, self._bus
        )

        # --- Wire event callbacks ---
        self._bus.subscribe(Events.CONNECTION_CHANGED, self._on_status)
        self._bus.subscribe(Events.STREAM_STATE_CHANGED, self._on_status)
        self._bus.subscribe(Events.SLIDE_CHANGED, self._on_slide_changed)
        self._bus.subscribe(Events.SESSION_ERROR, self._on_session_error)
        self._bus.subscribe(Events.GESTURE_CONFIRMED, self._on_gesture_confirmed)
        self._bus.subscribe(Events.CLASSIFICATION_RATE_LIMITED, self._on_rate_limited)
        self._bus.subscribe(Events.TRANSCRIPT_READY, self._on_transcript)
        self._bus.subscribe(Events.SPEECH_FAILED, self._on_notice)
        self._bus.subscribe(Events.INTERACTION_FAILED, self._on_notice)

        logger.info("GestureStreamApp initialized (mode=%s, %d slides)", mode, len(slides))

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_status(self, **kwargs):
        logger.info("Status: %s", self._session.status_summary)

    def _on_slide_changed(self, **kwargs):
        slide = kwargs.get("slide")
        logger.info("Slide %d/%d: %s", self._session.slide_index + 1,
                    self._session.slide_count, slide.title or slide.id)

    def _on_session_error(self, **kwargs):
        logger.error("Stream error (%s): %s", kwargs.get("reason") or "unknown", kwargs.get("message"))

    def _on_gesture_confirmed(self, **kwargs):
        label = kwargs.get("label")
        logger.info("Gesture detected: %s", label.value.replace("_", " "))

    def _on_rate_limited(self, **kwargs):
        logger.warning("Gesture service rate limited; pausing for %.1fs",
                       kwargs.get("retry_after_ms", 0) / 1000.0)

    def _on_transcript(self, **kwargs):
        logger.info("Heard: %s", kwargs.get("text"))

    def _on_notice(self, **kwargs):
        logger.warning("%s", kwargs.get("message"))

    # ------------------------------------------------------------------
    # Console
    # ------------------------------------------------------------------

    def handle_command(self, line: str):
        """Apply one console command. Returns a task when work was scheduled."""
        line = line.strip()
        if not line:
            return None
        cmd = line.lower()

        if cmd in ("q", "quit", "exit"):
            self.stop()
        elif cmd in ("n", "next"):
            return self._session.next_slide()
        elif cmd in ("p", "prev"):
            return self._session.previous_slide()
        elif cmd == "cta":
            return self._spawn(self._dispatcher.dispatch_cta())
        elif cmd in ("g", "gestures", "gestures on"):
            return self._spawn(self.set_gestures(True))
        elif cmd == "gestures off":
            self._pipeline.disable()
        elif cmd == "rec":
            self._voice.start()
        elif cmd == "stop":
            return self._spawn(self._voice.finish())
        elif cmd == "status":
            logger.info("Status: %s | gestures %s | sent %d", self._session.status_summary,
                        "on" if self._pipeline.enabled else "off", self._dispatcher.sent_count)
        elif cmd in ("h", "help"):
            print(__doc__)
        else:
            return self._spawn(self._dispatcher.dispatch(line))
        return None

    async def set_gestures(self, enabled: bool):
        if not enabled:
            self._pipeline.disable()
            return
        try:
            await self._pipeline.enable_async()
        except CameraUnavailableError as e:
            logger.error("%s", e)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_stdin(self):
        line = sys.stdin.readline()
        if not line:
            self.stop()
            return
        self.handle_command(line)

    # ------------------------------------------------------------------
    # Run / shutdown
    # ------------------------------------------------------------------

    async def run(self, gestures: bool = False):
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                pass
        try:
            loop.add_reader(sys.stdin.fileno(), self._on_stdin)
            reading_stdin = True
        except (NotImplementedError, ValueError, OSError):
            logger.warning("Console input unavailable on this platform")
            reading_stdin = False

        try:
            await self._session.start()
            if gestures:
                await self.set_gestures(True)
            logger.info("Type 'help' for commands")
            await self._stop_event.wait()
        finally:
            if reading_stdin:
                loop.remove_reader(sys.stdin.fileno())
            await self.shutdown()

    def stop(self):
        if self._stop_event is not None:
            self._stop_event.set()

    async def shutdown(self):
        """Release devices and close the session. Never raises."""
        logger.info("Shutting down...")
        self._pipeline.disable()
        self._voice.cancel()
        await self._pipeline.drain()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._session.teardown()
        await self._classifier.close()
        await self._transcriber.close()
        logger.info("Interactions sent: %d, gestures logged: %d",
                    self._dispatcher.sent_count, self._gesture_logger.total_gestures)
        logger.info("Shutdown complete.")

    @property
    def session(self) -> SessionStateMachine:
        return self._session

    @property
    def pipeline(self) -> GesturePipeline:
        return self._pipeline

    @property
    def dispatcher(self) -> InteractionDispatcher:
        return self._dispatcher


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Gesture Stream - voice and gesture control for live generative video"
    )
    parser.add_argument(
        "--mode", choices=["serve", "session", "demo"],
        default="session", help="Operating mode"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Override logging level (DEBUG, INFO, ...)"
    )
    parser.add_argument(
        "--gestures", action="store_true",
        help="Enable gesture detection at start-up"
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    # Load configuration
    config = Config()
    config.load(config_path=args.config)

    # Setup logging
    log_cfg = config.logging_config
    setup_logging(
        level=args.log_level or log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  GESTURE STREAM")
    logger.info("  Version: %s", __version__)
    logger.info("  Mode: %s", args.mode)
    logger.info("=" * 60)

    if args.mode == "serve":
        from gesture_stream.server.app import run_server
        run_server(config.server, api_key=config.gemini_api_key)
        return 0

    try:
        app = GestureStreamApp(config, mode=args.mode)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1

    asyncio.run(app.run(gestures=args.gestures))
    return 0


if __name__ == "__main__":
    sys.exit(main())
