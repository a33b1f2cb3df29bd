"""
Camera access for gesture sampling.

The capture loop only needs an occasional still frame, so frames are
read on demand instead of from a background thread. The loop calls
open() and capture_still() from worker threads; a lock keeps a read
from racing stop().

Each still is JPEG-encoded and base64-wrapped for the classify
endpoint.
"""

import base64
import logging
import threading
import time

import cv2
import numpy as np

from gesture_stream.core.types import FrameSample
from gesture_stream.modules.utils.logger import log_timing

logger = logging.getLogger(__name__)

_BACKENDS = {
    "auto": cv2.CAP_ANY,
    "v4l2": cv2.CAP_V4L2,
    "gstreamer": cv2.CAP_GSTREAMER,
}


class CameraManager:
    """Owns the camera handle; release it with stop() on every exit path."""

    def __init__(self, config: dict = None, clock=None):
        config = config or {}
        self._device_id = config.get("device_id", 0)
        self._width = config.get("width", 320)
        self._height = config.get("height", 240)
        self._backend = config.get("backend", "auto")
        self._buffer_size = config.get("buffer_size", 1)
        self._flip_h = config.get("flip_horizontal", True)
        self._warmup_frames = config.get("warmup_frames", 5)
        self._jpeg_quality = int(config.get("jpeg_quality", 60))
        self._clock = clock or (lambda: time.monotonic() * 1000)

        self._cap = None
        self._frame_id = 0
        self._lock = threading.Lock()

    def open(self) -> bool:
        """Open the camera. Returns False (and holds nothing) on failure."""
        if self.is_open:
            return True

        cap = cv2.VideoCapture(self._device_id, _BACKENDS.get(self._backend, cv2.CAP_ANY))
        if not cap.isOpened():
            logger.error("Camera %s unavailable (backend=%s)", self._device_id, self._backend)
            cap.release()
            return False

        for prop, value in ((cv2.CAP_PROP_FRAME_WIDTH, self._width),
                            (cv2.CAP_PROP_FRAME_HEIGHT, self._height),
                            (cv2.CAP_PROP_BUFFERSIZE, self._buffer_size)):
            cap.set(prop, value)

        logger.info("Camera %s ready at %dx%d (asked for %dx%d)", self._device_id,
                    int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)), int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
                    self._width, self._height)

        # Let auto-exposure settle before the handle becomes visible
        for _ in range(self._warmup_frames):
            cap.read()

        with self._lock:
            self._cap = cap
        return True

    def read(self):
        """Synchronous frame read.

        Returns:
            tuple: (frame_id, numpy array) or (None, None)
        """
        with self._lock:
            if self._cap is None:
                return None, None
            ret, frame = self._cap.read()
        if not ret or frame is None:
            return None, None
        if self._flip_h:
            frame = cv2.flip(frame, 1)
        self._frame_id += 1
        return self._frame_id, frame

    @log_timing
    def capture_still(self):
        """Grab one frame and encode it for classification.

        Returns:
            FrameSample, or None when the camera is closed or the read failed
        """
        _, frame = self.read()
        if frame is None:
            return None
        return encode_frame(frame, self._jpeg_quality, self._clock())

    @property
    def resolution(self) -> tuple:
        return (self._width, self._height)

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    @property
    def frame_count(self) -> int:
        return self._frame_id

    def stop(self):
        """Release the camera. Safe to call repeatedly."""
        with self._lock:
            cap, self._cap = self._cap, None
            if cap is not None:
                cap.release()
        if cap is not None:
            logger.info("Camera released")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.stop()


def encode_frame(frame: np.ndarray, quality: int = 60, captured_at: float = 0.0) -> FrameSample:
    """JPEG-encode a BGR frame into a FrameSample."""
    ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")
    image_b64 = base64.b64encode(buffer.tobytes()).decode("ascii")
    return FrameSample(image_b64=image_b64, mime_type="image/jpeg", captured_at=captured_at)
