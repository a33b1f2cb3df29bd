"""
Tests for Camera Module
========================
"""

import base64
from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from gesture_stream.modules.capture.camera_manager import CameraManager, encode_frame


def mock_capture(opened=True, frame=None):
    cap = MagicMock()
    cap.isOpened.return_value = opened
    cap.get.side_effect = lambda prop: {cv2.CAP_PROP_FRAME_WIDTH: 320,
                                        cv2.CAP_PROP_FRAME_HEIGHT: 240}.get(prop, 0)
    if frame is None:
        frame = np.zeros((240, 320, 3), dtype=np.uint8)
    cap.read.return_value = (True, frame)
    return cap


class TestCameraManager:
    """Test suite for CameraManager."""

    def test_default_values(self):
        camera = CameraManager()

        assert camera.resolution == (320, 240)
        assert not camera.is_open
        assert camera.frame_count == 0

    @patch("gesture_stream.modules.capture.camera_manager.cv2.VideoCapture")
    def test_open_configures_device(self, video_capture):
        cap = mock_capture()
        video_capture.return_value = cap

        camera = CameraManager({"device_id": 1, "warmup_frames": 3})

        assert camera.open()
        assert camera.is_open
        video_capture.assert_called_once_with(1, cv2.CAP_ANY)
        cap.set.assert_any_call(cv2.CAP_PROP_FRAME_WIDTH, 320)
        cap.set.assert_any_call(cv2.CAP_PROP_BUFFERSIZE, 1)
        assert cap.read.call_count == 3

    @patch("gesture_stream.modules.capture.camera_manager.cv2.VideoCapture")
    def test_open_failure_holds_nothing(self, video_capture):
        cap = mock_capture(opened=False)
        video_capture.return_value = cap

        camera = CameraManager()

        assert not camera.open()
        assert not camera.is_open
        cap.release.assert_called_once()

    @patch("gesture_stream.modules.capture.camera_manager.cv2.VideoCapture")
    def test_capture_still(self, video_capture):
        video_capture.return_value = mock_capture()
        camera = CameraManager({"warmup_frames": 0}, clock=lambda: 1234.0)
        camera.open()

        sample = camera.capture_still()

        assert sample.mime_type == "image/jpeg"
        assert sample.captured_at == 1234.0
        assert base64.b64decode(sample.image_b64)[:2] == b"\xff\xd8"
        assert camera.frame_count == 1

    @patch("gesture_stream.modules.capture.camera_manager.cv2.VideoCapture")
    def test_failed_read(self, video_capture):
        cap = mock_capture()
        cap.read.return_value = (False, None)
        video_capture.return_value = cap
        camera = CameraManager({"warmup_frames": 0})
        camera.open()

        assert camera.capture_still() is None

    def test_capture_when_closed(self):
        assert CameraManager().capture_still() is None

    @patch("gesture_stream.modules.capture.camera_manager.cv2.VideoCapture")
    def test_stop_releases_once(self, video_capture):
        cap = mock_capture()
        video_capture.return_value = cap
        camera = CameraManager({"warmup_frames": 0})
        camera.open()

        camera.stop()
        camera.stop()

        cap.release.assert_called_once()
        assert not camera.is_open

    @patch("gesture_stream.modules.capture.camera_manager.cv2.VideoCapture")
    def test_context_manager(self, video_capture):
        cap = mock_capture()
        video_capture.return_value = cap

        with CameraManager({"warmup_frames": 0}) as camera:
            assert camera.is_open

        cap.release.assert_called_once()


class TestEncodeFrame:

    def test_round_trip_shape(self):
        frame = np.full((48, 64, 3), 128, dtype=np.uint8)

        sample = encode_frame(frame, quality=60, captured_at=5.0)

        decoded = cv2.imdecode(np.frombuffer(base64.b64decode(sample.image_b64), np.uint8),
                               cv2.IMREAD_COLOR)
        assert decoded.shape == (48, 64, 3)
        assert sample.captured_at == 5.0

    def test_lower_quality_is_smaller(self):
        rng = np.random.default_rng(0)
        frame = rng.integers(0, 255, size=(120, 160, 3), dtype=np.uint8)

        high = encode_frame(frame, quality=95)
        low = encode_frame(frame, quality=20)

        assert len(low.image_b64) < len(high.image_b64)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
