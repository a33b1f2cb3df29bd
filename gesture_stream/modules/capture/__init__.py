"""Camera access and still-frame sampling."""
from .camera_manager import CameraManager, encode_frame
from .capture_loop import CaptureLoop

__all__ = ["CameraManager", "encode_frame", "CaptureLoop"]
