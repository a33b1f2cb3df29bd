"""HTTP boundary service for transcription and gesture classification."""
from .app import create_app, run_server

__all__ = ["create_app", "run_server"]
