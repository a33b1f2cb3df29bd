"""Streaming collaborator boundary and slide content."""
from .client import StreamHandlers, StreamingClient, load_streaming_client
from .slides import SlideImageLoader, load_slides

__all__ = [
    "StreamHandlers",
    "StreamingClient",
    "load_streaming_client",
    "SlideImageLoader",
    "load_slides",
]
