"""Gesture recognition: admission control, remote classification, debounce."""
from .rate_governor import RateGovernor
from .remote_classifier import RemoteClassifier, RemoteClassifierConfig
from .debouncer import DebounceScheduler

__all__ = [
    "RateGovernor",
    "RemoteClassifier",
    "RemoteClassifierConfig",
    "DebounceScheduler",
]
