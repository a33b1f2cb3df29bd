"""
Logging setup plus a gesture/interaction event log.

Console output stays compact; the optional rotating file gets every
record at DEBUG with the logger name.
"""

import os
import logging
import logging.handlers
import time
from collections import deque
from functools import wraps

CONSOLE_FORMAT = "%(asctime)s  %(levelname)-5s  %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)-32s | %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Chatty at INFO: one line per HTTP request / SDK call
QUIET_LOGGERS = ("httpx", "httpcore", "google_genai", "uvicorn.access")


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Install console and (optionally) rotating file handlers on the root logger.

    Replaces any handlers already present, so calling it twice is safe.
    """
    level_no = getattr(logging, str(level).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level_no)
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(level_no)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=int(max_size_mb * 1024 * 1024),
            backupCount=backup_count,
        )
        rotating.setLevel(logging.DEBUG)
        rotating.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(rotating)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class GestureLogger:
    """Keeps a bounded history of classified gestures and logs sent interactions."""

    def __init__(self, max_history: int = 500):
        self.logger = logging.getLogger("gesture_events")
        self._history = deque(maxlen=max_history)
        self._interactions_ok = 0
        self._interactions_failed = 0

    def log_gesture(self, label, latency_ms=None, confirmed=False):
        """Record one label. `latency_ms` is capture-to-label time when known."""
        self._history.append({
            "timestamp": time.time(),
            "gesture": label,
            "latency_ms": latency_ms,
            "confirmed": confirmed,
        })
        latency = "N/A" if latency_ms is None else f"{latency_ms:.0f}ms"
        self.logger.info("Gesture %-10s %-9s latency=%s",
                         label, "confirmed" if confirmed else "seen", latency)

    def log_action(self, prompt, success=True, detail=""):
        """Record one interact() call."""
        if success:
            self._interactions_ok += 1
            self.logger.info("Interact ok     %r (%s)", prompt, detail)
        else:
            self._interactions_failed += 1
            self.logger.warning("Interact failed %r (%s)", prompt, detail)

    def get_history(self, last_n=None):
        history = list(self._history)
        return history[-last_n:] if last_n else history

    @property
    def total_gestures(self):
        return len(self._history)

    @property
    def interaction_counts(self):
        return {"ok": self._interactions_ok, "failed": self._interactions_failed}

    @property
    def last_latency_ms(self):
        latencies = [e["latency_ms"] for e in self._history if e["latency_ms"] is not None]
        return latencies[-1] if latencies else None


def log_timing(func):
    """Log wall time of `func` at DEBUG on the caller's module logger."""
    timing_logger = logging.getLogger(func.__module__)

    @wraps(func)
    def timed(*args, **kwargs):
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            timing_logger.debug("%s: %.1fms", func.__qualname__,
                                (time.perf_counter() - started) * 1000.0)

    return timed
