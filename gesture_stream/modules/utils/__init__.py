"""Configuration and logging utilities."""
from .config import Config
from .logger import GestureLogger, setup_logging, log_timing

__all__ = ["Config", "GestureLogger", "setup_logging", "log_timing"]
