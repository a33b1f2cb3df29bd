"""
Centralized configuration manager.
Loads the YAML config plus ``.env`` and provides typed access with defaults.

    - Type checks on known fields (logged, never fatal)
    - Dot-path access: config.get("capture.poll_interval_ms")
    - Reset support for testing
"""

import os
import logging

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

CONFIG_ENV_VAR = "GESTURE_STREAM_CONFIG"

# Schema: required sections and their expected types
_CONFIG_SCHEMA = {
    "capture": {
        "poll_interval_ms": int,
        "frame_interval_ms": int,
    },
    "governor": {
        "cooldown_ms": int,
        "default_retry_after_ms": int,
    },
    "debounce": {
        "debounce_ms": int,
    },
    "camera": {
        "device_id": int,
        "width": int,
        "height": int,
        "jpeg_quality": int,
    },
    "classifier": {
        "base_url": str,
        "timeout_s": float,
    },
    "server": {
        "host": str,
        "port": int,
        "model": str,
    },
    "session": {
        "slides_path": str,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Return a copy of `base` with `override` layered on, section by section."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = _deep_merge(current, value)
        merged[key] = value
    return merged


def _type_problem(where: str, value, expected: type):
    # YAML writes 5 for 5.0; accept ints for float fields
    if expected is float and isinstance(value, (int, float)) and not isinstance(value, bool):
        return None
    if isinstance(value, expected):
        return None
    return f"{where}: expected {expected.__name__}, got {type(value).__name__} ({value!r})"


class Config:
    """Singleton configuration manager."""

    _instance = None
    _data = {}
    _path = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def load(self, config_path=None, overrides: dict = None):
        """Load configuration from YAML (and environment from .env)."""
        load_dotenv()
        config_path = (
            config_path
            or os.environ.get(CONFIG_ENV_VAR)
            or os.path.join(_CONFIG_DIR, "config.yaml")
        )

        try:
            with open(config_path, "r") as f:
                self._data = yaml.safe_load(f) or {}
            logger.info("Config: %s", config_path)
        except FileNotFoundError:
            logger.warning("No config at %s; running on built-in defaults", config_path)
            self._data = {}

        if overrides:
            self._data = _deep_merge(self._data, overrides)
        self._path = config_path

        self._validate()

        return self

    def _validate(self) -> list:
        """Check known fields against _CONFIG_SCHEMA. Problems are logged, never raised."""
        problems = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if section is None:
                problems.append(f"section '{section_name}' missing")
            elif not isinstance(section, dict):
                problems.append(f"section '{section_name}' is a {type(section).__name__}, not a mapping")
            else:
                problems.extend(
                    p for p in (
                        _type_problem(f"{section_name}.{name}", section[name], expected)
                        for name, expected in fields.items() if name in section
                    ) if p
                )

        for problem in problems:
            logger.warning("Config: %s", problem)
        return problems

    def get(self, key_path: str, default=None):
        """Dot-path lookup, e.g. get("capture.poll_interval_ms", 1200)."""
        node = self._data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def get_section(self, section: str) -> dict:
        return self._data.get(section) or {}

    @property
    def pipeline(self) -> dict:
        """Sections consumed by GesturePipeline."""
        return {
            "capture": self.get_section("capture"),
            "governor": self.get_section("governor"),
            "debounce": self.get_section("debounce"),
        }

    @property
    def camera(self) -> dict:
        return self.get_section("camera")

    @property
    def classifier(self) -> dict:
        return self.get_section("classifier")

    @property
    def transcriber(self) -> dict:
        return self.get_section("transcriber")

    @property
    def voice(self) -> dict:
        return self.get_section("voice")

    @property
    def streaming(self) -> dict:
        return self.get_section("streaming")

    @property
    def session(self) -> dict:
        return self.get_section("session")

    @property
    def server(self) -> dict:
        return self.get_section("server")

    @property
    def logging_config(self) -> dict:
        return self.get_section("logging")

    @property
    def gemini_api_key(self):
        env_name = self.get("server.api_key_env", "GEMINI_API_KEY")
        return self.get("server.api_key") or os.environ.get(env_name) or None

    @property
    def path(self):
        return self._path

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    def resolve_path(self, path: str) -> str:
        """Resolve a config-relative path against the config file's directory."""
        if not path or os.path.isabs(path):
            return path
        anchor = os.path.dirname(os.path.abspath(self._path)) if self._path else _CONFIG_DIR
        return os.path.normpath(os.path.join(anchor, path))

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = {}
        cls._path = None
