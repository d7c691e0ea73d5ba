"""
Configuration for signlink.

Supports configuration via:
1. Environment variables (highest priority)
2. TOML config file (signlink.toml)
3. Default values (lowest priority)

Environment variables:
- SIGNLINK_CONFIG_FILE: Path to TOML config file
- SIGNLINK_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
- SIGNLINK_TIMEOUT_MS: Per-attempt timeout for agent calls
- SIGNLINK_MAX_RETRIES: Retries after the first attempt
- SIGNLINK_BASE_DELAY_MS: Backoff delay before the first retry
- SIGNLINK_MAX_DELAY_MS: Backoff cap
- SIGNLINK_BACKOFF_MULTIPLIER: Backoff growth factor
- SIGNLINK_ENABLE_RETRY: Whether to retry transient failures (true/false)
- SIGNLINK_ENABLE_TIMEOUT: Whether to guard attempts with a timeout (true/false)
- SIGNLINK_PROBE_TIMEOUT_MS: Detection probe window
- SIGNLINK_PROBE_SECURE: Probe the secure (wss) endpoint (true/false)

Example signlink.toml:

    [resilience]
    timeout_ms = 30000
    max_retries = 3

    [probe]
    timeout_ms = 2000
    secure = true

    [logging]
    level = "DEBUG"
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from signlink.core.detection import PROBE_TIMEOUT_MS
from signlink.core.resilience.models import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_MS,
    ResilienceConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILES = ("signlink.toml", ".signlink.toml")

_TRUE_VALUES = ("true", "1", "yes")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _to_bool(value: Any) -> bool:
    """Accept TOML booleans and env-style strings; reject anything else."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return _parse_bool(value)
    raise TypeError(f"expected a boolean, got {type(value).__name__}")


def _to_int(value: Any) -> int:
    # bool is an int subclass; "true" is never a valid count or duration
    if isinstance(value, bool):
        raise TypeError("expected an integer, got bool")
    return int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("expected a number, got bool")
    return float(value)


_FIELD_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "timeout_ms": _to_int,
    "max_retries": _to_int,
    "base_delay_ms": _to_int,
    "max_delay_ms": _to_int,
    "backoff_multiplier": _to_float,
    "enable_retry": _to_bool,
    "enable_timeout": _to_bool,
    "probe_timeout_ms": _to_int,
    "probe_secure": _to_bool,
}

_RESILIENCE_KEYS = (
    "timeout_ms",
    "max_retries",
    "base_delay_ms",
    "max_delay_ms",
    "backoff_multiplier",
    "enable_retry",
    "enable_timeout",
)

_ENV_FIELDS = {
    "SIGNLINK_TIMEOUT_MS": "timeout_ms",
    "SIGNLINK_MAX_RETRIES": "max_retries",
    "SIGNLINK_BASE_DELAY_MS": "base_delay_ms",
    "SIGNLINK_MAX_DELAY_MS": "max_delay_ms",
    "SIGNLINK_BACKOFF_MULTIPLIER": "backoff_multiplier",
    "SIGNLINK_ENABLE_RETRY": "enable_retry",
    "SIGNLINK_ENABLE_TIMEOUT": "enable_timeout",
    "SIGNLINK_PROBE_TIMEOUT_MS": "probe_timeout_ms",
    "SIGNLINK_PROBE_SECURE": "probe_secure",
}


@dataclass
class SignlinkConfig:
    """Resilience, probe and logging settings with env and TOML overrides."""

    # Resilience defaults for agent calls
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    enable_retry: bool = True
    enable_timeout: bool = True

    # Detection probe
    probe_timeout_ms: int = PROBE_TIMEOUT_MS
    probe_secure: bool = False

    # Logging configuration
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "SignlinkConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. TOML config file
        3. Default values
        """
        config = cls()

        toml_path = config_file or os.environ.get("SIGNLINK_CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            for default_path in DEFAULT_CONFIG_FILES:
                if Path(default_path).exists():
                    config._load_toml(Path(default_path))
                    break

        config._load_env()

        return config

    def _set_field(self, attr: str, raw: Any, parse: Callable[[Any], Any], source: str) -> None:
        """Assign ``parse(raw)`` to ``attr``; log and keep the current value if it fails."""
        try:
            setattr(self, attr, parse(raw))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid {source}={raw!r}")

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
            return

        res = data.get("resilience")
        if isinstance(res, dict):
            for key in _RESILIENCE_KEYS:
                if key in res:
                    self._set_field(key, res[key], _FIELD_PARSERS[key], f"[resilience] {key}")

        probe = data.get("probe")
        if isinstance(probe, dict):
            if "timeout_ms" in probe:
                self._set_field("probe_timeout_ms", probe["timeout_ms"], _to_int, "[probe] timeout_ms")
            if "secure" in probe:
                self._set_field("probe_secure", probe["secure"], _to_bool, "[probe] secure")

        log = data.get("logging")
        if isinstance(log, dict) and "level" in log:
            self.log_level = str(log["level"]).upper()

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        for env_name, attr in _ENV_FIELDS.items():
            if raw := os.environ.get(env_name):
                self._set_field(attr, raw, _FIELD_PARSERS[attr], env_name)

        if level := os.environ.get("SIGNLINK_LOG_LEVEL"):
            self.log_level = level.upper()

    def to_resilience_config(self, **overrides: Any) -> ResilienceConfig:
        """Build a ResilienceConfig from these settings.

        Keyword overrides (e.g. ``on_retry``) are applied on top.

        Raises:
            ValueError: If the configured values are out of range.
        """
        values: Dict[str, Any] = {
            "timeout_ms": self.timeout_ms,
            "max_retries": self.max_retries,
            "base_delay_ms": self.base_delay_ms,
            "max_delay_ms": self.max_delay_ms,
            "backoff_multiplier": self.backoff_multiplier,
            "enable_retry": self.enable_retry,
            "enable_timeout": self.enable_timeout,
        }
        values.update(overrides)
        return ResilienceConfig(**values)

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level, logging.INFO)

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

        root_logger = logging.getLogger("signlink")
        root_logger.setLevel(level)
        if not root_logger.handlers:
            root_logger.addHandler(handler)


# Global configuration instance
_config: Optional[SignlinkConfig] = None


def get_config() -> SignlinkConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = SignlinkConfig.from_env()
    return _config


def set_config(config: Optional[SignlinkConfig]) -> None:
    """Set (or clear, with None) the global configuration instance."""
    global _config
    _config = config


def load_config(config_file: Optional[str] = None) -> SignlinkConfig:
    """Load settings, install them as the global instance and configure logging."""
    config = SignlinkConfig.from_env(config_file)
    set_config(config)
    config.setup_logging()
    return config
