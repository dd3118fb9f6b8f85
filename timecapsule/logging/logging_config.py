"""Centralized logging configuration for TimeCapsule.

@public

Loggers are created through Prefect's logger factory so that capture and
verification runs executed inside Prefect flows show up in the Prefect UI,
while plain library use still gets standard console output.

Usage:
    >>> from timecapsule.logging import get_pipeline_logger
    >>> logger = get_pipeline_logger(__name__)
    >>> logger.info("Capture started")

Environment variables:
    TIMECAPSULE_LOGGING_CONFIG: Path to custom logging.yml
    TIMECAPSULE_LOG_LEVEL: Default log level (INFO, DEBUG, etc.)
    PREFECT_LOGGING_SETTINGS_PATH: Alternative config path
"""

import logging.config
import os
from pathlib import Path
from typing import Any

import yaml
from prefect.logging import get_logger

# Prefect parents every logger it creates under "prefect"
LOGGER_ROOT = "prefect.timecapsule"

DEFAULT_LOG_LEVELS = {
    "timecapsule": "INFO",
    "timecapsule.sanitizer": "INFO",
    "timecapsule.proofs": "INFO",
    "timecapsule.storage": "INFO",
}


class LoggingConfig:
    """Manages logging configuration for TimeCapsule.

    @public

    Configuration precedence:
        1. Explicit config_path parameter
        2. TIMECAPSULE_LOGGING_CONFIG environment variable
        3. PREFECT_LOGGING_SETTINGS_PATH environment variable
        4. Default configuration

    Example:
        >>> config = LoggingConfig()
        >>> config.apply()

    Note:
        Configuration is lazy-loaded and cached after first access.
    """

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or self._get_default_config_path()
        self._config: dict[str, Any] | None = None

    @staticmethod
    def _get_default_config_path() -> Path | None:
        """Return the config path named by the environment, if any."""
        if env_path := os.environ.get("TIMECAPSULE_LOGGING_CONFIG"):
            return Path(env_path)

        if prefect_path := os.environ.get("PREFECT_LOGGING_SETTINGS_PATH"):
            return Path(prefect_path)

        return None

    def load_config(self) -> dict[str, Any]:
        """Load logging configuration from file or defaults.

        Returns:
            Dictionary in ``logging.config.dictConfig`` format. Cached after
            the first call; create a new LoggingConfig to reload from disk.
        """
        if self._config is None:
            if self.config_path and self.config_path.exists():
                with open(self.config_path, "r") as f:
                    self._config = yaml.safe_load(f)
            else:
                self._config = self._get_default_config()
        assert self._config is not None
        return self._config

    @staticmethod
    def _get_default_config() -> dict[str, Any]:
        """Default configuration: console output, INFO for timecapsule, WARNING for root.

        Default format:
            "HH:MM:SS.mmm | LEVEL | logger.name - message"
        """
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s - %(message)s",
                    "datefmt": "%H:%M:%S",
                },
                "detailed": {
                    "format": ("%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d - %(message)s"),
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                LOGGER_ROOT: {
                    "level": os.environ.get("TIMECAPSULE_LOG_LEVEL", "INFO"),
                    "handlers": ["console"],
                    "propagate": False,
                },
            },
            "root": {
                "level": "WARNING",
                "handlers": ["console"],
            },
        }

    def apply(self):
        """Apply the configuration with ``logging.config.dictConfig``.

        Also exports PREFECT_LOGGING_LEVEL when the configuration has a
        ``prefect`` logger section.
        """
        config = self.load_config()
        logging.config.dictConfig(config)

        if "prefect" in config.get("loggers", {}):
            prefect_level = config["loggers"]["prefect"].get("level", "INFO")
            os.environ.setdefault("PREFECT_LOGGING_LEVEL", prefect_level)


_logging_config: LoggingConfig | None = None


def setup_logging(config_path: Path | None = None, level: str | None = None):
    """Set up logging for TimeCapsule.

    @public

    Args:
        config_path: Optional path to a YAML logging configuration file.
        level: Optional level override applied to every TimeCapsule logger.

    Example:
        >>> setup_logging()
        >>> setup_logging(level="DEBUG")
    """
    global _logging_config

    _logging_config = LoggingConfig(config_path)
    _logging_config.apply()

    if level:
        for logger_name in DEFAULT_LOG_LEVELS:
            get_logger(logger_name).setLevel(level)

        os.environ["PREFECT_LOGGING_LEVEL"] = level


def get_pipeline_logger(name: str):
    """Get a logger for TimeCapsule components.

    @public

    Initializes logging on first use.

    Args:
        name: Logger name, typically ``__name__``.

    Returns:
        Prefect logger instance (named ``prefect.<name>``).
    """
    if _logging_config is None:
        setup_logging()

    return get_logger(name)
