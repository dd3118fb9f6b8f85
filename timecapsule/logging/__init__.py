"""Logging infrastructure for TimeCapsule.

@public

Key components:
    get_pipeline_logger: Factory function for module loggers
    setup_logging: Initialize logging configuration from YAML or defaults
    LoggingConfig: Configuration class for logging settings

Example:
    >>> from timecapsule.logging import get_pipeline_logger
    >>>
    >>> logger = get_pipeline_logger(__name__)
    >>> logger.info("Processing started")
"""

from .logging_config import LoggingConfig, get_pipeline_logger, setup_logging

__all__ = [
    "LoggingConfig",
    "setup_logging",
    "get_pipeline_logger",
]
