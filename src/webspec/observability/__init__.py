"""Logging setup for the CLI and the loggers used by library modules."""

from webspec.observability.logging import (
    LoggingConfig,
    get_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = ["LoggingConfig", "get_logger", "setup_logging", "shutdown_logging"]
