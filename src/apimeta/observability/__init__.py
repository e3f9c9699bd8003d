"""Logging setup for the apimeta CLI."""

from apimeta.observability.logging import (
    LoggingConfig,
    default_log_redactor,
    setup_logging,
    shutdown_logging,
)

__all__ = ["LoggingConfig", "default_log_redactor", "setup_logging", "shutdown_logging"]
