"""
Logging helpers for configuration resolution.

Library modules only call logging.getLogger(__name__); handlers are attached
by configure_logging(), which the CLI calls once at startup.
"""

from .logging import JSONFormatter, configure_logging

__all__ = ["JSONFormatter", "configure_logging"]
