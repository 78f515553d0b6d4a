"""Utils module - Shared utilities."""

from __future__ import annotations

from dockerprom.utils.logging import get_logger, setup_logging, verbosity_to_level

__all__ = ["get_logger", "setup_logging", "verbosity_to_level"]
