"""Logging utilities for the MICA command line tools."""

from mica.logging.config import JsonFormatter, setup_logging

__all__ = ["JsonFormatter", "setup_logging"]
