"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Request tracing middleware
- Common utilities
"""

from core.logging import configure_logging, get_logger
from core.utils import ensure_utc, parse_timestamp, utc_now

__all__ = [
    "configure_logging",
    "get_logger",
    "ensure_utc",
    "parse_timestamp",
    "utc_now",
]
