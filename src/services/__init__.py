"""
Services Module - Infrastructure services for the practice manager.

- Structured logging configuration (JSON or human readable)
- Change logging for practice records
"""

from .logging_config import ChangeLogger, configure_logging, get_logger

__all__ = [
    "ChangeLogger",
    "configure_logging",
    "get_logger",
]
