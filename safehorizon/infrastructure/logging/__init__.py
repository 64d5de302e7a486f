"""
Logging configuration and sanitization.
"""

from .config import configure_logging
from .sanitization import REDACTED, LogSanitizer, StructlogSanitizer

__all__ = [
    "configure_logging",
    "REDACTED",
    "LogSanitizer",
    "StructlogSanitizer"
]
