"""
Logging sanitization for sensitive data protection.

Queued payloads carry device positions and the remote API is reached with
credentials, and both end up in log context. This module redacts them
before a log event reaches the sink.
"""

import re
from typing import Any, Dict, List, Optional

REDACTED = "***REDACTED***"


class LogSanitizer:
    """Redacts credentials and location data from log output."""

    # Field names redacted wherever they appear (substring, case-insensitive)
    SENSITIVE_FIELD_PATTERNS = (
        'password', 'passwd', 'secret', 'token', 'api_key', 'apikey',
        'authorization', 'private_key', 'session_id', 'cookie', 'coordinates',
    )

    # Field names redacted only on an exact (case-insensitive) match
    SENSITIVE_FIELD_NAMES = frozenset({
        'latitude', 'longitude', 'lat', 'lon', 'lng', 'auth', 'pin',
    })

    # Consumed by later processors, left untouched
    PASSTHROUGH_FIELDS = frozenset({'exc_info', 'stack_info'})

    SENSITIVE_VALUE_PATTERNS = (
        # Bearer credentials
        re.compile(r'\bbearer\s+[A-Za-z0-9._~+/-]+=*', re.IGNORECASE),
        # JWTs
        re.compile(r'\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*'),
        # Email addresses
        re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'),
        # "lat,lon" pairs with at least four decimals
        re.compile(r'-?\d{1,3}\.\d{4,}\s*,\s*-?\d{1,3}\.\d{4,}'),
    )

    def __init__(self, max_depth: int = 10):
        self.max_depth = max_depth

    def is_sensitive_field(self, name: Any) -> bool:
        lowered = str(name).lower()
        if lowered in self.SENSITIVE_FIELD_NAMES:
            return True
        return any(pattern in lowered for pattern in self.SENSITIVE_FIELD_PATTERNS)

    def sanitize_dict(self, data: Dict[str, Any], depth: Optional[int] = None) -> Dict[str, Any]:
        """
        Recursively sanitize a dictionary.

        Args:
            data: Dictionary to sanitize
            depth: Remaining recursion depth, defaults to ``max_depth``

        Returns:
            New dictionary with sensitive fields and values redacted
        """
        depth = self.max_depth if depth is None else depth
        if depth <= 0:
            return {"error": "max_depth_reached"}

        sanitized = {}
        for key, value in data.items():
            if key in self.PASSTHROUGH_FIELDS:
                sanitized[key] = value
            elif self.is_sensitive_field(key):
                sanitized[key] = REDACTED
            else:
                sanitized[key] = self._sanitize(value, depth - 1)
        return sanitized

    def sanitize_string(self, text: str) -> str:
        """Replace sensitive substrings of a free-form string."""
        for pattern in self.SENSITIVE_VALUE_PATTERNS:
            text = pattern.sub(REDACTED, text)
        return text

    def _sanitize(self, value: Any, depth: int) -> Any:
        if isinstance(value, dict):
            return self.sanitize_dict(value, depth)
        if isinstance(value, tuple):
            return tuple(self._sanitize_list(value, depth))
        if isinstance(value, list):
            return self._sanitize_list(value, depth)
        if isinstance(value, str):
            return self.sanitize_string(value)
        return value

    def _sanitize_list(self, data: Any, depth: int) -> List[Any]:
        if depth <= 0:
            return ["max_depth_reached"]
        return [self._sanitize(item, depth - 1) for item in data]


class StructlogSanitizer:
    """Structlog processor for sanitizing log events."""

    def __init__(self, sanitizer: Optional[LogSanitizer] = None):
        self.sanitizer = sanitizer or LogSanitizer()

    def __call__(self, logger, method_name, event_dict):
        try:
            return self.sanitizer.sanitize_dict(event_dict)
        except Exception as e:
            # Never let the original data through
            return {
                "event": "log_sanitization_error",
                "error": str(e),
                "level": event_dict.get("level", method_name),
            }
