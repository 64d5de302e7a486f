"""
JSON serialization capability for the disk cache tier.
"""

import hashlib
import json
from typing import Any

from safehorizon.core.domain.interfaces import Serializer
from safehorizon.shared.exceptions import SerializationError

FINGERPRINT_LENGTH = 16


class JsonSerializer(Serializer):
    """Encode JSON-compatible values as UTF-8 bytes."""

    def encode(self, value: Any) -> bytes:
        try:
            return json.dumps(value, ensure_ascii=False, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationError(f"Value is not serializable: {e}", details={"type": type(value).__name__})

    def decode(self, raw: bytes) -> Any:
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise SerializationError(f"Malformed serialized value: {e}")

    def fingerprint(self, value: Any) -> str:
        try:
            canonical = json.dumps(value, sort_keys=True, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError, RecursionError):
            return ""
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
