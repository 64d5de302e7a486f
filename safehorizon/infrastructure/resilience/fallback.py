"""
Graceful degradation through fallbacks.

``FallbackHandler`` is the only resilience component allowed to swallow an
error; it always logs when it does, so degraded-mode operation shows up in
diagnostics.
"""

from typing import Any, Awaitable, Callable, Generic, Optional

import structlog

from safehorizon.infrastructure.monitoring.metrics import FALLBACK_ACTIVATIONS
from safehorizon.shared.types import T

logger = structlog.get_logger(__name__)

_MISSING = object()


class FallbackHandler(Generic[T]):
    """Primary operation, then fallback operation, then static value."""

    def __init__(
        self,
        name: str,
        fallback_operation: Optional[Callable[[], Awaitable[T]]] = None,
        fallback_value: Any = _MISSING,
        log_fallback: bool = True
    ):
        """
        Args:
            name: Operation name reported with every activation
            fallback_operation: Secondary async operation tried first
            fallback_value: Static value returned when everything else failed
            log_fallback: Log each activation (on by default)
        """
        if fallback_operation is None and fallback_value is _MISSING:
            raise ValueError("Either fallback_value or fallback_operation must be provided")
        self.name = name
        self.fallback_operation = fallback_operation
        self.fallback_value = fallback_value
        self.log_fallback = log_fallback

    @property
    def has_fallback_value(self) -> bool:
        return self.fallback_value is not _MISSING

    async def execute(self, primary_operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await primary_operation()
        except Exception as e:
            if self.log_fallback:
                logger.error(
                    "Primary operation failed, executing fallback",
                    operation=self.name,
                    exception=type(e).__name__,
                    error=str(e)
                )

            if self.fallback_operation is not None:
                try:
                    result = await self.fallback_operation()
                except Exception as fallback_error:
                    logger.error(
                        "Fallback operation also failed",
                        operation=self.name,
                        error=str(fallback_error),
                        original_error=str(e)
                    )
                    if not self.has_fallback_value:
                        raise e
                else:
                    FALLBACK_ACTIVATIONS.labels(name=self.name, source="operation").inc()
                    logger.info("Fallback operation succeeded", operation=self.name)
                    return result

            FALLBACK_ACTIVATIONS.labels(name=self.name, source="value").inc()
            logger.info("Using static fallback value", operation=self.name, original_error=str(e))
            return self.fallback_value
