"""
Contract programming helpers.

Preconditions are declared with ``@require`` on public entry points so bad
arguments fail loudly at the boundary instead of corrupting cache or
queue state later on.
"""

import functools
import inspect
from typing import Any, Callable, TypeVar, Union

import structlog

from safehorizon.shared.exceptions import PreconditionError

logger = structlog.get_logger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def require(condition: Callable[..., bool], message: str = "") -> Callable[[F], F]:
    """
    Precondition decorator - validates input parameters.

    The condition is called with the bound arguments (defaults applied) as
    keyword arguments, so it can pick out just the names it cares about::

        @require(lambda priority, **_: priority >= 1, "priority must be >= 1")

    Works for both plain and coroutine functions.

    Args:
        condition: Callable taking the bound arguments as keywords
        message: Custom error message for contract violation

    Returns:
        Decorated function with precondition checking

    Raises:
        PreconditionError: If precondition is not met
    """
    def decorator(func: F) -> F:
        sig = inspect.signature(func)

        def check(args, kwargs):
            bound_args = sig.bind(*args, **kwargs)
            bound_args.apply_defaults()

            try:
                result = condition(**bound_args.arguments)
            except Exception as e:
                logger.error(
                    "Precondition evaluation failed",
                    function=func.__name__,
                    error=str(e)
                )
                raise PreconditionError(
                    f"Precondition evaluation error in {func.__name__}: {str(e)}"
                )

            if not result:
                error_msg = message or f"Precondition failed in {func.__name__}"
                logger.warning(
                    "Precondition violation",
                    function=func.__name__,
                    message=error_msg
                )
                raise PreconditionError(error_msg)

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                check(args, kwargs)
                return await func(*args, **kwargs)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            check(args, kwargs)
            return func(*args, **kwargs)

        return wrapper
    return decorator


# Common contract conditions

def non_empty_string(value: str) -> bool:
    """Check if string is non-empty after stripping whitespace."""
    return isinstance(value, str) and len(value.strip()) > 0


def optional_positive(value: Union[int, float, None]) -> bool:
    """Check if value is absent or positive."""
    return value is None or value > 0
