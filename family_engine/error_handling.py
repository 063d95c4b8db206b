"""Error handling for the contract family engine.

Provides custom exceptions and error handling decorators. Data-integrity
conditions (cycles, dangling parents, ...) are not exceptions: they are
recorded as anomalies, see family_engine.diagnostics.
"""

from functools import wraps
from typing import Any, Callable, Optional, Type
from loguru import logger

from family_engine.logging_config import call_context, describe_context


# Custom Exception Classes

class FamilyEngineError(Exception):
    """Base exception for all contract family engine errors."""
    pass


class RecordNormalizationError(FamilyEngineError):
    """Raised when a raw record cannot be turned into a ContractRecord."""
    pass


class HierarchyBuildError(FamilyEngineError):
    """Raised when hierarchy building fails."""
    pass


class AggregationError(FamilyEngineError):
    """Raised when family metrics cannot be computed."""
    pass


class GovernanceResolutionError(FamilyEngineError):
    """Raised when governance resolution fails."""
    pass


class FamilyAssemblyError(FamilyEngineError):
    """Raised when a family cannot be assembled."""
    pass


class ConfigurationError(FamilyEngineError):
    """Raised when engine configuration is invalid."""
    pass


class FamilyNotFoundError(FamilyEngineError):
    """Raised when a requested family is not in an assembly result."""
    pass


def handle_errors(error_type: Type[FamilyEngineError]) -> Callable:
    """Decorator converting unexpected exceptions into an engine error type.

    The raised error names the failing function and, when one of the call's
    arguments is a contract record, the family and record it was working on.

    Args:
        error_type: FamilyEngineError subclass to raise

    Returns:
        Decorated function with error conversion
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)

            except FamilyEngineError:
                raise

            except Exception as e:
                context = call_context(args)
                message = f"{func.__qualname__} failed{describe_context(context)}: {e}"
                logger.bind(error_type=type(e).__name__, **context).error(message)
                raise error_type(message) from e

        return wrapper
    return decorator


def graceful_degradation(fallback_func: Optional[Callable] = None) -> Callable:
    """Decorator substituting a fallback result when the wrapped call fails.

    Args:
        fallback_func: Called with the same arguments as the failed call;
            None is returned when omitted

    Returns:
        Decorated function with graceful degradation
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)

            except Exception as e:
                context = call_context(args)
                bound = logger.bind(error_type=type(e).__name__, **context)
                bound.warning(
                    f"{func.__qualname__} failed{describe_context(context)}, using fallback: {e}"
                )

                if fallback_func is None:
                    return None
                try:
                    return fallback_func(*args, **kwargs)
                except Exception as fallback_error:
                    bound.error(
                        f"Fallback {fallback_func.__qualname__} also failed"
                        f"{describe_context(context)}: {fallback_error}"
                    )
                    raise

        return wrapper
    return decorator
