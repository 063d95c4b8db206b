"""Logging configuration using Loguru for structured logging.

Provides family-aware logging with JSON formatting, rotation, and retention policies.
"""

import sys
import time
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence
from loguru import logger

from family_engine.models import ContractRecord


# Remove default handler
logger.remove()


def setup_logging(
    log_dir: Optional[str] = None,
    level: str = "INFO",
    rotation: str = "100 MB",
    retention: str = "30 days",
    compression: str = "zip"
) -> None:
    """Configure Loguru logging.

    Console output is always enabled. File sinks are added only when a log
    directory is given, so library callers and tests stay off the disk.

    Args:
        log_dir: Directory for log files (None disables file sinks)
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        rotation: When to rotate log files
        retention: How long to keep old logs
        compression: Compression format for rotated logs
    """
    logger.remove()

    # Console handler with colored output
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        level=level,
        colorize=True
    )

    if log_dir is None:
        return

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.add(
        log_path / "contract_families_{time}.log",
        format="{time} | {level} | {name}:{function}:{line} | {message}",
        level=level,
        rotation=rotation,
        retention=retention,
        compression=compression,
        serialize=False
    )

    # JSON structured log for parsing and analysis
    logger.add(
        log_path / "contract_families_json_{time}.log",
        level=level,
        rotation=rotation,
        retention=retention,
        compression=compression,
        serialize=True
    )

    # Anomaly log: one line per reported data-integrity condition
    def anomaly_format(record):
        family_id = record["extra"].get("family_id", "-")
        kind = record["extra"].get("anomaly_kind", "unknown")
        return f"{record['time']} | {record['level'].name} | {family_id} | {kind} | {record['message']}\n"

    logger.add(
        log_path / "anomalies_{time}.log",
        format=anomaly_format,
        level="DEBUG",
        rotation=rotation,
        retention=retention,
        compression=compression,
        filter=lambda record: "anomaly_kind" in record["extra"]
    )

    # Error-only log file
    logger.add(
        log_path / "errors_{time}.log",
        format="{time} | {level} | {name}:{function}:{line} | {message}",
        level="ERROR",
        rotation=rotation,
        retention=retention,
        compression=compression
    )

    logger.info("Logging system initialized", log_dir=log_dir, level=level)


def get_family_logger(family_id: str, stage: Optional[str] = None):
    """Get a logger bound to a family and optionally a pipeline stage.

    Args:
        family_id: Family identifier (root contract number)
        stage: Optional stage name for stage-specific logging

    Returns:
        Logger instance with family context
    """
    context = {"family_id": family_id}
    if stage:
        context["stage"] = stage
    return logger.bind(**context)


def log_stage_execution(stage_name: str) -> Callable:
    """Decorator to log a pipeline stage with timing.

    Args:
        stage_name: Name of the stage being executed

    Returns:
        Decorated function with logging
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            stage_logger = logger.bind(stage=stage_name)
            stage_logger.debug(f"Starting {stage_name}", function=func.__name__)

            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                stage_logger.error(
                    f"{stage_name} failed",
                    function=func.__name__,
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise

            stage_logger.debug(
                f"{stage_name} completed",
                function=func.__name__,
                duration_seconds=round(time.perf_counter() - start_time, 4)
            )
            return result

        return wrapper
    return decorator


def call_context(args: Sequence[Any]) -> Dict[str, str]:
    """Family and record identifiers found among a call's positional arguments.

    A ContractRecord argument yields both its family key and identifier; a raw
    agreement mapping yields its identifier when it has one.
    """
    for arg in args:
        if isinstance(arg, ContractRecord):
            return {"family_id": arg.family_key, "record_id": arg.id}
        if isinstance(arg, Mapping) and arg.get("id") is not None:
            return {"record_id": str(arg["id"])}
    return {}


def describe_context(context: Mapping[str, str]) -> str:
    """Human-readable suffix such as ' (family MSA-1, record r-7)'."""
    labels = (("family_id", "family"), ("record_id", "record"))
    parts = [f"{label} {context[key]}" for key, label in labels if key in context]
    return f" ({', '.join(parts)})" if parts else ""


def log_tool_execution(tool_name: str) -> Callable:
    """Decorator to log tool execution with the family/record being processed.

    Args:
        tool_name: Name of the tool being executed

    Returns:
        Decorated function with logging
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            context = call_context(args)
            tool_logger = logger.bind(tool=tool_name, **context)
            suffix = describe_context(context)
            tool_logger.trace("{} started{}", func.__qualname__, suffix)

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                tool_logger.error(
                    "{} failed{}: {}: {}", func.__qualname__, suffix, type(e).__name__, e
                )
                raise

            tool_logger.trace("{} finished{}", func.__qualname__, suffix)
            return result

        return wrapper
    return decorator
