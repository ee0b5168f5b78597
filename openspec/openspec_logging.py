"""Logging and observability utilities for OpenSpec.

This module provides structured logging, timing metrics and
observability hooks shared by the parser, validator, archive
engine, CLI and MCP server.
"""

from __future__ import annotations

import json
import sys
import time
import logging as std_logging
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Union

ROOT_LOGGER = "openspec"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def setup_logging(
    log_level: Union[str, int] = std_logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Configure the ``openspec`` logger tree.

    Console output always goes to stderr so that command output and the MCP
    stdio transport stay clean. When ``log_file`` is given every record is
    also written there as one JSON object per line.
    """
    logger = std_logging.getLogger(ROOT_LOGGER)
    logger.setLevel(log_level)
    logger.handlers.clear()
    logger.propagate = False

    console_handler = std_logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        std_logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(console_handler)

    if log_file:
        file_handler = std_logging.FileHandler(Path(log_file), encoding="utf-8")
        file_handler.setLevel(std_logging.DEBUG)
        file_handler.setFormatter(JsonFormatter())
        logger.addHandler(file_handler)
        # the file handler wants everything even if the console is quieter
        logger.setLevel(std_logging.DEBUG)

    logger.debug("OpenSpec logging initialized")


class JsonFormatter(std_logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: std_logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "extra_fields", None)
        if extra:
            log_entry.update(extra)

        return json.dumps(log_entry, default=str)


class PerformanceMonitor:
    """Keep the most recent timing metrics for OpenSpec operations in memory.

    Each metric name holds at most ``max_samples`` entries; older ones are
    dropped as new ones arrive.
    """

    def __init__(self, max_samples: int = 1000):
        self.max_samples = max_samples
        self.metrics: Dict[str, Deque[Dict[str, Any]]] = {}

    def record_metric(self, name: str, value: Any, tags: Optional[Dict[str, str]] = None) -> None:
        metric = {
            "timestamp": _utc_now(),
            "name": name,
            "value": value,
            "tags": tags or {},
        }
        self.metrics.setdefault(name, deque(maxlen=self.max_samples)).append(metric)

        logger = std_logging.getLogger(f"{ROOT_LOGGER}.performance")
        logger.debug(f"Metric recorded: {name}={value}", extra={"extra_fields": metric})

    def get_metrics(self, name: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        if name:
            return {name: list(self.metrics.get(name, ()))}
        return {key: list(values) for key, values in self.metrics.items()}

    def reset(self) -> None:
        self.metrics.clear()


performance_monitor = PerformanceMonitor()


def log_performance(operation_name: str):
    """Decorator recording the duration of ``operation_name`` as a metric."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            logger = std_logging.getLogger(f"{ROOT_LOGGER}.performance")
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - start_time
                performance_monitor.record_metric(
                    f"{operation_name}_duration",
                    duration,
                    {"status": "error", "error_type": type(e).__name__},
                )
                logger.debug(
                    f"Failed operation: {operation_name} after {duration:.3f}s - {e}",
                    extra={"extra_fields": {
                        "operation": operation_name,
                        "duration": duration,
                        "status": "error",
                        "error_type": type(e).__name__,
                    }},
                )
                raise

            duration = time.perf_counter() - start_time
            performance_monitor.record_metric(
                f"{operation_name}_duration",
                duration,
                {"status": "success"},
            )
            logger.debug(
                f"Completed operation: {operation_name} in {duration:.3f}s",
                extra={"extra_fields": {
                    "operation": operation_name,
                    "duration": duration,
                    "status": "success",
                }},
            )
            return result

        return wrapper

    return decorator


@contextmanager
def log_operation(operation_name: str, **extra_fields):
    """Context manager logging the start, completion or failure of an operation."""
    logger = std_logging.getLogger(f"{ROOT_LOGGER}.operations")
    start_time = time.perf_counter()

    logger.info(f"Starting operation: {operation_name}", extra={"extra_fields": {
        "operation": operation_name,
        "status": "started",
        **extra_fields,
    }})

    try:
        yield
    except Exception as e:
        duration = time.perf_counter() - start_time
        logger.error(f"Failed operation: {operation_name} after {duration:.3f}s - {e}", extra={"extra_fields": {
            "operation": operation_name,
            "status": "failed",
            "duration": duration,
            "error_type": type(e).__name__,
            "error_message": str(e),
            **extra_fields,
        }})
        raise

    duration = time.perf_counter() - start_time
    logger.info(f"Completed operation: {operation_name} in {duration:.3f}s", extra={"extra_fields": {
        "operation": operation_name,
        "status": "completed",
        "duration": duration,
        **extra_fields,
    }})


class ObservabilityHooks:
    """Callbacks fired on OpenSpec lifecycle events (parsed, validated, archived)."""

    def __init__(self):
        self.hooks: Dict[str, List[Callable[..., Any]]] = {}
        self.logger = std_logging.getLogger(f"{ROOT_LOGGER}.observability")

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        self.hooks.setdefault(event_type, []).append(callback)
        self.logger.debug(f"Registered hook for event: {event_type}")

    def unregister_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        callbacks = self.hooks.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def trigger_hooks(self, event_type: str, **data) -> None:
        for hook in list(self.hooks.get(event_type, [])):
            try:
                hook(**data)
            except Exception as e:
                # a broken hook must not break the command that fired it
                self.logger.error(f"Hook failed for event {event_type}: {e}")

    def log_workflow_event(self, event_type: str, item_id: Optional[str] = None, **data) -> None:
        event_data = {
            "timestamp": _utc_now(),
            "event_type": event_type,
            "item_id": item_id,
            **data,
        }
        self.logger.info(f"Workflow event: {event_type}", extra={"extra_fields": event_data})

        hook_data = {k: v for k, v in event_data.items() if k != "event_type"}
        self.trigger_hooks(event_type, **hook_data)


observability_hooks = ObservabilityHooks()


def log_error_with_context(error: Exception, context: Dict[str, Any], **extra_fields) -> None:
    """Log an error together with the operation context it happened in."""
    logger = std_logging.getLogger(f"{ROOT_LOGGER}.errors")

    error_data = {
        "timestamp": _utc_now(),
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context,
        **extra_fields,
    }

    logger.error(
        f"Error in {context.get('operation', 'unknown operation')}: {error}",
        extra={"extra_fields": error_data},
    )


def log_spec_parsed(spec_name: str, requirement_count: int, **extra_fields) -> None:
    observability_hooks.log_workflow_event(
        "spec_parsed", item_id=spec_name, requirement_count=requirement_count, **extra_fields
    )


def log_change_parsed(change_name: str, delta_count: int, **extra_fields) -> None:
    observability_hooks.log_workflow_event(
        "change_parsed", item_id=change_name, delta_count=delta_count, **extra_fields
    )


def log_validation_report(item_id: str, valid: bool, summary: Dict[str, int], **extra_fields) -> None:
    observability_hooks.log_workflow_event(
        "validation_completed", item_id=item_id, valid=valid, summary=summary, **extra_fields
    )


def log_archive_event(event_type: str, change_name: str, **extra_fields) -> None:
    observability_hooks.log_workflow_event(
        f"archive_{event_type.lower()}", item_id=change_name, **extra_fields
    )
