"""
Centralized logging and error handling utilities for the relay backend.

This module provides structured logging setup and helpers that standardize
how failures are logged and reported across the codebase.

Features:
- Structured logging with contextual information
- Error classification into HTTP status codes and categories
- Performance timing for async operations
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import structlog
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from chat_relay.history.exceptions import (
    BatchSaveError,
    DuplicateEmailError,
    InvalidBatchError,
    InvalidCredentialsError,
    PersistenceError,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_CONFLICT = 409
HTTP_UNPROCESSABLE = 422
HTTP_INTERNAL_ERROR = 500
HTTP_SERVICE_UNAVAILABLE = 503
HTTP_GATEWAY_TIMEOUT = 504


def setup_logging(level: str = "INFO") -> None:
    """Configure the stdlib root logger that structlog writes through."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


class ErrorHandler:
    """Centralized error classification with structured logging."""

    @staticmethod
    def classify_error(error: Exception) -> tuple[int, str]:
        """
        Classify an error and return an HTTP status code and category.

        Args:
            error: The exception to classify

        Returns:
            Tuple of (status_code, error_category)
        """
        if isinstance(error, DuplicateEmailError):
            return HTTP_CONFLICT, "duplicate_email"
        if isinstance(error, InvalidCredentialsError):
            return HTTP_UNAUTHORIZED, "invalid_credentials"
        if isinstance(error, InvalidBatchError):
            return HTTP_BAD_REQUEST, "invalid_batch"
        if isinstance(error, BatchSaveError):
            return HTTP_INTERNAL_ERROR, "batch_rolled_back"
        if isinstance(error, PersistenceError):
            return HTTP_INTERNAL_ERROR, "persistence_error"
        if isinstance(error, ValidationError | RequestValidationError):
            return HTTP_UNPROCESSABLE, "validation_error"
        if isinstance(error, TimeoutError):
            return HTTP_GATEWAY_TIMEOUT, "timeout_error"
        if isinstance(error, ConnectionError | OSError):
            return HTTP_SERVICE_UNAVAILABLE, "connection_error"
        if isinstance(error, ValueError | TypeError):
            return HTTP_BAD_REQUEST, "parameter_error"
        return HTTP_INTERNAL_ERROR, "unknown_error"

    @staticmethod
    def create_error_payload(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
        custom_message: str | None = None,
    ) -> tuple[int, dict[str, Any]]:
        """
        Build a client-facing error body with structured logging.

        Args:
            error: Original exception
            operation: Description of the operation that failed
            context: Additional context for logging
            custom_message: Override the default error message

        Returns:
            Tuple of (status_code, {"error": ..., "details"?: ...})
        """
        status_code, error_category = ErrorHandler.classify_error(error)
        context = context or {}

        if custom_message:
            message = custom_message
        elif isinstance(error, PersistenceError):
            message = str(error)
        else:
            message = f"{operation} failed"

        log = logger.error if status_code >= HTTP_INTERNAL_ERROR else logger.warning
        log(
            "Operation failed",
            operation=operation,
            error_type=type(error).__name__,
            error_category=error_category,
            status_code=status_code,
            error_message=str(error),
            **context,
        )

        payload: dict[str, Any] = {"error": message}
        details = getattr(error, "details", None)
        if details:
            payload["details"] = details
        return status_code, payload


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


def log_operation(
    operation: str, **context: Any
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator logging start, success and failure of an async call.

    Args:
        operation: Name of the operation
        **context: Fields bound to every record of the call

    Returns:
        Decorated function with logging
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(
                operation=operation, function=func.__name__, **context
            )
            operation_logger.debug("Operation started")
            start_time = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                operation_logger.warning(
                    "Operation failed",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    duration_ms=_elapsed_ms(start_time),
                )
                raise

            operation_logger.info(
                "Operation completed successfully",
                duration_ms=_elapsed_ms(start_time),
            )
            return result

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str, **context: Any
) -> AsyncIterator[structlog.stdlib.BoundLogger]:
    """
    Log a block as one operation and yield its bound logger.

    Failures are logged at error level with their duration and re-raised.
    """
    operation_logger = logger.bind(operation=operation, **context)
    operation_logger.info("Operation started")
    start_time = time.perf_counter()

    try:
        yield operation_logger
    except Exception as e:
        operation_logger.error(
            "Operation failed",
            error_type=type(e).__name__,
            error_message=str(e),
            duration_ms=_elapsed_ms(start_time),
        )
        raise

    operation_logger.info(
        "Operation completed successfully", duration_ms=_elapsed_ms(start_time)
    )
