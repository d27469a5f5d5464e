"""
Logging and error conversion helpers shared by every API operation.

Each client method is wrapped by ``log_api_operation``: the call is timed
and logged through structlog, and any failure leaves the method as an
``APIError`` subclass chosen by ``ErrorHandler.classify_error``.
"""

from __future__ import annotations

import functools
import json
import time
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from .llm.exceptions import (
    APIConnectionError,
    APIError,
    RateLimitError,
    ResponseParseError,
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

P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class ErrorHandler:
    """Maps arbitrary failures onto the APIError hierarchy."""

    @staticmethod
    def classify_error(error: Exception) -> tuple[type[APIError], str]:
        """
        Pick the APIError subclass and a category name for an exception.

        Timeouts are checked before other transport failures because
        httpx timeouts are transport errors too.
        """
        if isinstance(error, APIError):
            return type(error), "api_error"
        if isinstance(error, httpx.TimeoutException | TimeoutError):
            return APIConnectionError, "timeout_error"
        if isinstance(error, httpx.TransportError | ConnectionError | OSError):
            return APIConnectionError, "connection_error"
        if isinstance(error, ValidationError | json.JSONDecodeError | KeyError):
            return ResponseParseError, "parse_error"
        if isinstance(error, ValueError | TypeError):
            return APIError, "parameter_error"
        return APIError, "unknown_error"

    @staticmethod
    def create_api_error(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
        custom_message: str | None = None,
    ) -> APIError:
        """
        Build the APIError raised in place of ``error`` and log it.

        The returned error's ``response_data`` records the operation, the
        category and the original exception type, merged over any data
        the original APIError already carried. Status code and retry hint
        of an APIError are kept.
        """
        error_class, error_category = ErrorHandler.classify_error(error)
        context = context or {}

        if custom_message:
            message = custom_message
        elif isinstance(error, APIError):
            message = error.message
        else:
            message = f"{operation} failed: {error!s}"

        logger.error(
            "API operation failed",
            operation=operation,
            error_type=type(error).__name__,
            error_category=error_category,
            error_message=str(error),
            **context,
        )

        error_data = {
            "operation": operation,
            "error_category": error_category,
            "original_error_type": type(error).__name__,
            **context,
        }

        if not isinstance(error, APIError):
            return error_class(message, response_data=error_data)

        kwargs: dict[str, Any] = {
            "status_code": error.status_code,
            "response_data": {**error.response_data, **error_data},
        }
        if isinstance(error, RateLimitError):
            kwargs["retry_after"] = error.retry_after
        return error_class(message, **kwargs)


def log_operation(
    operation: str,
    *,
    log_args: bool = False,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Log start and outcome of an async call at debug level.

    Exceptions are re-raised unchanged; turning them into APIError is
    ``handle_api_errors``' job.
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            call_logger = logger.bind(operation=operation, **(context or {}))
            if log_args:
                # args[0] is the client instance
                call_logger = call_logger.bind(
                    call_args=args[1:], call_kwargs=kwargs
                )

            start = time.perf_counter()
            call_logger.debug("API call started")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                timing = {"duration_ms": _elapsed_ms(start)} if log_timing else {}
                call_logger.debug(
                    "API call raised", error_type=type(e).__name__, **timing
                )
                raise

            timing = {"duration_ms": _elapsed_ms(start)} if log_timing else {}
            call_logger.debug("API call finished", **timing)
            return result

        return wrapper
    return decorator


def handle_api_errors(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    custom_message: str | None = None,
    reraise_api_errors: bool = True,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Make every failure of an async call surface as APIError.

    With ``reraise_api_errors`` an APIError raised inside passes through
    untouched; otherwise it is rebuilt with the operation context.
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except APIError as e:
                if not reraise_api_errors:
                    raise ErrorHandler.create_api_error(
                        e, operation, context, custom_message
                    ) from e
                logger.error(
                    "API operation failed",
                    operation=operation,
                    status_code=e.status_code,
                    api_error_message=e.message,
                    **(context or {}),
                )
                raise
            except Exception as e:
                raise ErrorHandler.create_api_error(
                    e, operation, context, custom_message
                ) from e

        return wrapper
    return decorator


def log_api_operation(
    operation: str,
    *,
    log_args: bool = False,
    context: dict[str, Any] | None = None,
    reraise_api_errors: bool = True,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """Apply ``log_operation`` inside ``handle_api_errors``."""
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        logged = log_operation(operation, log_args=log_args, context=context)(func)
        return handle_api_errors(
            operation, context=context, reraise_api_errors=reraise_api_errors
        )(logged)
    return decorator


class ContextualLogger:
    """
    structlog logger carrying fixed context, such as the API endpoint a
    client talks to. ``bind`` derives a child with extra fields.
    """

    def __init__(self, **base_context: Any):
        self.base_context = base_context
        self._logger = logger.bind(**base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        return ContextualLogger(**{**self.base_context, **context})

    def debug(self, event: str, **fields: Any) -> None:
        self._logger.debug(event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._logger.warning(event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self._logger.error(event, **fields)
