"""
Error types for API operations.

This module provides the error hierarchy surfaced to callers:
- Transport failures before a response exists
- Non-success HTTP statuses with the decoded error body
- Rate limit responses with retry guidance
- Response bodies that cannot be decoded
"""

from __future__ import annotations

from typing import Any


class APIError(Exception):
    """Base API error with response context."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}


class APIConnectionError(APIError):
    """Network failure or timeout before a response was received."""
    pass


class APIStatusError(APIError):
    """Server answered with a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        response_data: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code, response_data)


class RateLimitError(APIStatusError):
    """Rate limit error with retry information."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ResponseParseError(APIError):
    """Response body could not be decoded into the expected shape."""
    pass
