"""
Error taxonomy for the publisher config API.

Every error carries the HTTP status it maps to, so the FastAPI exception
handler in ``main`` can render any of them without a lookup table.
"""

from __future__ import annotations

from typing import Optional

from fastapi.responses import JSONResponse


class PublisherAPIError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(PublisherAPIError):
    status_code = 400


class AuthError(PublisherAPIError):
    status_code = 401


class NotFoundError(PublisherAPIError):
    status_code = 404


class ConflictError(PublisherAPIError):
    status_code = 409


class PayloadTooLargeError(PublisherAPIError):
    status_code = 413


class UnsupportedMediaTypeError(PublisherAPIError):
    status_code = 415


class RateLimitError(PublisherAPIError):
    status_code = 429

    def __init__(self, message: str, retry_after: int = 1) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class StoreError(PublisherAPIError):
    """Unexpected filesystem or parse failure while serving a request."""

    status_code = 500


class IndexCorruptionError(StoreError):
    """The index file is unreadable or structurally invalid."""


def error_response(exc: PublisherAPIError, include_details: bool = False) -> JSONResponse:
    """Render an API error as ``{"error": ..., "details": ...}``."""
    content = {"error": exc.message}
    if include_details and exc.details:
        content["details"] = exc.details
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)
