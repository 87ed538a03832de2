"""
Static API key gate for the ``/api`` routes.

The key is read from the ``X-API-Key`` header. Outside production an
``api_key`` query parameter is accepted as well, which is convenient for
opening a config straight from a browser during development.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, APIKeyQuery

from .configuration import Settings
from .errors import AuthError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY_PARAM = "api_key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)
api_key_query = APIKeyQuery(name=API_KEY_QUERY_PARAM, auto_error=False)


def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def keys_match(provided: str, expected: str) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_api_key(
    header_key: Optional[str] = Depends(api_key_header),
    query_key: Optional[str] = Depends(api_key_query),
    settings: Settings = Depends(get_settings_from_app),
) -> None:
    """
    FastAPI dependency that rejects the request with 401 unless a valid key
    is supplied. Runs before the route body, so a rejected request never
    reaches the store.
    """
    provided = header_key
    if not provided and not settings.is_production:
        provided = query_key

    if not provided:
        raise AuthError("API key required")
    if not keys_match(provided, settings.api_key):
        logger.warning("Rejected request with invalid API key")
        raise AuthError("Invalid API key")
