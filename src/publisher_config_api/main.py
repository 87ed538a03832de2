from __future__ import annotations

import json
import logging
import stat
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import aiofiles.os
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .audit import AuditLogger
from .configuration import Settings, configure_logging, get_settings
from .errors import (
    PayloadTooLargeError,
    PublisherAPIError,
    StoreError,
    UnsupportedMediaTypeError,
    ValidationError,
    error_response,
)
from .locks import FileLockRegistry
from .middleware import BodySizeLimitMiddleware, RateLimiter, RateLimitMiddleware
from .models import HealthStatus, MutationResponse
from .security import require_api_key
from .store import PublisherStore
from .utils import ensure_directory
from .validation import is_valid_filename, validate_publisher_config

logger = logging.getLogger(__name__)


def get_store(request: Request) -> PublisherStore:
    return request.app.state.store


def get_audit(request: Request) -> AuditLogger:
    return request.app.state.audit


@contextmanager
def store_boundary(audit: AuditLogger, action: str, filename: Optional[str], message: str) -> Iterator[None]:
    """
    Convert unexpected failures inside a route into a generic ``StoreError``.

    Client errors (not found, conflict) pass through untouched. Everything
    else is audit-logged under ``action`` and surfaced with ``message``; the
    original error text travels in ``details``, which is only rendered
    outside production.
    """
    try:
        yield
    except StoreError as exc:
        details = f"{exc.message}: {exc.details}" if exc.details else exc.message
        audit.log(action, {"filename": filename, "error": details})
        raise StoreError(message, details=details) from exc
    except PublisherAPIError:
        raise
    except Exception as exc:
        logger.exception(f"{message}: {exc}")
        audit.log(action, {"filename": filename, "error": f"{type(exc).__name__}: {exc}"})
        raise StoreError(message, details=str(exc)) from exc


def _check_filename(request: Request, filename: str) -> None:
    if not is_valid_filename(filename, request.app.state.settings.data_path):
        raise ValidationError("Invalid filename")


async def _read_config_body(request: Request) -> Dict[str, Any]:
    settings: Settings = request.app.state.settings
    # Chunked uploads carry no Content-Length, so the cap is enforced while reading.
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > settings.max_body_bytes:
            raise PayloadTooLargeError("Request body too large")
        chunks.append(chunk)
    body = b"".join(chunks)
    if not body:
        raise ValidationError("Request body is required")

    media_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if media_type != "application/json" and not media_type.endswith("+json"):
        raise UnsupportedMediaTypeError("Content-Type must be application/json")

    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise ValidationError("Malformed JSON body") from exc

    result = validate_publisher_config(payload)
    if not result.ok:
        raise ValidationError(f"Invalid publisher config: {result.detail}")
    return payload


router = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])


@router.get("/publishers")
async def list_publishers(
    store: PublisherStore = Depends(get_store),
    audit: AuditLogger = Depends(get_audit),
) -> Dict[str, Any]:
    with store_boundary(audit, "READ_INDEX_ERROR", None, "Failed to read publishers data"):
        index = await store.list_index()
    return index.model_dump()


# ``:path`` lets names containing "/" reach the validator instead of 404ing in the router.
@router.get("/publisher/{filename:path}")
async def get_publisher(
    filename: str,
    request: Request,
    store: PublisherStore = Depends(get_store),
    audit: AuditLogger = Depends(get_audit),
) -> JSONResponse:
    _check_filename(request, filename)
    with store_boundary(audit, "READ_ERROR", filename, "Failed to read publisher config"):
        data = await store.get(filename)
    return JSONResponse(content=data)


@router.put("/publisher/{filename:path}", response_model=MutationResponse)
async def update_publisher(
    filename: str,
    request: Request,
    store: PublisherStore = Depends(get_store),
    audit: AuditLogger = Depends(get_audit),
) -> MutationResponse:
    _check_filename(request, filename)
    payload = await _read_config_body(request)
    with store_boundary(audit, "UPDATE_ERROR", filename, "Failed to save publisher config"):
        await store.update(filename, payload)
    return MutationResponse(success=True, filename=filename)


@router.post("/publisher/{filename:path}", response_model=MutationResponse, status_code=201)
async def create_publisher(
    filename: str,
    request: Request,
    store: PublisherStore = Depends(get_store),
    audit: AuditLogger = Depends(get_audit),
) -> MutationResponse:
    _check_filename(request, filename)
    payload = await _read_config_body(request)
    with store_boundary(audit, "CREATE_ERROR", filename, "Failed to create publisher config"):
        await store.create(filename, payload)
    return MutationResponse(success=True, filename=filename)


@router.delete(
    "/publisher/{filename:path}",
    response_model=MutationResponse,
    response_model_exclude_none=True,
)
async def delete_publisher(
    filename: str,
    request: Request,
    store: PublisherStore = Depends(get_store),
    audit: AuditLogger = Depends(get_audit),
) -> MutationResponse:
    _check_filename(request, filename)
    with store_boundary(audit, "DELETE_ERROR", filename, "Failed to delete publisher config"):
        await store.delete(filename)
    return MutationResponse(success=True)


async def _data_dir_reachable(settings: Settings) -> bool:
    try:
        info = await aiofiles.os.stat(settings.data_path)
    except OSError:
        return False
    return stat.S_ISDIR(info.st_mode)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Publisher Config API", version="0.1.0")

    data_dir = ensure_directory(settings.data_path)
    audit = AuditLogger(Path(settings.audit_log_path), max_bytes=settings.audit_log_max_bytes)
    store = PublisherStore(
        data_dir,
        locks=FileLockRegistry(),
        audit=audit,
        serialize_index_writes=settings.serialize_index_writes,
    )
    store.index.initialize()

    if not settings.api_key:
        logger.warning("API_KEY is not configured; every /api request will be rejected")

    app.state.settings = settings
    app.state.audit = audit
    app.state.store = store
    app.state.rate_limiter = RateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.started_at = time.monotonic()

    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter)
    # Added last so it wraps everything, including 429 and 413 responses.
    if settings.is_production:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(PublisherAPIError)
    async def publisher_error_handler(_request: Request, exc: PublisherAPIError) -> JSONResponse:
        return error_response(exc, include_details=not settings.is_production)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Router 404/405 responses share the {"error": ...} body of every other error.
        error = PublisherAPIError(str(exc.detail))
        error.status_code = exc.status_code
        response = error_response(error)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        error = ValidationError("Invalid request", details=str(exc.errors()))
        return error_response(error, include_details=not settings.is_production)

    @app.exception_handler(Exception)
    async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception: {exc}")
        fallback = StoreError("Internal server error", details=str(exc))
        return error_response(fallback, include_details=not settings.is_production)

    @app.get("/health")
    async def healthcheck() -> JSONResponse:
        reachable = await _data_dir_reachable(settings)
        health = HealthStatus(
            status="ok" if reachable else "error",
            timestamp=datetime.now(timezone.utc),
            uptime=round(time.monotonic() - app.state.started_at, 3),
            detail=None if reachable else "Data directory unreachable",
        )
        return JSONResponse(
            status_code=200 if reachable else 503,
            content=jsonable_encoder(health, exclude_none=True),
        )

    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run("publisher_config_api.main:app", host=settings.host, port=settings.port)
