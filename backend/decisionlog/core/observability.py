from __future__ import annotations

import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import TimeoutError as SATimeoutError
from starlette.responses import Response

from decisionlog.core.errors import ExportError

_APP_START_MONOTONIC = time.monotonic()

_SLOW_REQUEST_MS = int(os.getenv("SLOW_REQUEST_MS", "2000"))


def _pool_status() -> str | None:
    try:
        from decisionlog.database import engine

        return engine.pool.status()
    except Exception:
        return None


def _app_logger(request: Request) -> logging.Logger:
    logger = getattr(getattr(request.app, "state", None), "logger", None)
    return logger or logging.getLogger("decisionlog")


def uptime_seconds() -> float:
    return max(0.0, time.monotonic() - _APP_START_MONOTONIC)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds") + "Z"


async def export_error_handler(request: Request, exc: ExportError) -> JSONResponse:
    """Render taxonomy errors as the failure envelope used by export clients."""

    content: dict = {"success": False, "message": exc.message, "code": exc.code}
    if exc.export_id:
        content["exportId"] = exc.export_id

    if exc.status_code >= 500:
        _app_logger(request).error(
            "export_request_failed",
            extra={
                "path": request.url.path,
                "code": exc.code,
                "export_id": exc.export_id,
                "error": exc.message,
            },
        )

    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"Invalid request: {loc} {first.get('msg', '')}".strip()

    return JSONResponse(
        status_code=400,
        content={"success": False, "message": message, "code": "INVALID_REQUEST"},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: same failure envelope, no internals leaked."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())

    _app_logger(request).exception(
        "unhandled_exception",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "exception_type": type(exc).__name__,
        },
    )

    headers = {"X-Request-ID": request_id}

    # Attach CORS headers when the request Origin is allowed, so browsers
    # do not turn real 500s into opaque CORS errors.
    origin = request.headers.get("origin")
    if origin:
        from decisionlog.config import settings

        allowed = set(settings.cors_origins or [])
        if origin in allowed or "*" in allowed:
            headers.update(
                {
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Credentials": "true",
                    "Vary": "Origin",
                }
            )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error. Please try again later.",
            "request_id": request_id,
            "code": "INTERNAL_SERVER_ERROR",
        },
        headers=headers,
    )


def _export_id_from_path(path: str) -> str | None:
    parts = [p for p in path.split("/") if p]
    if "exports" not in parts:
        return None
    idx = parts.index("exports")
    if idx + 1 < len(parts) and parts[idx + 1] != "status":
        return parts[idx + 1]
    return None


def _request_fields(request: Request, request_id: str, started: float) -> dict:
    fields = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
    }
    export_id = _export_id_from_path(request.url.path) or request.query_params.get("exportId")
    if export_id:
        fields["export_id"] = export_id
    return fields


async def request_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Request-level logging middleware.

    Adds/propagates X-Request-ID and measures request duration. Requests that
    address a single export are tagged with its id. Bodies are never logged.
    """

    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    logger = _app_logger(request)
    started = time.perf_counter()

    try:
        response: Response = await call_next(request)
    except SATimeoutError as exc:
        fields = _request_fields(request, request_id, started)
        logger.error("db_pool_timeout", extra={**fields, "pool_status": _pool_status(), "error": str(exc)})
        raise
    except Exception:
        logger.exception("http_request_failed", extra=_request_fields(request, request_id, started))
        raise

    fields = _request_fields(request, request_id, started)
    if fields["duration_ms"] >= _SLOW_REQUEST_MS:
        logger.info("slow_request", extra={**fields, "pool_status": _pool_status()})

    if request.url.path not in {"/health", "/healthz"}:
        logger.info("http_request", extra={**fields, "status_code": response.status_code})

    response.headers.setdefault("X-Request-ID", request_id)
    return response
