"""
Exception handlers mapping the error taxonomy to HTTP responses.

Body: {"success": false, "error": {id, message, code, status, timestamp}}.
The traceback is attached only outside production.
"""

from __future__ import annotations

import logging
import traceback
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.exceptions import ResponsaError
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


def error_body(exc: Exception, code: str, status: int, message: str) -> dict:
    error = {
        "id": uuid.uuid4().hex,
        "message": message,
        "code": code,
        "status": status,
        "timestamp": utcnow().isoformat(),
    }
    if not get_settings().is_production:
        error["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return {"success": False, "error": error}


async def handle_responsa_error(request: Request, exc: ResponsaError) -> JSONResponse:
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(level, "%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc, exc.code, exc.status_code, exc.message),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body(exc, "INTERNAL_ERROR", 500, "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ResponsaError, handle_responsa_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
