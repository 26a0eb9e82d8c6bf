"""Map failures to the ``{"success": false, "error", "code"}`` envelope."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scenesync.collab.errors import CollabError

LOGGER = logging.getLogger(__name__)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get(
        "X-Request-ID"
    )


def error_response(
    request: Request,
    *,
    status: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": message, "code": code}
    if details is not None:
        body["details"] = details
    rid = _request_id(request)
    if rid:
        body["request_id"] = rid
    return JSONResponse(body, status_code=status)


async def _collab_error(request: Request, exc: CollabError) -> JSONResponse:
    if exc.status_code >= 500:
        LOGGER.warning("%s failed: %s", request.url.path, exc)
    return error_response(
        request,
        status=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(
        request,
        status=exc.status_code,
        code=f"http_{exc.status_code}",
        message=str(exc.detail or "Request failed"),
    )


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()
    ]
    return error_response(
        request,
        status=422,
        code="validation_error",
        message="Request validation failed",
        details=details,
    )


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    error_id = uuid.uuid4().hex
    LOGGER.error(
        "Unhandled exception [%s] on %s", error_id, request.url.path, exc_info=exc
    )
    return error_response(
        request,
        status=500,
        code="internal_error",
        message="Internal server error",
        details={"error_id": error_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CollabError, _collab_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.add_exception_handler(Exception, _unhandled)
