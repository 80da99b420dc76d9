"""Canonical error envelope for all Calmly responses.

Standardized structure:
{
  "error": "human readable message"
}

The HTTP status code of the response carries the failure class.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from calmly.common.errors import CalmlyError, InternalError

logger = logging.getLogger(__name__)


class ErrorEnvelope(BaseModel):
    """Top-level error envelope returned by every endpoint."""
    error: str


def build_error_envelope(message: str) -> ErrorEnvelope:
    return ErrorEnvelope(error=message or InternalError.default_message)


def error_json(message: str, status_code: int, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Envelope wrapped in a JSONResponse with the given status."""
    envelope = build_error_envelope(message)
    return JSONResponse(content=envelope.model_dump(), status_code=status_code, headers=headers)


def error_response(message: str, status_code: int = 400) -> HTTPException:
    """Construct a standardized HTTPException; callers ``raise`` it."""
    return HTTPException(status_code=status_code, detail=build_error_envelope(message).model_dump())


def _detail_message(detail: Any) -> str:
    if isinstance(detail, dict):
        if isinstance(detail.get("error"), str):
            return detail["error"]
        if isinstance(detail.get("message"), str):
            return detail["message"]
    if detail:
        return str(detail)
    return "HTTP exception"


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_json(_detail_message(exc.detail), exc.status_code, headers=getattr(exc, "headers", None))


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    reason = first.get("msg", "Validation failed")
    message = f"{location}: {reason}" if location else reason
    return error_json(message, 400)


async def _calmly_exception_handler(request: Request, exc: CalmlyError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_json(exc.message, exc.status_code)


async def _generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_json(InternalError.default_message, 500)


def register_error_handlers(target_app: FastAPI) -> None:
    target_app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    target_app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    target_app.add_exception_handler(CalmlyError, _calmly_exception_handler)
    target_app.add_exception_handler(Exception, _generic_exception_handler)
