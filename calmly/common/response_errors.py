"""Turn a non-success HTTP response into a single human-readable message.

Used on both sides of the proxy: the proxy normalizes backend failures into
``{"error": message}`` and the client normalizes proxy failures into a
``CalmlyError``. Structured (JSON) bodies use ``error`` then ``message``;
anything else gets a message built from the status line.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


def is_json_response(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type") or ""
    return "application/json" in content_type.lower()


def _pick_message(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    for key in ("error", "message"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value
        # Nested envelopes such as {"error": {"message": "..."}}
        if isinstance(value, dict):
            nested = value.get("message")
            if isinstance(nested, str) and nested.strip():
                return nested
    return None


def status_line_message(response: httpx.Response, fallback: str) -> str:
    reason = response.reason_phrase or ""
    return f"{fallback}: {response.status_code} {reason}".rstrip()


def extract_error_message(response: httpx.Response, fallback: str) -> str:
    """Message for a failed response; never raises on a malformed body."""
    if is_json_response(response):
        try:
            body = response.json()
        except ValueError:
            logger.warning("Declared JSON error body could not be parsed (status=%s)", response.status_code)
            return status_line_message(response, fallback)
        return _pick_message(body) or fallback
    logger.debug("Non-JSON error body (status=%s): %s", response.status_code, response.text[:100])
    return status_line_message(response, fallback)
