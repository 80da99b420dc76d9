"""Forward one authenticated call to the backend and translate the outcome.

Success responses are relayed verbatim (status, body, content type). Failures
become ``{"error": message}`` with the backend's status. Unreachable or
stalled backends surface as 502; anything unexpected as a generic 500 whose
detail only reaches the server log.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import Request
from fastapi.responses import Response

from calmly.common.error_envelope import error_json
from calmly.common.errors import UpstreamUnavailable
from calmly.common.response_errors import extract_error_message
from calmly.config import runtime_config
from calmly.identity.credentials import Credential

logger = logging.getLogger(__name__)

# Hop-by-hop and length headers are recomputed by the proxy response.
_RELAYED_HEADERS = ("content-type",)


class UpstreamForwarder:
    def __init__(
        self,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    async def forward(
        self,
        method: str,
        path: str,
        credential: Credential,
        fallback: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Response:
        url = f"{self.base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": credential.authorization,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method, url, headers=headers, json=json, params=params)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out: %s", method, path, exc)
            return error_json(UpstreamUnavailable.default_message, UpstreamUnavailable.status_code)
        except httpx.TransportError as exc:
            logger.warning("%s %s unreachable: %s", method, path, exc)
            return error_json(UpstreamUnavailable.default_message, UpstreamUnavailable.status_code)
        except Exception:
            logger.exception("%s %s failed before a response was received", method, path)
            return error_json(fallback, 500)

        if resp.is_success:
            relayed = {k: v for k, v in resp.headers.items() if k.lower() in _RELAYED_HEADERS}
            return Response(content=resp.content, status_code=resp.status_code, headers=relayed)

        message = extract_error_message(resp, fallback)
        logger.info("%s %s -> %s: %s", method, path, resp.status_code, message)
        return error_json(message, resp.status_code)


def default_forwarder() -> UpstreamForwarder:
    return UpstreamForwarder(
        runtime_config.get_backend_api_url(),
        timeout=runtime_config.get_upstream_timeout(),
    )


def get_forwarder(request: Request) -> UpstreamForwarder:
    forwarder = getattr(request.app.state, "forwarder", None)
    if forwarder is None:
        forwarder = default_forwarder()
        request.app.state.forwarder = forwarder
    return forwarder
