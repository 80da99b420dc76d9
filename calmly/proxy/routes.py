"""Edge proxy handlers, one per client operation.

Every handler is stateless: resolve the caller's credential, reject with 401
before touching the backend when it is missing, otherwise forward.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from calmly.common.error_envelope import error_json
from calmly.identity.credentials import Credential, default_credential_source
from calmly.proxy.forwarder import UpstreamForwarder, get_forwarder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["proxy"])

MISSING_CREDENTIAL = "Authorization header is required"


def _credential(request: Request) -> Optional[Credential]:
    return default_credential_source.from_request(request)


def _unauthenticated() -> Response:
    return error_json(MISSING_CREDENTIAL, 401)


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


@router.post("/chat")
async def create_chat_session(request: Request, forwarder: UpstreamForwarder = Depends(get_forwarder)):
    credential = _credential(request)
    if credential is None:
        return _unauthenticated()
    return await forwarder.forward("POST", "/chat/sessions", credential, fallback="Failed to create chat session")


@router.get("/chat/sessions")
async def list_chat_sessions(request: Request, forwarder: UpstreamForwarder = Depends(get_forwarder)):
    credential = _credential(request)
    if credential is None:
        return _unauthenticated()
    return await forwarder.forward("GET", "/chat/sessions", credential, fallback="Failed to fetch chat sessions")


@router.post("/chat/sessions/{session_id}")
async def send_chat_message(
    session_id: str,
    request: Request,
    forwarder: UpstreamForwarder = Depends(get_forwarder),
):
    credential = _credential(request)
    if credential is None:
        return _unauthenticated()
    body = await _json_body(request)
    # Accept {"message": "..."} as well as a bare JSON string.
    message = body.get("message") if isinstance(body, dict) else body
    if not isinstance(message, str) or not message.strip():
        return error_json("Message is required", 400)
    return await forwarder.forward(
        "POST",
        f"/chat/sessions/{session_id}/messages",
        credential,
        fallback="Failed to send chat message",
        json={"message": message},
    )


@router.get("/chat/sessions/{session_id}")
async def get_chat_session(
    session_id: str,
    request: Request,
    forwarder: UpstreamForwarder = Depends(get_forwarder),
):
    credential = _credential(request)
    if credential is None:
        return _unauthenticated()
    return await forwarder.forward(
        "GET", f"/chat/sessions/{session_id}", credential, fallback="Failed to fetch chat session"
    )


@router.get("/chat/sessions/{session_id}/history")
async def get_chat_history(
    session_id: str,
    request: Request,
    forwarder: UpstreamForwarder = Depends(get_forwarder),
):
    credential = _credential(request)
    if credential is None:
        return _unauthenticated()
    return await forwarder.forward(
        "GET", f"/chat/sessions/{session_id}/history", credential, fallback="Failed to fetch chat history"
    )


@router.post("/activity")
async def log_activity(request: Request, forwarder: UpstreamForwarder = Depends(get_forwarder)):
    credential = _credential(request)
    if credential is None:
        return _unauthenticated()
    body = await _json_body(request)
    if not isinstance(body, dict):
        return error_json("Activity fields are required", 400)
    return await forwarder.forward("POST", "/api/activity", credential, fallback="Failed to log activity", json=body)


@router.get("/activity/today")
async def today_activities(request: Request, forwarder: UpstreamForwarder = Depends(get_forwarder)):
    credential = _credential(request)
    if credential is None:
        return _unauthenticated()
    return await forwarder.forward(
        "GET", "/api/activity/today", credential, fallback="Failed to fetch today's activities"
    )


@router.get("/activities")
async def list_activities(
    request: Request,
    limit: Optional[int] = Query(default=None),
    forwarder: UpstreamForwarder = Depends(get_forwarder),
):
    credential = _credential(request)
    if credential is None:
        return _unauthenticated()
    params = {"limit": limit} if limit is not None else None
    return await forwarder.forward(
        "GET", "/api/activity", credential, fallback="Failed to fetch activity", params=params
    )
