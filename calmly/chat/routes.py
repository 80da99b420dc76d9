"""Backend chat session routes."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from calmly.chat.contracts import (
    CreateSessionResponse,
    Message,
    SendMessageRequest,
    SendMessageResponse,
    Session,
    SessionSummary,
)
from calmly.chat.service import ChatService
from calmly.chat.state import session_repo
from calmly.identity.auth import get_auth_context
from calmly.identity.jwt_service import AuthContext

router = APIRouter(prefix="/chat", tags=["chat"])


def get_chat_service() -> ChatService:
    return ChatService(session_repo)


@router.post("/sessions", response_model=CreateSessionResponse, status_code=201)
async def create_session(
    auth: AuthContext = Depends(get_auth_context),
    service: ChatService = Depends(get_chat_service),
):
    session = await service.create_session(auth.user_id)
    return CreateSessionResponse(sessionId=session.sessionId)


@router.get("/sessions", response_model=List[SessionSummary])
async def list_sessions(
    auth: AuthContext = Depends(get_auth_context),
    service: ChatService = Depends(get_chat_service),
):
    return await service.list_sessions(auth.user_id)


@router.get("/sessions/{session_id}", response_model=Session)
async def get_session(
    session_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: ChatService = Depends(get_chat_service),
):
    return await service.get_session(auth.user_id, session_id)


@router.post("/sessions/{session_id}/messages", response_model=SendMessageResponse)
async def send_message(
    session_id: str,
    payload: SendMessageRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: ChatService = Depends(get_chat_service),
):
    return await service.send_message(auth.user_id, session_id, payload.message)


@router.get("/sessions/{session_id}/history", response_model=List[Message])
async def get_history(
    session_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: ChatService = Depends(get_chat_service),
):
    return await service.history(auth.user_id, session_id)
