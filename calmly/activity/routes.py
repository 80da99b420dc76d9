"""Backend activity log routes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from calmly.activity.contracts import Activity, ActivityLogged
from calmly.activity.repository import activity_repo
from calmly.activity.service import ActivityService
from calmly.identity.auth import get_auth_context
from calmly.identity.jwt_service import AuthContext

router = APIRouter(prefix="/api/activity", tags=["activity"])


def get_activity_service() -> ActivityService:
    return ActivityService(activity_repo)


@router.post("", response_model=ActivityLogged, status_code=201)
async def log_activity(
    fields: Dict[str, Any] = Body(...),
    auth: AuthContext = Depends(get_auth_context),
    service: ActivityService = Depends(get_activity_service),
):
    activity = await service.log_activity(auth.user_id, fields)
    return ActivityLogged(data=activity)


@router.get("/today", response_model=List[Activity])
async def today_activities(
    auth: AuthContext = Depends(get_auth_context),
    service: ActivityService = Depends(get_activity_service),
):
    return await service.get_today(auth.user_id)


@router.get("", response_model=List[Activity])
async def list_activities(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    auth: AuthContext = Depends(get_auth_context),
    service: ActivityService = Depends(get_activity_service),
):
    return await service.list_activities(auth.user_id, limit)
