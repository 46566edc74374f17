"""
Admin Agents Router
===================

Retell agent synchronization and the unassigned-agent pool.
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from callboard.deps import get_super_admin_user
from callboard.inngest.events import Events, send_event
from callboard.models.agents import Agent, SyncStats
from callboard.models.context import UserContext
from callboard.services.agent_sync_service import get_agent_sync_service
from callboard.utils.errors import handle_exception

router = APIRouter(prefix="/agents", tags=["admin-agents"])


class SyncQueuedResponse(BaseModel):
    queued: bool = True
    message: str


@router.post("/sync", response_model=SyncStats)
async def sync_agents(admin: UserContext = Depends(get_super_admin_user)):
    """Run a sync now and return the finished run's counters."""
    try:
        return await get_agent_sync_service().sync_now()
    except Exception as e:
        raise handle_exception(e, "agent_sync", user_id=admin.user_id)


@router.post("/sync/background", response_model=SyncQueuedResponse, status_code=202)
async def queue_agent_sync(admin: UserContext = Depends(get_super_admin_user)):
    """Queue a sync to run in the background."""
    try:
        await send_event(Events.AGENT_SYNC_REQUESTED, {"requested_by": admin.user_id})
    except Exception as e:
        raise handle_exception(e, "queueing agent_sync", user_id=admin.user_id)
    return SyncQueuedResponse(message="Agent sync queued")


@router.get("/sync-stats", response_model=List[SyncStats])
async def get_sync_stats(
    limit: int = Query(10, ge=1, le=100),
    admin: UserContext = Depends(get_super_admin_user)
):
    try:
        return await get_agent_sync_service().get_sync_stats(limit=limit)
    except Exception as e:
        raise handle_exception(e, "loading sync stats", user_id=admin.user_id)


@router.get("/unassigned", response_model=List[Agent])
async def get_unassigned_agents(admin: UserContext = Depends(get_super_admin_user)):
    try:
        return await get_agent_sync_service().get_unassigned_agents()
    except Exception as e:
        raise handle_exception(e, "loading unassigned agents", user_id=admin.user_id)
