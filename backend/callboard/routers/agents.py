"""
Agents Router - user/agent assignments

Members read their own assignments; admins manage everyone's in their
company. Changes drop the cached unassigned-agent view.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from callboard.deps import get_user_context
from callboard.models.agents import (
    AssignmentCreateRequest,
    PrimaryUpdateRequest,
    UserAgentAssignment,
)
from callboard.models.context import UserContext
from callboard.services.agent_sync_service import get_agent_sync_service
from callboard.services.assignment_service import get_assignment_service
from callboard.utils.errors import handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("/assignments", response_model=List[UserAgentAssignment])
async def list_assignments(
    user_id: Optional[str] = None,
    ctx: UserContext = Depends(get_user_context)
):
    try:
        return await get_assignment_service().list_assignments(ctx, user_id)
    except Exception as e:
        raise handle_exception(e, "listing assignments", user_id=ctx.user_id, company_id=ctx.company_id)


@router.post("/assignments", response_model=UserAgentAssignment, status_code=201)
async def create_assignment(
    data: AssignmentCreateRequest,
    ctx: UserContext = Depends(get_user_context)
):
    try:
        assignment = await get_assignment_service().create_assignment(
            ctx, data.user_id, data.agent_id, data.is_primary
        )
    except Exception as e:
        raise handle_exception(e, "creating assignment", user_id=ctx.user_id, resource_id=data.agent_id)

    get_agent_sync_service().invalidate()
    return assignment


@router.patch("/assignments/{assignment_id}/primary", response_model=UserAgentAssignment)
async def set_primary_assignment(
    assignment_id: str,
    data: PrimaryUpdateRequest,
    ctx: UserContext = Depends(get_user_context)
):
    """Make this the user's primary agent (any other primary is unset)."""
    try:
        return await get_assignment_service().set_primary(
            ctx, assignment_id, data.user_id, data.is_primary
        )
    except Exception as e:
        raise handle_exception(e, "updating primary assignment", user_id=ctx.user_id, resource_id=assignment_id)


@router.delete("/assignments/{assignment_id}", status_code=204)
async def remove_assignment(
    assignment_id: str,
    ctx: UserContext = Depends(get_user_context)
):
    try:
        await get_assignment_service().remove_assignment(ctx, assignment_id)
    except Exception as e:
        raise handle_exception(e, "removing assignment", user_id=ctx.user_id, resource_id=assignment_id)

    get_agent_sync_service().invalidate()
