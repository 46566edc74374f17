"""
Assignment Service

Links users to the agents they may call through. A user can hold several
assignments; at most one of them is primary.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from callboard.database import get_supabase_service
from callboard.models.agents import UserAgentAssignment
from callboard.models.context import UserContext
from callboard.utils.errors import AuthorizationError, NotFoundError
from callboard.utils.retry import read_retry

logger = logging.getLogger(__name__)


class AssignmentService:
    """CRUD over user_agent_assignments with the single-primary rule."""

    def __init__(self, supabase=None):
        self.supabase = supabase if supabase is not None else get_supabase_service()

    async def list_assignments(
        self,
        ctx: UserContext,
        user_id: Optional[str] = None
    ) -> List[UserAgentAssignment]:
        """Admins may list anyone in their company; members only themselves."""
        target = user_id or (None if ctx.is_admin else ctx.user_id)
        if target and target != ctx.user_id and not ctx.is_admin:
            raise AuthorizationError("Cannot view another user's assignments")

        return await self._fetch_assignments(target, None if ctx.is_super_admin else ctx.company_id)

    @read_retry
    async def _fetch_assignments(
        self,
        user_id: Optional[str],
        company_id: Optional[str]
    ) -> List[UserAgentAssignment]:
        query = self.supabase.table("user_agent_assignments").select("*")
        if user_id:
            query = query.eq("user_id", user_id)
        if company_id:
            query = query.eq("company_id", company_id)

        response = query.order("assigned_at", desc=True).execute()
        return [UserAgentAssignment(**row) for row in (response.data or [])]

    async def create_assignment(
        self,
        ctx: UserContext,
        user_id: str,
        agent_id: str,
        is_primary: bool = False
    ) -> UserAgentAssignment:
        self._require_admin(ctx)

        agent = self.supabase.table("agents").select("id").eq(
            "id", agent_id
        ).maybe_single().execute()
        if not agent or not agent.data:
            raise NotFoundError("Agent", agent_id)

        if is_primary:
            self._unset_primary(user_id)

        response = self.supabase.table("user_agent_assignments").insert({
            "user_id": user_id,
            "agent_id": agent_id,
            "company_id": ctx.company_id,
            "is_primary": is_primary,
            "assigned_at": datetime.now(timezone.utc).isoformat(),
        }).execute()

        logger.info(f"[ASSIGNMENTS] Agent {agent_id} assigned to user {user_id} (primary={is_primary})")
        return UserAgentAssignment(**response.data[0])

    async def set_primary(
        self,
        ctx: UserContext,
        assignment_id: str,
        user_id: str,
        is_primary: bool = True
    ) -> UserAgentAssignment:
        """Mark an assignment primary; every other primary of the user is unset first."""
        self._require_admin(ctx)
        self._get_assignment(assignment_id, user_id)

        if is_primary:
            self._unset_primary(user_id)

        response = self.supabase.table("user_agent_assignments").update({
            "is_primary": is_primary
        }).eq("id", assignment_id).execute()

        logger.info(f"[ASSIGNMENTS] Primary status updated for assignment {assignment_id}")
        return UserAgentAssignment(**response.data[0])

    async def remove_assignment(self, ctx: UserContext, assignment_id: str) -> None:
        self._require_admin(ctx)
        self._get_assignment(assignment_id)

        self.supabase.table("user_agent_assignments").delete().eq("id", assignment_id).execute()
        logger.info(f"[ASSIGNMENTS] Assignment {assignment_id} removed")

    def _get_assignment(self, assignment_id: str, user_id: Optional[str] = None) -> dict:
        query = self.supabase.table("user_agent_assignments").select("*").eq("id", assignment_id)
        if user_id:
            query = query.eq("user_id", user_id)
        response = query.maybe_single().execute()
        if not response or not response.data:
            raise NotFoundError("Assignment", assignment_id)
        return response.data

    def _unset_primary(self, user_id: str) -> None:
        self.supabase.table("user_agent_assignments").update({
            "is_primary": False
        }).eq("user_id", user_id).eq("is_primary", True).execute()

    @staticmethod
    def _require_admin(ctx: UserContext) -> None:
        if not ctx.is_admin:
            raise AuthorizationError("Admin access required to manage agent assignments")


# Singleton instance
_assignment_service: Optional[AssignmentService] = None


def get_assignment_service() -> AssignmentService:
    """Get or create assignment service instance."""
    global _assignment_service
    if _assignment_service is None:
        _assignment_service = AssignmentService()
    return _assignment_service
