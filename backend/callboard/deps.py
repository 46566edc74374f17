"""
Request dependencies: authentication and caller context.

The bearer token is a Supabase access token; it is verified against Supabase
auth and the caller's company/role are read from company_members. Services
receive the result as an explicit UserContext.
"""

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from callboard.database import get_supabase_service
from callboard.models.context import UserContext

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)
) -> dict:
    """Verify the bearer token; returns {"sub": user_id, "email": ...}."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    supabase = get_supabase_service()
    try:
        response = supabase.auth.get_user(credentials.credentials)
    except Exception as e:
        logger.warning(f"[AUTH] Token verification failed: {e}")
        response = None

    user = getattr(response, "user", None)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"sub": user.id, "email": getattr(user, "email", None)}


def _resolve_super_admin(supabase, user_id: str) -> bool:
    """Platform-wide admin flag from the is_super_admin RPC; errors deny."""
    try:
        response = supabase.rpc("is_super_admin", {"check_user_id": user_id}).execute()
    except Exception as e:
        logger.warning(f"[AUTH] Super admin check failed for {user_id}: {e}")
        return False
    return response.data is True


async def get_user_context(current_user: dict = Depends(get_current_user)) -> UserContext:
    """Resolve company membership, role and super admin status for the authenticated user."""
    user_id = current_user["sub"]
    supabase = get_supabase_service()

    super_admin = _resolve_super_admin(supabase, user_id)
    membership = supabase.table("company_members").select(
        "company_id, role"
    ).eq("user_id", user_id).limit(1).execute()

    if not membership.data:
        return UserContext(user_id=user_id, super_admin=super_admin)

    row = membership.data[0]
    return UserContext(
        user_id=user_id,
        company_id=row.get("company_id"),
        role=row.get("role") or "member",
        super_admin=super_admin,
    )


async def get_super_admin_user(ctx: UserContext = Depends(get_user_context)) -> UserContext:
    """Platform operators only: balance adjustments, system-wide alerts, agent sync."""
    if not ctx.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Super admin access required")
    return ctx
