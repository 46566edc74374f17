"""
Admin Panel Routers
===================

This module contains all admin panel endpoints for Callboard.
All routes require platform super admin status (is_super_admin RPC);
company owners and admins are not admins here.

Routers:
- credits: manual balance adjustments
- notifications: low-balance alerts and their configuration
- agents: Retell agent sync and unassigned agents
"""

from fastapi import APIRouter

# Import sub-routers
from .credits import router as credits_router
from .notifications import router as notifications_router
from .agents import router as agents_router

# Create main admin router
router = APIRouter(prefix="/admin", tags=["admin"])

# Include all sub-routers
router.include_router(credits_router)
router.include_router(notifications_router)
router.include_router(agents_router)

__all__ = ["router"]
