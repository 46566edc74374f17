"""
Admin Notifications Router
==========================

Low-balance alert list, bulk send and alert configuration.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from callboard.deps import get_super_admin_user
from callboard.models.context import UserContext
from callboard.models.notifications import (
    LowBalanceUser,
    NotificationConfig,
    NotificationConfigUpdate,
    NotificationStats,
    SendNotificationsResult,
)
from callboard.services.notification_service import get_notification_service
from callboard.utils.errors import handle_exception

router = APIRouter(prefix="/notifications", tags=["admin-notifications"])


class LowBalanceResponse(BaseModel):
    users: List[LowBalanceUser]
    stats: NotificationStats


@router.get("/low-balance", response_model=LowBalanceResponse)
async def list_low_balance_users(
    refresh: bool = False,
    admin: UserContext = Depends(get_super_admin_user)
):
    """Users needing an alert, most urgent first."""
    service = get_notification_service()
    try:
        if refresh or service.last_check is None:
            await service.check_low_balance_users()
    except Exception as e:
        raise handle_exception(e, "loading low balance users", user_id=admin.user_id)

    return LowBalanceResponse(users=service.sorted_users(), stats=service.get_stats())


@router.post("/send", response_model=SendNotificationsResult)
async def send_notifications(admin: UserContext = Depends(get_super_admin_user)):
    return await get_notification_service().send_notifications()


@router.get("/config", response_model=Optional[NotificationConfig])
async def get_notification_config(admin: UserContext = Depends(get_super_admin_user)):
    try:
        return await get_notification_service().load_config()
    except Exception as e:
        raise handle_exception(e, "loading notification config", user_id=admin.user_id)


@router.put("/config", response_model=NotificationConfig)
async def update_notification_config(
    data: NotificationConfigUpdate,
    admin: UserContext = Depends(get_super_admin_user)
):
    try:
        return await get_notification_service().save_config(data)
    except Exception as e:
        raise handle_exception(e, "saving notification config", user_id=admin.user_id)
