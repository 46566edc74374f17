"""
Low-Balance Notification Functions

- every 5 minutes: refresh the list of users needing a low-balance alert
- on callboard/credits.balance.changed: drop the user's cached balance view
  and refresh the list when the new balance is at or below the warning
  threshold (debounced per user so a burst of charges triggers one refresh)
"""

import logging
from datetime import timedelta

import inngest
from inngest import TriggerCron, TriggerEvent

from callboard.inngest.client import inngest_client
from callboard.inngest.events import Events
from callboard.services.balance_service import get_balance_service
from callboard.services.notification_service import get_notification_service

logger = logging.getLogger(__name__)


async def _refresh_low_balance_users() -> dict:
    service = get_notification_service()
    await service.check_low_balance_users()
    return service.get_stats().model_dump(mode="json")


@inngest_client.create_function(
    fn_id="low-balance-check",
    trigger=TriggerCron(cron="*/5 * * * *"),  # Every 5 minutes
    retries=1,
)
async def low_balance_check_fn(ctx, step):
    """Periodic refresh of the low-balance list."""
    stats = await step.run("check-low-balance-users", _refresh_low_balance_users)
    logger.info(f"[NOTIFICATIONS] Periodic check: {stats.get('total_alerted', 0)} users flagged")
    return {"status": "ok", "stats": stats}


@inngest_client.create_function(
    fn_id="balance-changed",
    trigger=TriggerEvent(event=Events.BALANCE_CHANGED),
    debounce=inngest.Debounce(period=timedelta(seconds=1), key="event.data.user_id"),
    retries=1,
)
async def balance_changed_fn(ctx, step):
    """React to a balance write."""
    user_id = ctx.event.data.get("user_id")
    new_balance = ctx.event.data.get("current_balance")

    if user_id:
        get_balance_service().invalidate(user_id)

    service = get_notification_service()
    if not await service.refresh_needed_for_change(new_balance):
        return {"status": "skipped", "user_id": user_id}

    stats = await step.run("refresh-low-balance-users", _refresh_low_balance_users)
    return {"status": "refreshed", "user_id": user_id, "stats": stats}
