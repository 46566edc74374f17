"""
Notification Service

Low-balance alerting for administrators.

Aggregation and delivery live in the database:
- get_users_needing_notification(): users at or below thresholds, tagged with
  an alert_level (zero, almost_zero, critical, warning, normal)
- send_low_balance_notifications(): sends the pending alerts, returns
  {success, sent_count, notification_email}

This service keeps the last fetched list, the config row, and the ordering
used for display. It is refreshed by a 5-minute cron and by balance-changed
events (see callboard.inngest.functions.notifications).
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from callboard.database import get_supabase_service
from callboard.models.notifications import (
    ALERT_PRIORITY,
    AlertLevel,
    LowBalanceUser,
    NotificationConfig,
    NotificationConfigUpdate,
    NotificationStats,
    SendNotificationsResult,
)
from callboard.services.credit_service import to_decimal
from callboard.utils.retry import read_retry

logger = logging.getLogger(__name__)

DEFAULT_WARNING_THRESHOLD = Decimal("10")


def alert_priority(level: Any) -> int:
    """zero=4, almost_zero=3, critical=2, warning=1, anything else 0."""
    try:
        return ALERT_PRIORITY[AlertLevel(level)]
    except ValueError:
        return 0


def sort_by_priority(users: List[LowBalanceUser]) -> List[LowBalanceUser]:
    """Most urgent first; ties keep their original order."""
    return sorted(users, key=lambda u: alert_priority(u.alert_level), reverse=True)


class NotificationService:
    """Tracks users below balance thresholds and triggers bulk alerts."""

    def __init__(self, supabase=None):
        self.supabase = supabase if supabase is not None else get_supabase_service()
        self.low_balance_users: List[LowBalanceUser] = []
        self.config: Optional[NotificationConfig] = None
        self.last_check: Optional[datetime] = None

    # ==========================================
    # LOW BALANCE USERS
    # ==========================================

    async def check_low_balance_users(self) -> List[LowBalanceUser]:
        """Fetch users needing notification and remember them."""
        logger.info("[NOTIFICATIONS] Checking low balance users...")

        rows = await self._fetch_users_needing_notification()
        users = [LowBalanceUser(**row) for row in rows]

        self.low_balance_users = users
        self.last_check = datetime.now(timezone.utc)

        logger.info(f"[NOTIFICATIONS] Found {len(users)} users with low balance")
        return users

    @read_retry
    async def _fetch_users_needing_notification(self) -> List[Dict[str, Any]]:
        response = self.supabase.rpc("get_users_needing_notification", {}).execute()
        return response.data or []

    def sorted_users(self) -> List[LowBalanceUser]:
        return sort_by_priority(self.low_balance_users)

    def get_stats(self) -> NotificationStats:
        users = self.low_balance_users
        return NotificationStats(
            total_alerted=len(users),
            zero_balance=sum(
                1 for u in users if u.alert_level in (AlertLevel.ZERO, AlertLevel.ALMOST_ZERO)
            ),
            critical_balance=sum(1 for u in users if u.alert_level == AlertLevel.CRITICAL),
            warning_balance=sum(1 for u in users if u.alert_level == AlertLevel.WARNING),
            last_check=self.last_check,
        )

    # ==========================================
    # DELIVERY
    # ==========================================

    async def send_notifications(self) -> SendNotificationsResult:
        """
        Trigger the bulk notify RPC.

        On success with at least one alert sent, the low-balance list is
        refreshed. Errors are reported in the result, not raised.
        """
        logger.info("[NOTIFICATIONS] Sending notifications...")
        try:
            response = self.supabase.rpc("send_low_balance_notifications", {}).execute()
            data = response.data or {}
            if isinstance(data, list):
                data = data[0] if data else {}

            result = SendNotificationsResult(
                success=bool(data.get("success", False)),
                sent_count=int(data.get("sent_count", 0) or 0),
                notification_email=data.get("notification_email"),
                error=data.get("error"),
            )
        except Exception as e:
            logger.error(f"[NOTIFICATIONS] Error sending notifications: {e}")
            return SendNotificationsResult(success=False, error=str(e))

        if result.success and result.sent_count > 0:
            logger.info(
                f"[NOTIFICATIONS] {result.sent_count} notifications sent to {result.notification_email}"
            )
            await self.check_low_balance_users()
        else:
            logger.info("[NOTIFICATIONS] No pending notifications to send")

        return result

    # ==========================================
    # CONFIG
    # ==========================================

    async def load_config(self) -> Optional[NotificationConfig]:
        response = self.supabase.table("admin_notifications_config").select("*").limit(1).execute()
        rows = response.data or []
        self.config = NotificationConfig(**rows[0]) if rows else None
        return self.config

    async def save_config(self, update: NotificationConfigUpdate) -> NotificationConfig:
        """Merge a partial update into the current config and upsert it."""
        current = self.config or await self.load_config() or NotificationConfig()
        merged = current.model_dump(mode="json", exclude_none=True)
        merged.update(update.model_dump(mode="json", exclude_none=True))
        merged["updated_at"] = datetime.now(timezone.utc).isoformat()

        response = self.supabase.table("admin_notifications_config").upsert(merged).execute()
        rows = response.data or [merged]
        self.config = NotificationConfig(**rows[0])
        logger.info("[NOTIFICATIONS] Configuration saved")
        return self.config

    # ==========================================
    # CHANGE EVENTS
    # ==========================================

    def should_refresh_for_change(self, new_balance: Any) -> bool:
        """A balance change matters when it lands at or below the warning threshold."""
        threshold = self.config.warning_threshold if self.config else DEFAULT_WARNING_THRESHOLD
        return to_decimal(new_balance) <= threshold

    async def refresh_needed_for_change(self, new_balance: Any) -> bool:
        """
        Same check after re-reading admin_notifications_config; on a failed read
        the last known config (or the default) applies.
        """
        try:
            await self.load_config()
        except Exception as e:
            logger.warning(f"[NOTIFICATIONS] Could not load config, using last known threshold: {e}")
        return self.should_refresh_for_change(new_balance)


# Singleton instance
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get or create notification service instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
