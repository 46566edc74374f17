"""
Low-balance notification models.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AlertLevel(str, Enum):
    """Alert level assigned by get_users_needing_notification."""
    ZERO = "zero"
    ALMOST_ZERO = "almost_zero"
    CRITICAL = "critical"
    WARNING = "warning"
    NORMAL = "normal"


ALERT_PRIORITY = {
    AlertLevel.ZERO: 4,
    AlertLevel.ALMOST_ZERO: 3,
    AlertLevel.CRITICAL: 2,
    AlertLevel.WARNING: 1,
    AlertLevel.NORMAL: 0,
}


class LowBalanceUser(BaseModel):
    user_id: str
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    current_balance: Decimal
    # Kept as text: levels the RPC adds later rank as 0 instead of failing the poll
    alert_level: str
    hours_since_last_notification: Optional[float] = None


class NotificationConfig(BaseModel):
    """Row of admin_notifications_config."""
    id: Optional[str] = None
    notification_email: Optional[str] = None
    warning_threshold: Decimal = Decimal("10")
    critical_threshold: Decimal = Decimal("5")
    zero_balance_threshold: Decimal = Decimal("1")
    email_enabled: bool = True
    dashboard_alerts_enabled: bool = True
    notification_frequency_hours: int = Field(24, ge=1)


class NotificationConfigUpdate(BaseModel):
    """Partial update of the notification config."""
    notification_email: Optional[str] = None
    warning_threshold: Optional[Decimal] = Field(None, ge=0)
    critical_threshold: Optional[Decimal] = Field(None, ge=0)
    zero_balance_threshold: Optional[Decimal] = Field(None, ge=0)
    email_enabled: Optional[bool] = None
    dashboard_alerts_enabled: Optional[bool] = None
    notification_frequency_hours: Optional[int] = Field(None, ge=1)


class NotificationStats(BaseModel):
    total_alerted: int
    zero_balance: int
    critical_balance: int
    warning_balance: int
    last_check: Optional[datetime] = None


class SendNotificationsResult(BaseModel):
    success: bool
    sent_count: int = 0
    notification_email: Optional[str] = None
    error: Optional[str] = None
