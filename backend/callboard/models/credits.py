"""
Credit Models

Balance rows, ledger entries and the request/response shapes of the credit
deduction pipeline. Amounts are Decimal throughout.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TransactionType(str, Enum):
    """Kind of balance mutation recorded in credit_transactions."""
    DEPOSIT = "deposit"
    DEDUCTION = "deduction"
    ADJUSTMENT = "adjustment"
    CALL_CHARGE = "call_charge"


class BalanceLevel(str, Enum):
    """Display status derived from balance and thresholds."""
    BLOCKED = "blocked"
    EMPTY = "empty"
    CRITICAL = "critical"
    WARNING = "warning"
    HEALTHY = "healthy"


class NotificationLevel(str, Enum):
    """User-facing alert emitted after a deduction."""
    BLOCKED = "blocked"
    CRITICAL = "critical"
    WARNING = "warning"


# ============================================================
# ROWS
# ============================================================

class UserCredits(BaseModel):
    """A row of user_credits."""
    user_id: str
    current_balance: Decimal = Decimal("0")
    warning_threshold: Decimal = Decimal("10.00")
    critical_threshold: Decimal = Decimal("5.00")
    is_blocked: bool = False
    updated_at: Optional[datetime] = None


class CreditTransaction(BaseModel):
    """A row of credit_transactions. Append-only."""
    id: Optional[str] = None
    user_id: str
    amount: Decimal
    transaction_type: TransactionType
    description: Optional[str] = None
    call_id: Optional[str] = None
    balance_after: Decimal
    created_at: Optional[datetime] = None


# ============================================================
# DEDUCTION PIPELINE
# ============================================================

class DeductionRequest(BaseModel):
    """Charge for a single finished call."""
    call_id: str = Field(..., min_length=1)
    cost: Decimal = Field(..., ge=0)
    duration: float = Field(0, ge=0, description="Call duration in seconds")
    agent_id: Optional[str] = None


class CreditNotification(BaseModel):
    level: NotificationLevel
    message: str


class DeductionResult(BaseModel):
    success: bool
    remaining_balance: Decimal
    error: Optional[str] = None
    error_code: Optional[str] = None
    notification: Optional[CreditNotification] = None


class BalanceCheck(BaseModel):
    allowed: bool
    message: Optional[str] = None
    error_code: Optional[str] = None
    balance: Optional[Decimal] = None


class BalanceStatus(BaseModel):
    balance: Decimal
    is_blocked: bool
    is_low: bool
    is_critical: bool
    warning_threshold: Decimal
    critical_threshold: Decimal
    status: BalanceLevel


class CallCompletion(BaseModel):
    """Call-completion payload as delivered by the provider webhook."""
    call_id: str
    user_id: str
    cost: Decimal = Decimal("0")
    duration: float = 0
    agent_id: Optional[str] = None
    status: str


class BalanceAdjustmentRequest(BaseModel):
    """Admin-initiated balance change."""
    user_id: str
    amount: Decimal
    transaction_type: TransactionType = TransactionType.ADJUSTMENT
    description: Optional[str] = Field(None, max_length=500)


class BalanceAdjustmentResult(BaseModel):
    success: bool
    new_balance: Decimal
    is_blocked: bool
    message: str


# ============================================================
# BALANCE VIEW
# ============================================================

class BalanceView(BaseModel):
    """Merged balance + recent activity shown on the dashboard."""
    user_id: str
    company_id: Optional[str] = None
    balance: Decimal
    warning_threshold: Decimal
    critical_threshold: Decimal
    is_blocked: bool
    is_low_balance: bool
    remaining_minutes: int
    transactions: List[CreditTransaction] = []
    fetched_at: datetime
