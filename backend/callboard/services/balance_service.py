"""
Balance Service

Read side of the credit system: the dashboard's balance view model.

The view merges two RPCs:
- get_user_credits(target_user_id): balance, thresholds, blocked flag
- get_user_credit_transactions(p_user_id, p_limit): recent ledger rows

Views are cached per (user, company) for five minutes and dropped on any
balance change (admin adjustment here, or a balance-changed event).
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional

from callboard.config import CACHE_TTL_SECONDS, DEFAULT_RATE_PER_MINUTE
from callboard.database import get_supabase_service
from callboard.models.context import UserContext
from callboard.models.credits import (
    BalanceAdjustmentResult,
    BalanceView,
    CreditTransaction,
    TransactionType,
)
from callboard.services.credit_service import CreditService, get_credit_service, to_decimal
from callboard.utils.cache import TTLCache
from callboard.utils.retry import read_retry

logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS_LIMIT = 50


def calculate_remaining_minutes(
    balance: Decimal,
    rate_per_minute: Decimal = DEFAULT_RATE_PER_MINUTE
) -> int:
    """Whole minutes of calling the balance still covers."""
    if balance <= 0 or rate_per_minute <= 0:
        return 0
    return int((balance / rate_per_minute).to_integral_value(rounding=ROUND_FLOOR))


class BalanceService:
    """Balance view model with a staleness window and explicit invalidation."""

    def __init__(
        self,
        supabase=None,
        credit_service: Optional[CreditService] = None,
        cache: Optional[TTLCache] = None
    ):
        self.supabase = supabase if supabase is not None else get_supabase_service()
        self.credit_service = credit_service if credit_service is not None else get_credit_service()
        self.cache = cache if cache is not None else TTLCache(CACHE_TTL_SECONDS)

    async def get_balance_view(self, ctx: UserContext, force_refresh: bool = False) -> BalanceView:
        key = (ctx.user_id, ctx.company_id)
        if not force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        credits = await self._fetch_credits(ctx.user_id)
        transactions = await self._fetch_transactions(ctx.user_id, RECENT_TRANSACTIONS_LIMIT)

        balance = to_decimal(credits.get("current_balance"))
        warning_threshold = to_decimal(credits.get("warning_threshold") or 10)
        critical_threshold = to_decimal(credits.get("critical_threshold") or 5)

        view = BalanceView(
            user_id=ctx.user_id,
            company_id=ctx.company_id,
            balance=balance,
            warning_threshold=warning_threshold,
            critical_threshold=critical_threshold,
            is_blocked=bool(credits.get("is_blocked", False)),
            is_low_balance=balance < warning_threshold,
            remaining_minutes=calculate_remaining_minutes(balance),
            transactions=[_parse_transaction(t, ctx.user_id) for t in transactions],
            fetched_at=datetime.now(timezone.utc),
        )
        self.cache.set(key, view)
        return view

    async def get_transactions(self, ctx: UserContext, limit: int = RECENT_TRANSACTIONS_LIMIT) -> List[CreditTransaction]:
        rows = await self._fetch_transactions(ctx.user_id, limit)
        return [_parse_transaction(t, ctx.user_id) for t in rows]

    def invalidate(self, user_id: Optional[str] = None) -> int:
        """Drop cached views for one user (or all)."""
        if user_id is None:
            return self.cache.invalidate()
        return self.cache.invalidate(lambda key: key[0] == user_id)

    async def adjust_balance(
        self,
        ctx: UserContext,
        target_user_id: str,
        amount: Decimal,
        transaction_type: TransactionType,
        description: Optional[str] = None
    ) -> BalanceAdjustmentResult:
        """Admin balance mutation; the affected user's views are invalidated."""
        result = await self.credit_service.adjust_balance(
            ctx, target_user_id, amount, transaction_type, description
        )
        self.invalidate(target_user_id)
        return result

    @read_retry
    async def _fetch_credits(self, user_id: str) -> Dict[str, Any]:
        response = self.supabase.rpc("get_user_credits", {"target_user_id": user_id}).execute()
        data = response.data
        # Set-returning functions come back as a list
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            logger.warning(f"[BALANCE] No credit data returned for user {user_id}")
            return {}
        return data

    @read_retry
    async def _fetch_transactions(self, user_id: str, limit: int) -> List[Dict[str, Any]]:
        response = self.supabase.rpc(
            "get_user_credit_transactions",
            {"p_user_id": user_id, "p_limit": limit}
        ).execute()
        return response.data or []


def _parse_transaction(row: Dict[str, Any], user_id: str) -> CreditTransaction:
    return CreditTransaction(
        id=str(row["id"]) if row.get("id") is not None else None,
        user_id=row.get("user_id") or user_id,
        amount=to_decimal(row.get("amount")),
        transaction_type=row.get("transaction_type", TransactionType.ADJUSTMENT.value),
        description=row.get("description"),
        call_id=row.get("call_id"),
        balance_after=to_decimal(row.get("balance_after")),
        created_at=row.get("created_at"),
    )


# Singleton instance
_balance_service: Optional[BalanceService] = None


def get_balance_service() -> BalanceService:
    """Get or create balance service instance."""
    global _balance_service
    if _balance_service is None:
        _balance_service = BalanceService()
    return _balance_service
