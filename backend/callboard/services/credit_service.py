"""
Credit Service

Central service for call credits. Each user has one user_credits row
(balance, thresholds, blocked flag) and an append-only credit_transactions
ledger.

Key principles:
- Check balance BEFORE placing a call
- Charge AFTER the call completes (cost = minutes x agent rate)
- Balance never goes below zero; an account at zero is blocked
- Every balance mutation writes exactly one ledger row
- Writes are compare-and-set on the balance that was read, so two concurrent
  charges cannot both subtract from the same starting balance
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any

from callboard.config import (
    DEFAULT_CRITICAL_THRESHOLD,
    DEFAULT_RATE_PER_MINUTE,
    DEFAULT_WARNING_THRESHOLD,
)
from callboard.database import get_supabase_service
from callboard.inngest.events import Events, send_event
from callboard.models.context import UserContext
from callboard.models.credits import (
    BalanceAdjustmentResult,
    BalanceCheck,
    BalanceLevel,
    BalanceStatus,
    CallCompletion,
    CreditNotification,
    DeductionRequest,
    DeductionResult,
    NotificationLevel,
    TransactionType,
    UserCredits,
)
from callboard.utils.errors import AuthorizationError, ErrorCodes
from callboard.utils.retry import read_retry

logger = logging.getLogger(__name__)

# Re-read/compute/write attempts before giving up on a contended balance row
MAX_CAS_ATTEMPTS = 3

COST_PRECISION = Decimal("0.0001")

CHARGE_FAILED_MESSAGE = "Failed to process call charges. Please contact support."
BALANCE_UNVERIFIED_MESSAGE = "Unable to verify account balance. Please try again."
BLOCKED_MESSAGE = "Account is blocked. Please contact support to reactivate."


def to_decimal(value: Any) -> Decimal:
    """Coerce a numeric column (int, float, str or None) to Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_db(amount: Decimal) -> str:
    """Numeric columns are sent as strings so no precision is lost in JSON."""
    return str(amount)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CreditService:
    """
    Call credit management.

    Usage:
        credit_service = get_credit_service()

        check = await credit_service.check_sufficient_balance(ctx, estimated_cost)
        if not check.allowed:
            raise HTTPException(402, check.message)

        # After the call completes
        result = await credit_service.deduct_credits(ctx, DeductionRequest(...))
    """

    def __init__(self, supabase=None):
        self.supabase = supabase if supabase is not None else get_supabase_service()

    # ==========================================
    # BALANCE READS
    # ==========================================

    @read_retry
    async def get_credits(self, user_id: str) -> Optional[UserCredits]:
        """Read the user's credit row, or None if it does not exist yet."""
        response = self.supabase.table("user_credits").select(
            "user_id, current_balance, warning_threshold, critical_threshold, is_blocked, updated_at"
        ).eq("user_id", user_id).maybe_single().execute()

        if not response or not response.data:
            return None

        data = response.data
        return UserCredits(
            user_id=data["user_id"],
            current_balance=to_decimal(data.get("current_balance")),
            warning_threshold=to_decimal(data.get("warning_threshold", DEFAULT_WARNING_THRESHOLD)),
            critical_threshold=to_decimal(data.get("critical_threshold", DEFAULT_CRITICAL_THRESHOLD)),
            is_blocked=bool(data.get("is_blocked", False)),
            updated_at=data.get("updated_at"),
        )

    async def get_or_create_credits(self, user_id: str) -> UserCredits:
        """Read the credit row, creating an empty (blocked) one on first access."""
        credits = await self.get_credits(user_id)
        if credits is not None:
            return credits

        await self._initialize_credits(user_id)
        credits = await self.get_credits(user_id)
        if credits is None:
            raise LookupError(f"Credit row for user {user_id} could not be created")
        return credits

    async def check_sufficient_balance(
        self,
        ctx: UserContext,
        required_amount: Decimal
    ) -> BalanceCheck:
        """
        Check whether the caller can afford `required_amount`.

        Fails closed: any read error returns allowed=False.
        """
        try:
            credits = await self.get_or_create_credits(ctx.user_id)
        except Exception as e:
            logger.error(f"[CREDITS] Error checking balance for {ctx.user_id}: {e}")
            return BalanceCheck(allowed=False, message=BALANCE_UNVERIFIED_MESSAGE)

        if credits.is_blocked:
            return BalanceCheck(
                allowed=False,
                message=BLOCKED_MESSAGE,
                error_code=ErrorCodes.ACCOUNT_BLOCKED,
                balance=credits.current_balance,
            )

        if credits.current_balance < required_amount:
            return BalanceCheck(
                allowed=False,
                message=(
                    f"Insufficient balance. You need ${required_amount:.2f} "
                    f"but only have ${credits.current_balance:.2f}."
                ),
                error_code=ErrorCodes.INSUFFICIENT_BALANCE,
                balance=credits.current_balance,
            )

        return BalanceCheck(allowed=True, balance=credits.current_balance)

    async def get_balance_status(self, ctx: UserContext) -> Optional[BalanceStatus]:
        """Balance with derived low/critical flags, or None when unavailable."""
        try:
            credits = await self.get_credits(ctx.user_id)
        except Exception as e:
            logger.error(f"[CREDITS] Error fetching balance status: {e}")
            return None

        if credits is None:
            return None

        balance = credits.current_balance
        return BalanceStatus(
            balance=balance,
            is_blocked=credits.is_blocked,
            is_low=balance <= credits.warning_threshold,
            is_critical=balance <= credits.critical_threshold,
            warning_threshold=credits.warning_threshold,
            critical_threshold=credits.critical_threshold,
            status=self.calculate_status(
                balance,
                credits.warning_threshold,
                credits.critical_threshold,
                credits.is_blocked,
            ),
        )

    # ==========================================
    # CHARGES
    # ==========================================

    async def deduct_credits(
        self,
        ctx: UserContext,
        request: DeductionRequest
    ) -> DeductionResult:
        """
        Charge a finished call against the caller's balance.

        Refuses (without touching state) when the account is blocked or the
        balance is below the cost. Errors are reported, never retried.
        """
        try:
            result = await self._charge(
                user_id=ctx.user_id,
                call_id=request.call_id,
                cost=request.cost,
                duration=request.duration,
                allow_overdraft=False,
            )
        except Exception as e:
            logger.error(f"[CREDITS] Error deducting credits for call {request.call_id}: {e}")
            return DeductionResult(
                success=False,
                remaining_balance=Decimal("0"),
                error=CHARGE_FAILED_MESSAGE,
            )

        if result.success:
            logger.info(
                f"[CREDITS] Deducted ${request.cost:.2f} for call {request.call_id}. "
                f"Remaining balance: ${result.remaining_balance:.2f}"
            )
        return result

    async def process_call_completion(self, call: CallCompletion) -> bool:
        """
        Charge a call reported by the provider webhook.

        Only completed calls with a cost are charged. The call has already
        happened, so a cost above the balance drains it to zero and blocks the
        account instead of being refused.
        """
        if call.status != "completed" or call.cost <= 0:
            logger.info(f"[CREDITS] Skipping charge for {call.call_id} - not completed or no cost")
            return True

        try:
            result = await self._charge(
                user_id=call.user_id,
                call_id=call.call_id,
                cost=call.cost,
                duration=call.duration,
                allow_overdraft=True,
            )
        except Exception as e:
            logger.error(f"[CREDITS] Error processing call completion {call.call_id}: {e}")
            return False

        if not result.success:
            logger.warning(f"[CREDITS] Call {call.call_id} not charged: {result.error}")
        return result.success

    async def _charge(
        self,
        user_id: str,
        call_id: str,
        cost: Decimal,
        duration: float,
        allow_overdraft: bool
    ) -> DeductionResult:
        credits: Optional[UserCredits] = None
        new_balance = Decimal("0")

        for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
            credits = await self.get_credits(user_id)
            if credits is None:
                raise LookupError("Failed to fetch current balance")

            if credits.is_blocked:
                return DeductionResult(
                    success=False,
                    remaining_balance=credits.current_balance,
                    error="Account is blocked",
                    error_code=ErrorCodes.ACCOUNT_BLOCKED,
                )

            if credits.current_balance < cost and not allow_overdraft:
                return DeductionResult(
                    success=False,
                    remaining_balance=credits.current_balance,
                    error="Insufficient balance",
                    error_code=ErrorCodes.INSUFFICIENT_BALANCE,
                )

            new_balance = max(credits.current_balance - cost, Decimal("0"))
            if await self._compare_and_set_balance(user_id, credits.current_balance, new_balance):
                break

            logger.warning(
                f"[CREDITS] Balance for {user_id} changed during charge of {call_id} "
                f"(attempt {attempt}/{MAX_CAS_ATTEMPTS})"
            )
        else:
            return DeductionResult(
                success=False,
                remaining_balance=credits.current_balance if credits else Decimal("0"),
                error="Balance changed concurrently",
            )

        await self._log_transaction(
            user_id=user_id,
            amount=-cost,
            transaction_type=TransactionType.CALL_CHARGE,
            balance_after=new_balance,
            description=f"Call charge for {call_id} ({_round_seconds(duration)}s)",
            call_id=call_id,
        )

        should_block = new_balance <= 0
        notification = self.build_notification(new_balance, credits, should_block)
        if notification:
            logger.warning(f"[CREDITS] {notification.level.value} notice for {user_id}: {notification.message}")

        await self._publish_balance_change(user_id, new_balance, should_block)

        return DeductionResult(
            success=True,
            remaining_balance=new_balance,
            notification=notification,
        )

    # ==========================================
    # ADMIN ADJUSTMENTS
    # ==========================================

    async def adjust_balance(
        self,
        ctx: UserContext,
        target_user_id: str,
        amount: Decimal,
        transaction_type: TransactionType = TransactionType.ADJUSTMENT,
        description: Optional[str] = None
    ) -> BalanceAdjustmentResult:
        """
        Admin-initiated balance change.

        - deposit: adds |amount|
        - deduction: subtracts |amount|
        - adjustment: adds the signed amount

        The result is floored at zero and the blocked flag recomputed.
        """
        if not ctx.is_admin:
            raise AuthorizationError("Only administrators can adjust balances")
        if not ctx.is_super_admin:
            self._require_company_member(ctx, target_user_id)
        if transaction_type == TransactionType.CALL_CHARGE:
            raise ValueError("call_charge is reserved for call billing")

        if transaction_type == TransactionType.DEPOSIT:
            delta = abs(amount)
        elif transaction_type == TransactionType.DEDUCTION:
            delta = -abs(amount)
        else:
            delta = amount

        for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
            credits = await self.get_or_create_credits(target_user_id)
            new_balance = max(credits.current_balance + delta, Decimal("0"))
            if await self._compare_and_set_balance(target_user_id, credits.current_balance, new_balance):
                break
            logger.warning(
                f"[CREDITS] Balance for {target_user_id} changed during adjustment "
                f"(attempt {attempt}/{MAX_CAS_ATTEMPTS})"
            )
        else:
            raise RuntimeError("Balance changed concurrently, please retry")

        applied = new_balance - credits.current_balance
        await self._log_transaction(
            user_id=target_user_id,
            amount=applied,
            transaction_type=transaction_type,
            balance_after=new_balance,
            description=description or f"Admin {transaction_type.value} by {ctx.user_id}",
        )
        await self._publish_balance_change(target_user_id, new_balance, new_balance <= 0)

        verb = "Added" if applied >= 0 else "Deducted"
        logger.info(f"[CREDITS] Admin {ctx.user_id} adjusted {target_user_id} by {applied} -> {new_balance}")
        return BalanceAdjustmentResult(
            success=True,
            new_balance=new_balance,
            is_blocked=new_balance <= 0,
            message=f"Balance updated successfully. {verb} ${abs(applied):.2f}",
        )

    # ==========================================
    # PURE HELPERS
    # ==========================================

    @staticmethod
    def estimate_call_cost(
        duration_seconds: float,
        rate_per_minute: Decimal = DEFAULT_RATE_PER_MINUTE
    ) -> Decimal:
        """Cost of a call: minutes x rate, to four decimal places."""
        minutes = Decimal(str(duration_seconds)) / Decimal(60)
        return (minutes * to_decimal(rate_per_minute)).quantize(COST_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def calculate_status(
        balance: Decimal,
        warning_threshold: Decimal,
        critical_threshold: Decimal,
        is_blocked: bool
    ) -> BalanceLevel:
        if is_blocked:
            return BalanceLevel.BLOCKED
        if balance <= 0:
            return BalanceLevel.EMPTY
        if balance <= critical_threshold:
            return BalanceLevel.CRITICAL
        if balance <= warning_threshold:
            return BalanceLevel.WARNING
        return BalanceLevel.HEALTHY

    @staticmethod
    def build_notification(
        new_balance: Decimal,
        credits: UserCredits,
        should_block: bool
    ) -> Optional[CreditNotification]:
        """Pick the alert for a post-charge balance (blocked > critical > warning)."""
        if should_block:
            return CreditNotification(
                level=NotificationLevel.BLOCKED,
                message=(
                    "Your account has been blocked due to insufficient funds. "
                    "Please contact support to recharge."
                ),
            )
        if new_balance <= credits.critical_threshold:
            return CreditNotification(
                level=NotificationLevel.CRITICAL,
                message=(
                    f"Critical balance warning! You have ${new_balance:.2f} remaining. "
                    "Please recharge immediately."
                ),
            )
        if new_balance <= credits.warning_threshold:
            return CreditNotification(
                level=NotificationLevel.WARNING,
                message=(
                    f"Low balance warning! You have ${new_balance:.2f} remaining. "
                    "Consider recharging soon."
                ),
            )
        return None

    # ==========================================
    # WRITES
    # ==========================================

    async def _compare_and_set_balance(
        self,
        user_id: str,
        expected_balance: Decimal,
        new_balance: Decimal
    ) -> bool:
        """
        Write the new balance only if the stored balance is still the one read.

        Returns False when no row matched (another writer got there first).
        """
        response = self.supabase.table("user_credits").update({
            "current_balance": to_db(new_balance),
            "is_blocked": new_balance <= 0,
            "updated_at": _now(),
        }).eq("user_id", user_id).eq("current_balance", to_db(expected_balance)).execute()

        return bool(response.data)

    def _require_company_member(self, ctx: UserContext, target_user_id: str) -> None:
        """Company admins may only touch balances inside their own company."""
        if not ctx.company_id:
            raise AuthorizationError("Balance adjustments require a company context")

        membership = self.supabase.table("company_members").select("user_id").eq(
            "user_id", target_user_id
        ).eq("company_id", ctx.company_id).limit(1).execute()

        if not membership.data:
            logger.warning(
                f"[CREDITS] Admin {ctx.user_id} tried to adjust {target_user_id} outside company {ctx.company_id}"
            )
            raise AuthorizationError("User is not a member of your company")

    async def _initialize_credits(self, user_id: str) -> None:
        """Create an empty credit row. A zero balance starts blocked."""
        try:
            self.supabase.table("user_credits").insert({
                "user_id": user_id,
                "current_balance": to_db(Decimal("0")),
                "warning_threshold": to_db(DEFAULT_WARNING_THRESHOLD),
                "critical_threshold": to_db(DEFAULT_CRITICAL_THRESHOLD),
                "is_blocked": True,
                "updated_at": _now(),
            }).execute()
            logger.info(f"[CREDITS] Initialized credit row for user {user_id}")
        except Exception as e:
            # A concurrent first check may have created it already
            logger.warning(f"[CREDITS] Could not initialize credits for {user_id}: {e}")

    async def _log_transaction(
        self,
        user_id: str,
        amount: Decimal,
        transaction_type: TransactionType,
        balance_after: Decimal,
        description: Optional[str] = None,
        call_id: Optional[str] = None
    ) -> None:
        """Append a ledger row. A failed insert is logged; the balance write stands."""
        try:
            record: Dict[str, Any] = {
                "user_id": user_id,
                "amount": to_db(amount),
                "transaction_type": transaction_type.value,
                "description": description,
                "balance_after": to_db(balance_after),
            }
            if call_id:
                record["call_id"] = call_id

            self.supabase.table("credit_transactions").insert(record).execute()
        except Exception as e:
            logger.error(f"[CREDITS] Failed to create transaction record for {user_id}: {e}")

    async def _publish_balance_change(
        self,
        user_id: str,
        new_balance: Decimal,
        is_blocked: bool
    ) -> None:
        try:
            await send_event(Events.BALANCE_CHANGED, {
                "user_id": user_id,
                "current_balance": to_db(new_balance),
                "is_blocked": is_blocked,
            })
        except Exception as e:
            logger.warning(f"[CREDITS] Could not publish balance change for {user_id}: {e}")


def _round_seconds(duration: float) -> int:
    return int(Decimal(str(duration)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# Singleton instance
_credit_service: Optional[CreditService] = None


def get_credit_service() -> CreditService:
    """Get or create credit service instance."""
    global _credit_service
    if _credit_service is None:
        _credit_service = CreditService()
    return _credit_service
