"""
Credits Router - Call credit balance and charging API

Endpoints for the balance dashboard and for the call pipeline:
check before dialing, deduct after the call, estimate a call's cost.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from callboard.config import DEFAULT_RATE_PER_MINUTE
from callboard.deps import get_user_context
from callboard.models.context import UserContext
from callboard.models.credits import (
    BalanceCheck,
    BalanceStatus,
    BalanceView,
    CreditTransaction,
    DeductionRequest,
    DeductionResult,
)
from callboard.services.balance_service import get_balance_service
from callboard.services.credit_service import get_credit_service
from callboard.utils.errors import handle_exception, raise_not_found

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credits", tags=["credits"])


# =============================================================================
# Request / Response Models
# =============================================================================

class BalanceCheckRequest(BaseModel):
    """Amount the caller is about to spend."""
    amount: Decimal = Field(..., ge=0, description="Estimated cost in dollars")


class CostEstimateResponse(BaseModel):
    duration_seconds: float
    rate_per_minute: Decimal
    estimated_cost: Decimal

    class Config:
        json_schema_extra = {
            "example": {
                "duration_seconds": 90,
                "rate_per_minute": "0.02",
                "estimated_cost": "0.0300"
            }
        }


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/balance", response_model=BalanceView)
async def get_balance(
    refresh: bool = False,
    ctx: UserContext = Depends(get_user_context)
):
    """
    Balance view for the dashboard.

    Served from a 5-minute cache unless `refresh=true`.
    """
    try:
        return await get_balance_service().get_balance_view(ctx, force_refresh=refresh)
    except Exception as e:
        raise handle_exception(e, "fetching balance", user_id=ctx.user_id, company_id=ctx.company_id)


@router.get("/status", response_model=BalanceStatus)
async def get_balance_status(ctx: UserContext = Depends(get_user_context)):
    status = await get_credit_service().get_balance_status(ctx)
    if status is None:
        raise_not_found("Credit balance", ctx.user_id)
    return status


@router.get("/transactions", response_model=List[CreditTransaction])
async def get_transactions(
    limit: int = Query(50, ge=1, le=200),
    ctx: UserContext = Depends(get_user_context)
):
    """Most recent ledger rows, newest first."""
    try:
        return await get_balance_service().get_transactions(ctx, limit=limit)
    except Exception as e:
        raise handle_exception(e, "fetching transactions", user_id=ctx.user_id, company_id=ctx.company_id)


@router.post("/check", response_model=BalanceCheck)
async def check_balance(
    data: BalanceCheckRequest,
    ctx: UserContext = Depends(get_user_context)
):
    """Can the caller afford `amount`? Fails closed."""
    return await get_credit_service().check_sufficient_balance(ctx, data.amount)


@router.post("/deduct", response_model=DeductionResult)
async def deduct_credits(
    data: DeductionRequest,
    ctx: UserContext = Depends(get_user_context)
):
    """
    Charge a completed call.

    A refused or failed charge is reported in the body (`success=false`),
    the balance is left untouched in that case.
    """
    result = await get_credit_service().deduct_credits(ctx, data)
    if result.success:
        get_balance_service().invalidate(ctx.user_id)
    return result


@router.get("/estimate", response_model=CostEstimateResponse)
async def estimate_cost(
    duration_seconds: float = Query(..., ge=0),
    rate_per_minute: Optional[Decimal] = Query(None, ge=0),
    ctx: UserContext = Depends(get_user_context)
):
    rate = rate_per_minute if rate_per_minute is not None else DEFAULT_RATE_PER_MINUTE
    return CostEstimateResponse(
        duration_seconds=duration_seconds,
        rate_per_minute=rate,
        estimated_cost=get_credit_service().estimate_call_cost(duration_seconds, rate),
    )
