"""
Admin Credits Router
====================

Manual balance adjustments (deposit / deduction / adjustment).
"""

from fastapi import APIRouter, Depends

from callboard.deps import get_super_admin_user
from callboard.models.context import UserContext
from callboard.models.credits import (
    BalanceAdjustmentRequest,
    BalanceAdjustmentResult,
    TransactionType,
)
from callboard.services.balance_service import get_balance_service
from callboard.utils.errors import handle_exception, raise_validation_error

router = APIRouter(prefix="/credits", tags=["admin-credits"])


@router.post("/adjust", response_model=BalanceAdjustmentResult)
async def adjust_user_balance(
    data: BalanceAdjustmentRequest,
    admin: UserContext = Depends(get_super_admin_user)
):
    """Apply an admin balance change; the user's cached balance view is dropped."""
    if data.transaction_type == TransactionType.CALL_CHARGE:
        raise_validation_error("call_charge is reserved for call billing", field="transaction_type")
    if data.amount == 0:
        raise_validation_error("Amount must be non-zero", field="amount")

    try:
        return await get_balance_service().adjust_balance(
            admin,
            data.user_id,
            data.amount,
            data.transaction_type,
            data.description,
        )
    except Exception as e:
        raise handle_exception(e, "credit_adjust", user_id=admin.user_id, resource_id=data.user_id)
