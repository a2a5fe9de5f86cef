"""Payment confirmation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fastapi_parcelflow.dependencies import get_flow
from fastapi_parcelflow.schemas import PaymentConfirmationResponse

router = APIRouter()


@router.patch("/payment-success", response_model=PaymentConfirmationResponse)
async def payment_success(
    session_id: str = Query(min_length=1),
    flow=Depends(get_flow),
) -> PaymentConfirmationResponse:
    """Settle a checkout session. Safe to call any number of times."""
    result = await flow.confirm_payment(session_id)
    return PaymentConfirmationResponse.from_result(result)
