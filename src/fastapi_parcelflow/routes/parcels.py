"""Parcel endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fastapi_parcelflow.dependencies import get_flow
from fastapi_parcelflow.schemas import (
    AssignResponse,
    AssignRiderRequest,
    CheckoutSessionResponse,
    CreateParcelRequest,
    CreateParcelResponse,
    ParcelResponse,
    StatusResponse,
    UpdateResultResponse,
    UpdateStatusRequest,
)

router = APIRouter()


@router.get("/parcels/health")
async def parcels_health() -> dict[str, str]:
    """Healthcheck endpoint for parcel routes."""
    return {"status": "ok"}


@router.post("/parcels", response_model=CreateParcelResponse)
async def create_parcel(
    body: CreateParcelRequest,
    flow=Depends(get_flow),
) -> CreateParcelResponse:
    """Create a parcel and log ``parcel_created``."""
    result = await flow.create_parcel(**body.model_dump())
    return CreateParcelResponse(
        parcel=ParcelResponse.from_parcel(result.parcel),
        tracking_id=result.tracking_id,
    )


@router.patch("/parcels/{parcel_id}/assign", response_model=AssignResponse)
async def assign_rider(
    parcel_id: str,
    body: AssignRiderRequest,
    flow=Depends(get_flow),
) -> AssignResponse:
    result = await flow.assign_rider(
        parcel_id,
        body.rider_id,
        rider_email=body.rider_email,
        rider_name=body.rider_name,
    )
    return AssignResponse(
        parcel=UpdateResultResponse.from_result(result.parcel_update),
        rider=UpdateResultResponse.from_result(result.rider_update),
    )


@router.patch("/parcels/{parcel_id}/status", response_model=StatusResponse)
async def update_status(
    parcel_id: str,
    body: UpdateStatusRequest,
    flow=Depends(get_flow),
) -> StatusResponse:
    """Set the delivery status; ``parcel_delivered`` frees the rider."""
    result = await flow.set_status(
        parcel_id, body.delivery_status, rider_id=body.rider_id
    )
    rider = None
    if result.rider_update is not None:
        rider = UpdateResultResponse.from_result(result.rider_update)
    return StatusResponse(
        parcel=UpdateResultResponse.from_result(result.parcel_update),
        rider=rider,
    )


@router.post(
    "/parcels/{parcel_id}/checkout-session",
    response_model=CheckoutSessionResponse,
)
async def create_checkout_session(
    parcel_id: str,
    flow=Depends(get_flow),
) -> CheckoutSessionResponse:
    url = await flow.create_checkout_session(parcel_id)
    return CheckoutSessionResponse(url=url)
