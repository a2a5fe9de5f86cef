"""Rider endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fastapi_parcelflow.dependencies import get_flow, get_rider_manager
from fastapi_parcelflow.schemas import (
    DeliveriesPerDayItem,
    RegisterRiderRequest,
    RiderResponse,
    UpdateResultResponse,
)

router = APIRouter()


@router.post("/riders", response_model=RiderResponse)
async def register_rider(
    body: RegisterRiderRequest,
    riders=Depends(get_rider_manager),
) -> RiderResponse:
    rider = await riders.register(**body.model_dump())
    return RiderResponse.from_rider(rider)


@router.patch(
    "/riders/{rider_id}/approve", response_model=UpdateResultResponse
)
async def approve_rider(
    rider_id: str,
    riders=Depends(get_rider_manager),
) -> UpdateResultResponse:
    """Approve the rider and grant their user account the rider role."""
    result = await riders.approve(rider_id)
    return UpdateResultResponse.from_result(result)


@router.patch("/riders/{rider_id}/reject", response_model=UpdateResultResponse)
async def reject_rider(
    rider_id: str,
    riders=Depends(get_rider_manager),
) -> UpdateResultResponse:
    result = await riders.reject(rider_id)
    return UpdateResultResponse.from_result(result)


@router.get(
    "/riders/delivery-per-day", response_model=list[DeliveriesPerDayItem]
)
async def deliveries_per_day(
    email: str = Query(min_length=1),
    flow=Depends(get_flow),
) -> list[DeliveriesPerDayItem]:
    counts = await flow.deliveries_per_day(email)
    return [
        DeliveriesPerDayItem(day=day, delivered_count=count)
        for day, count in counts.items()
    ]
