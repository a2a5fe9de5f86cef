"""Tracking history endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fastapi_parcelflow.dependencies import get_flow
from fastapi_parcelflow.schemas import TrackingEntryResponse

router = APIRouter()


@router.get(
    "/trackings/{tracking_id}/logs",
    response_model=list[TrackingEntryResponse],
)
async def tracking_logs(
    tracking_id: str,
    flow=Depends(get_flow),
) -> list[TrackingEntryResponse]:
    """Chronological ledger entries for one tracking id."""
    entries = await flow.history(tracking_id)
    return [TrackingEntryResponse.from_entry(entry) for entry in entries]
