"""Append-only tracking ledger."""

from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime

from fastapi_parcelflow.exceptions import ValidationError
from fastapi_parcelflow.protocols import TrackingEntry
from fastapi_parcelflow.store import ParcelStore
from fastapi_parcelflow.types import TrackingStatus

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[_\-]+")


def status_details(status: str) -> str:
    """Readable form of a token, e.g. ``parcel_paid`` -> ``parcel paid``."""
    return _SEPARATORS.sub(" ", status).strip()


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


class TrackingLedger:
    """Event history keyed by tracking id.

    Entries are only ever added. The ledger does not know which transition
    produced an entry; callers append after their own write has committed.
    """

    def __init__(self, store: ParcelStore) -> None:
        self.store = store

    async def append(self, tracking_id: str, status: str) -> TrackingEntry:
        if not tracking_id:
            raise ValidationError("tracking_id is required")
        if not status:
            raise ValidationError("status is required")

        created_at = datetime.now(tz=UTC)
        latest = await self.store.trackings.latest(tracking_id)
        if latest is not None:
            # Keep history non-decreasing under clock skew.
            created_at = max(created_at, _as_utc(latest.created_at))

        entry = await self.store.trackings.add(
            tracking_id=tracking_id,
            status=status,
            details=status_details(status),
            created_at=created_at,
        )
        logger.info("Tracking %s: %s", tracking_id, status)
        return entry

    async def history(self, tracking_id: str) -> list[TrackingEntry]:
        if not tracking_id:
            raise ValidationError("tracking_id is required")
        return await self.store.trackings.list_by_tracking_id(tracking_id)

    async def deliveries_per_day(self, rider_email: str) -> dict[date, int]:
        """Count a rider's delivered parcels per UTC day.

        Each delivered parcel counts once, on the day of its first
        ``parcel_delivered`` entry, even if it was marked delivered again.
        """
        if not rider_email:
            raise ValidationError("rider email is required")

        parcels = await self.store.parcels.list_delivered_for_rider(
            rider_email
        )
        if not parcels:
            return {}

        entries = await self.store.trackings.list_by_status(
            [parcel.tracking_id for parcel in parcels],
            TrackingStatus.PARCEL_DELIVERED,
        )
        first_delivered: dict[str, datetime] = {}
        for entry in entries:
            moment = _as_utc(entry.created_at)
            seen = first_delivered.get(entry.tracking_id)
            if seen is None or moment < seen:
                first_delivered[entry.tracking_id] = moment

        counts: dict[date, int] = {}
        for moment in first_delivered.values():
            day = moment.date()
            counts[day] = counts.get(day, 0) + 1
        return dict(sorted(counts.items()))
