"""Storage handle injected into the parcel flow components."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi_parcelflow.protocols import (
    ParcelRepository,
    PaymentRepository,
    RiderRepository,
    TrackingRepository,
    UserRepository,
)


@dataclass(frozen=True)
class ParcelStore:
    """Repositories for every collection the flow touches.

    Built once by the application and passed to each component; there is
    no module-level store.
    """

    parcels: ParcelRepository
    riders: RiderRepository
    users: UserRepository
    payments: PaymentRepository
    trackings: TrackingRepository
