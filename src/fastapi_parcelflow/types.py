"""Value types shared by the parcel flow components."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi_parcelflow.protocols import (
        Parcel,
        PaymentRecord,
        TrackingEntry,
        User,
    )


class PaymentStatus(StrEnum):
    UNPAID = "unpaid"
    PAID = "paid"


class RiderStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkStatus(StrEnum):
    AVAILABLE = "available"
    IN_DELIVERY = "in_delivery"


class UserRole(StrEnum):
    USER = "user"
    RIDER = "rider"
    ADMIN = "admin"


class TrackingStatus(StrEnum):
    """Ledger tokens written by the flow itself."""

    PARCEL_CREATED = "parcel_created"
    PARCEL_PAID = "parcel_paid"
    DRIVER_ASSIGNED = "driver_assigned"
    PARCEL_DELIVERED = "parcel_delivered"


PENDING_PICKUP = "pending-pickup"

# Storage width of delivery status labels and ledger status tokens.
MAX_STATUS_LENGTH = 64


class DeliveryStatusKind(StrEnum):
    CREATED = "created"
    PAID = "paid"
    ASSIGNED = "assigned"
    DELIVERED = "delivered"
    CUSTOM = "custom"


_KNOWN_LABELS = {
    PENDING_PICKUP: DeliveryStatusKind.PAID,
    TrackingStatus.DRIVER_ASSIGNED.value: DeliveryStatusKind.ASSIGNED,
    TrackingStatus.PARCEL_DELIVERED.value: DeliveryStatusKind.DELIVERED,
}


@dataclass(frozen=True)
class DeliveryStatus:
    """Parcel delivery status as a tagged variant.

    Storage keeps the free-text label. The kind tells the flow whether the
    label triggers side effects; everything it does not recognise is a
    ``CUSTOM`` pass-through label used only for the ledger.
    """

    kind: DeliveryStatusKind
    label: str | None = None

    @classmethod
    def parse(cls, label: str | None) -> DeliveryStatus:
        if label is None:
            return cls(DeliveryStatusKind.CREATED)
        kind = _KNOWN_LABELS.get(label, DeliveryStatusKind.CUSTOM)
        return cls(kind, label)

    @property
    def is_delivered(self) -> bool:
        return self.kind is DeliveryStatusKind.DELIVERED

    def __str__(self) -> str:
        return self.label if self.label is not None else "unassigned"


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of a single-record update."""

    entity: str
    entity_id: str
    matched_count: int
    modified_count: int

    @property
    def matched(self) -> bool:
        return self.matched_count > 0


@dataclass(frozen=True)
class CheckoutSession:
    """Payment gateway session, normalised."""

    session_id: str
    transaction_id: str | None
    payment_status: str
    amount: Decimal
    currency: str
    customer_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    url: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID


@dataclass
class CreateResult:
    parcel: Parcel
    tracking_id: str
    tracking_entry: TrackingEntry


@dataclass
class AssignResult:
    parcel_update: UpdateResult
    rider_update: UpdateResult
    tracking_entry: TrackingEntry
    previous_rider_update: UpdateResult | None = None


@dataclass
class StatusResult:
    parcel_update: UpdateResult
    rider_update: UpdateResult | None
    tracking_entry: TrackingEntry


@dataclass
class UserRegistration:
    user: User
    inserted: bool


@dataclass
class PaymentConfirmationResult:
    success: bool
    tracking_id: str | None = None
    transaction_id: str | None = None
    parcel_update: UpdateResult | None = None
    payment_record: PaymentRecord | None = None
    already_settled: bool = False
