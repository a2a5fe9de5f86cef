"""Storage, gateway and retry protocols consumed by the parcel flow."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from fastapi_parcelflow.types import CheckoutSession, UpdateResult


@runtime_checkable
class Parcel(Protocol):
    id: str
    tracking_id: str
    parcel_name: str
    sender_email: str
    cost: Decimal
    delivery_status: str | None
    payment_status: str
    rider_id: str | None
    rider_name: str | None
    rider_email: str | None
    created_at: datetime


@runtime_checkable
class Rider(Protocol):
    id: str
    name: str
    email: str
    status: str
    work_status: str | None
    created_at: datetime


@runtime_checkable
class PaymentRecord(Protocol):
    transaction_id: str
    tracking_id: str
    parcel_id: str
    amount: Decimal
    currency: str
    customer_email: str | None
    paid_at: datetime


@runtime_checkable
class User(Protocol):
    email: str
    display_name: str
    role: str


@runtime_checkable
class TrackingEntry(Protocol):
    tracking_id: str
    status: str
    details: str
    created_at: datetime


@runtime_checkable
class ParcelRepository(Protocol):
    """Parcel persistence.

    ``create`` must raise ``TrackingIdConflictError`` when the tracking id
    is already taken.
    """

    async def get_by_id(self, parcel_id: str) -> Parcel: ...

    async def get_by_tracking_id(self, tracking_id: str) -> Parcel | None: ...

    async def create(self, **fields: Any) -> Parcel: ...

    async def update(self, parcel_id: str, **fields: Any) -> UpdateResult: ...

    async def count_active_for_rider(self, rider_id: str) -> int: ...

    async def list_delivered_for_rider(
        self, rider_email: str
    ) -> list[Parcel]: ...


@runtime_checkable
class RiderRepository(Protocol):
    async def get_by_id(self, rider_id: str) -> Rider: ...

    async def create(self, **fields: Any) -> Rider: ...

    async def update(self, rider_id: str, **fields: Any) -> UpdateResult: ...


@runtime_checkable
class UserRepository(Protocol):
    """User accounts keyed by email.

    ``create`` must raise ``DuplicateUserError`` when the email is taken.
    """

    async def get_by_email(self, email: str) -> User | None: ...

    async def create(self, **fields: Any) -> User: ...

    async def set_role(self, email: str, role: str) -> UpdateResult: ...


@runtime_checkable
class PaymentRepository(Protocol):
    """Payment persistence.

    ``create`` must raise ``DuplicatePaymentError`` when a record for the
    transaction id or the tracking id exists; this is the settlement
    serialization point.
    """

    async def get_by_transaction_id(
        self, transaction_id: str
    ) -> PaymentRecord | None: ...

    async def create(self, **fields: Any) -> PaymentRecord: ...

    async def delete(self, transaction_id: str) -> None: ...


@runtime_checkable
class TrackingRepository(Protocol):
    async def add(
        self, tracking_id: str, status: str, details: str, created_at: datetime
    ) -> TrackingEntry: ...

    async def list_by_tracking_id(
        self, tracking_id: str
    ) -> list[TrackingEntry]: ...

    async def latest(self, tracking_id: str) -> TrackingEntry | None: ...

    async def list_by_status(
        self, tracking_ids: Sequence[str], status: str
    ) -> list[TrackingEntry]: ...


@runtime_checkable
class PaymentGateway(Protocol):
    """Hosted checkout provider."""

    async def create_checkout_session(
        self,
        *,
        amount: Decimal,
        currency: str,
        product_name: str,
        customer_email: str | None,
        metadata: Mapping[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession: ...

    async def retrieve_session(self, session_id: str) -> CheckoutSession: ...


@runtime_checkable
class LedgerRetryStore(Protocol):
    """Storage abstraction for the ledger append retry queue."""

    async def store_failed_append(
        self,
        tracking_id: str,
        event_status: str,
        error: str,
    ) -> str: ...

    async def get_due_retries(self, limit: int = 10) -> list[dict]: ...

    async def mark_succeeded(self, retry_id: str) -> None: ...

    async def mark_failed(
        self,
        retry_id: str,
        error: str,
    ) -> None: ...

    async def mark_exhausted(self, retry_id: str) -> None: ...
