"""Shared fixtures for fastapi-parcelflow tests."""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from fastapi_parcelflow.config import ParcelFlowConfig
from fastapi_parcelflow.exceptions import (
    DuplicatePaymentError,
    DuplicateUserError,
    NotFoundError,
    ParcelNotFoundError,
    RiderNotFoundError,
    TrackingIdConflictError,
)
from fastapi_parcelflow.flow import ParcelFlow
from fastapi_parcelflow.store import ParcelStore
from fastapi_parcelflow.types import CheckoutSession, UpdateResult


@dataclass
class DemoParcel:
    id: str
    tracking_id: str
    parcel_name: str
    sender_email: str
    cost: Decimal
    delivery_status: str | None = None
    payment_status: str = "unpaid"
    rider_id: str | None = None
    rider_name: str | None = None
    rider_email: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    extra: dict = field(default_factory=dict)


@dataclass
class DemoRider:
    id: str
    name: str
    email: str
    status: str = "pending"
    work_status: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    extra: dict = field(default_factory=dict)


@dataclass
class DemoUser:
    email: str
    role: str = "user"
    display_name: str = ""


@dataclass
class DemoPayment:
    transaction_id: str
    tracking_id: str
    parcel_id: str
    amount: Decimal
    currency: str
    customer_email: str | None
    paid_at: datetime
    parcel_name: str = ""
    payment_status: str = "paid"


@dataclass
class DemoTracking:
    tracking_id: str
    status: str
    details: str
    created_at: datetime


def _apply(record, entity: str, record_id: str, fields: dict) -> UpdateResult:
    modified = 0
    for key, value in fields.items():
        if hasattr(record, key):
            if getattr(record, key) != value:
                setattr(record, key, value)
                modified = 1
        else:
            record.extra[key] = value
    return UpdateResult(entity, record_id, 1, modified)


class InMemoryParcelRepo:
    def __init__(self) -> None:
        self.items: dict[str, DemoParcel] = {}
        self._ids = itertools.count(1)

    async def get_by_id(self, parcel_id: str) -> DemoParcel:
        try:
            return self.items[parcel_id]
        except KeyError:
            raise ParcelNotFoundError(parcel_id) from None

    async def get_by_tracking_id(self, tracking_id: str) -> DemoParcel | None:
        for parcel in self.items.values():
            if parcel.tracking_id == tracking_id:
                return parcel
        return None

    async def create(self, **fields) -> DemoParcel:
        tracking_id = fields.pop("tracking_id")
        if await self.get_by_tracking_id(tracking_id) is not None:
            raise TrackingIdConflictError(tracking_id)
        known = {
            key: fields.pop(key)
            for key in list(fields)
            if key in DemoParcel.__dataclass_fields__
        }
        parcel_id = f"p-{next(self._ids)}"
        parcel = DemoParcel(
            id=parcel_id, tracking_id=tracking_id, extra=fields, **known
        )
        self.items[parcel_id] = parcel
        return parcel

    async def update(self, parcel_id: str, **fields) -> UpdateResult:
        parcel = self.items.get(parcel_id)
        if parcel is None:
            return UpdateResult("parcel", parcel_id, 0, 0)
        return _apply(parcel, "parcel", parcel_id, fields)

    async def count_active_for_rider(self, rider_id: str) -> int:
        return sum(
            1
            for parcel in self.items.values()
            if parcel.rider_id == rider_id
            and parcel.delivery_status != "parcel_delivered"
        )

    async def list_delivered_for_rider(
        self, rider_email: str
    ) -> list[DemoParcel]:
        return [
            parcel
            for parcel in self.items.values()
            if parcel.rider_email == rider_email
            and parcel.delivery_status == "parcel_delivered"
        ]


class InMemoryRiderRepo:
    def __init__(self) -> None:
        self.items: dict[str, DemoRider] = {}
        self._ids = itertools.count(1)

    async def get_by_id(self, rider_id: str) -> DemoRider:
        try:
            return self.items[rider_id]
        except KeyError:
            raise RiderNotFoundError(rider_id) from None

    async def create(self, **fields) -> DemoRider:
        known = {
            key: fields.pop(key)
            for key in list(fields)
            if key in DemoRider.__dataclass_fields__
        }
        rider_id = known.pop("id", None) or f"r-{next(self._ids)}"
        rider = DemoRider(id=rider_id, extra=fields, **known)
        self.items[rider_id] = rider
        return rider

    async def update(self, rider_id: str, **fields) -> UpdateResult:
        rider = self.items.get(rider_id)
        if rider is None:
            return UpdateResult("rider", rider_id, 0, 0)
        return _apply(rider, "rider", rider_id, fields)


class InMemoryUserRepo:
    def __init__(self) -> None:
        self.roles: dict[str, str] = {}
        self.names: dict[str, str] = {}

    async def get_by_email(self, email: str) -> DemoUser | None:
        if email not in self.roles:
            return None
        return DemoUser(email, self.roles[email], self.names.get(email, ""))

    async def create(self, **fields) -> DemoUser:
        email = fields["email"]
        if email in self.roles:
            raise DuplicateUserError(email)
        self.roles[email] = fields.get("role", "user")
        self.names[email] = fields.get("display_name", "")
        return DemoUser(email, self.roles[email], self.names[email])

    async def set_role(self, email: str, role: str) -> UpdateResult:
        if email not in self.roles:
            return UpdateResult("user", email, 0, 0)
        modified = int(self.roles[email] != role)
        self.roles[email] = role
        return UpdateResult("user", email, 1, modified)


class InMemoryPaymentRepo:
    def __init__(self) -> None:
        self.items: dict[str, DemoPayment] = {}

    async def get_by_transaction_id(
        self, transaction_id: str
    ) -> DemoPayment | None:
        return self.items.get(transaction_id)

    async def create(self, **fields) -> DemoPayment:
        transaction_id = fields["transaction_id"]
        if transaction_id in self.items or any(
            p.tracking_id == fields["tracking_id"] for p in self.items.values()
        ):
            raise DuplicatePaymentError(transaction_id)
        payment = DemoPayment(**fields)
        self.items[transaction_id] = payment
        return payment

    async def delete(self, transaction_id: str) -> None:
        self.items.pop(transaction_id, None)


class InMemoryTrackingRepo:
    def __init__(self) -> None:
        self.entries: list[DemoTracking] = []

    async def add(
        self, tracking_id: str, status: str, details: str, created_at: datetime
    ) -> DemoTracking:
        entry = DemoTracking(tracking_id, status, details, created_at)
        self.entries.append(entry)
        return entry

    async def list_by_tracking_id(
        self, tracking_id: str
    ) -> list[DemoTracking]:
        return sorted(
            (e for e in self.entries if e.tracking_id == tracking_id),
            key=lambda e: e.created_at,
        )

    async def latest(self, tracking_id: str) -> DemoTracking | None:
        entries = await self.list_by_tracking_id(tracking_id)
        return entries[-1] if entries else None

    async def list_by_status(
        self, tracking_ids: Sequence[str], status: str
    ) -> list[DemoTracking]:
        return [
            e
            for e in self.entries
            if e.tracking_id in tracking_ids and e.status == status
        ]


class FakeGateway:
    """Deterministic checkout provider keyed by session id."""

    def __init__(self) -> None:
        self.sessions: dict[str, CheckoutSession] = {}
        self.created: list[dict] = []

    def add_session(
        self,
        session_id: str,
        *,
        transaction_id: str | None = "pi_1",
        payment_status: str = "paid",
        amount: Decimal = Decimal("150"),
        metadata: dict | None = None,
        customer_email: str | None = "sender@example.com",
    ) -> CheckoutSession:
        session = CheckoutSession(
            session_id=session_id,
            transaction_id=transaction_id,
            payment_status=payment_status,
            amount=amount,
            currency="usd",
            customer_email=customer_email,
            metadata=metadata or {},
        )
        self.sessions[session_id] = session
        return session

    async def create_checkout_session(self, **kwargs) -> CheckoutSession:
        self.created.append(kwargs)
        session_id = f"cs_{len(self.created)}"
        return CheckoutSession(
            session_id=session_id,
            transaction_id=None,
            payment_status="unpaid",
            amount=kwargs["amount"],
            currency=kwargs["currency"],
            customer_email=kwargs["customer_email"],
            metadata=dict(kwargs["metadata"]),
            url=f"https://checkout.example.com/{session_id}",
        )

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        try:
            return self.sessions[session_id]
        except KeyError:
            raise NotFoundError(f"Session {session_id} not found") from None


class RetryStore:
    def __init__(self) -> None:
        self.events: list[dict] = []

    async def store_failed_append(
        self, tracking_id: str, event_status: str, error: str
    ) -> str:
        self.events.append(
            {
                "tracking_id": tracking_id,
                "event_status": event_status,
                "error": error,
            }
        )
        return f"retry-{len(self.events)}"

    async def get_due_retries(self, limit: int = 10) -> list[dict]:
        return []

    async def mark_succeeded(self, retry_id: str) -> None:
        pass

    async def mark_failed(self, retry_id: str, error: str) -> None:
        pass

    async def mark_exhausted(self, retry_id: str) -> None:
        pass


def parcel_fields(**overrides) -> dict:
    fields = {
        "parcel_name": "Books",
        "parcel_type": "document",
        "sender_name": "Ann",
        "sender_email": "sender@example.com",
        "receiver_name": "Bob",
        "receiver_address": "1 Main St",
        "cost": Decimal("150"),
    }
    fields.update(overrides)
    return fields


@pytest.fixture()
def store() -> ParcelStore:
    return ParcelStore(
        parcels=InMemoryParcelRepo(),
        riders=InMemoryRiderRepo(),
        users=InMemoryUserRepo(),
        payments=InMemoryPaymentRepo(),
        trackings=InMemoryTrackingRepo(),
    )


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def retry_store() -> RetryStore:
    return RetryStore()


@pytest.fixture()
def config() -> ParcelFlowConfig:
    return ParcelFlowConfig(site_domain="https://parcels.example.com")


@pytest.fixture()
def flow(store, gateway, config, retry_store) -> ParcelFlow:
    return ParcelFlow(
        store=store, gateway=gateway, config=config, retry_store=retry_store
    )


@pytest.fixture()
async def approved_rider(store) -> DemoRider:
    rider = await store.riders.create(
        name="Rita",
        email="rita@example.com",
        status="approved",
        work_status="available",
    )
    store.users.roles[rider.email] = "user"
    return rider


@pytest.fixture()
async def async_engine():
    """Create an in-memory aiosqlite async engine."""
    sa = pytest.importorskip("sqlalchemy")  # noqa: F841
    from sqlalchemy.ext.asyncio import create_async_engine

    from fastapi_parcelflow.contrib.sqlalchemy.models import Base

    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def async_session_factory(async_engine):
    """Create an async session factory bound to the in-memory engine."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    yield factory


@pytest.fixture()
def sqlalchemy_store(async_session_factory) -> ParcelStore:
    from fastapi_parcelflow.contrib.sqlalchemy.repository import (
        create_sqlalchemy_store,
    )

    return create_sqlalchemy_store(async_session_factory)


@pytest.fixture()
def sqlalchemy_retry_store(async_session_factory):
    """Create an SQLAlchemyLedgerRetryStore."""
    from fastapi_parcelflow.contrib.sqlalchemy.retry_store import (
        SQLAlchemyLedgerRetryStore,
    )

    return SQLAlchemyLedgerRetryStore(async_session_factory)
