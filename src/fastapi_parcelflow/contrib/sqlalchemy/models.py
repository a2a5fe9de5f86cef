"""SQLAlchemy parcel/rider/payment/tracking models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from fastapi_parcelflow.types import MAX_STATUS_LENGTH


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(tz=UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends that drop the zone."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""


class ParcelModel(Base):
    __tablename__ = "parcelflow_parcels"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=_uuid
    )
    tracking_id: Mapped[str] = mapped_column(
        String(32), unique=True, index=True
    )
    parcel_name: Mapped[str] = mapped_column(String(255))
    parcel_type: Mapped[str] = mapped_column(String(32), default="")
    weight_kg: Mapped[Decimal | None] = mapped_column(
        Numeric(8, 2), nullable=True
    )
    sender_name: Mapped[str] = mapped_column(String(128), default="")
    sender_email: Mapped[str] = mapped_column(String(128), index=True)
    receiver_name: Mapped[str] = mapped_column(String(128), default="")
    receiver_email: Mapped[str] = mapped_column(String(128), default="")
    receiver_address: Mapped[str] = mapped_column(String(255), default="")
    cost: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    delivery_status: Mapped[str | None] = mapped_column(
        String(MAX_STATUS_LENGTH), nullable=True, index=True
    )
    payment_status: Mapped[str] = mapped_column(String(16), default="unpaid")
    rider_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, index=True
    )
    rider_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    rider_email: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)


class RiderModel(Base):
    __tablename__ = "parcelflow_riders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=_uuid
    )
    name: Mapped[str] = mapped_column(String(128))
    email: Mapped[str] = mapped_column(String(128), index=True)
    phone: Mapped[str] = mapped_column(String(32), default="")
    district: Mapped[str] = mapped_column(String(128), default="")
    status: Mapped[str] = mapped_column(String(16), default="pending")
    work_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)


class UserModel(Base):
    __tablename__ = "parcelflow_users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(128), unique=True)
    display_name: Mapped[str] = mapped_column(String(128), default="")
    role: Mapped[str] = mapped_column(String(16), default="user")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)
    last_login_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )


class PaymentModel(Base):
    """Settled payment; ``transaction_id`` and ``tracking_id`` are unique."""

    __tablename__ = "parcelflow_payments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(String(255), unique=True)
    tracking_id: Mapped[str] = mapped_column(String(32), unique=True)
    parcel_id: Mapped[str] = mapped_column(String(36), default="")
    parcel_name: Mapped[str] = mapped_column(String(255), default="")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(8))
    customer_email: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    payment_status: Mapped[str] = mapped_column(String(16), default="paid")
    paid_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)


class TrackingModel(Base):
    """Ledger entry. Rows are inserted, never updated."""

    __tablename__ = "parcelflow_trackings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tracking_id: Mapped[str] = mapped_column(String(32), index=True)
    status: Mapped[str] = mapped_column(String(MAX_STATUS_LENGTH), index=True)
    details: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)


class LedgerRetryModel(Base):
    """Queued ledger append awaiting replay."""

    __tablename__ = "parcelflow_ledger_retries"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=_uuid
    )
    tracking_id: Mapped[str] = mapped_column(String(32), index=True)
    event_status: Mapped[str] = mapped_column(String(MAX_STATUS_LENGTH))
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    next_retry_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str] = mapped_column(String(16), default="pending")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_now)
