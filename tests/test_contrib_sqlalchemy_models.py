"""SQLAlchemy model tests with real aiosqlite DB."""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from fastapi_parcelflow.contrib.sqlalchemy.models import (
    Base,
    LedgerRetryModel,
    ParcelModel,
    PaymentModel,
    TrackingModel,
)


@pytest.fixture()
async def async_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


def _parcel(tracking_id: str = "PRCL-20240101-AAAAAA") -> ParcelModel:
    return ParcelModel(
        tracking_id=tracking_id,
        parcel_name="Books",
        sender_email="a@example.com",
        cost=Decimal("150.00"),
    )


async def test_ledger_retry_model_has_all_columns(async_session) -> None:
    mapper = inspect(LedgerRetryModel)
    column_names = {col.key for col in mapper.column_attrs}

    assert column_names == {
        "id",
        "tracking_id",
        "event_status",
        "attempts",
        "next_retry_at",
        "last_error",
        "state",
        "created_at",
    }


async def test_parcel_defaults(async_session) -> None:
    parcel = _parcel()
    async_session.add(parcel)
    await async_session.commit()
    await async_session.refresh(parcel)

    assert len(parcel.id) == 36
    assert parcel.payment_status == "unpaid"
    assert parcel.delivery_status is None
    assert parcel.rider_id is None
    assert parcel.cost == Decimal("150.00")
    assert parcel.created_at.tzinfo is not None


async def test_tracking_id_is_unique(async_session) -> None:
    async_session.add(_parcel())
    await async_session.commit()

    async_session.add(_parcel())
    with pytest.raises(IntegrityError):
        await async_session.commit()


async def test_transaction_id_is_unique(async_session) -> None:
    for _ in range(2):
        async_session.add(
            PaymentModel(
                transaction_id="pi_1",
                tracking_id="PRCL-1",
                amount=Decimal("1"),
                currency="usd",
            )
        )
    with pytest.raises(IntegrityError):
        await async_session.commit()


async def test_one_payment_per_tracking_id(async_session) -> None:
    for transaction_id in ("pi_1", "pi_2"):
        async_session.add(
            PaymentModel(
                transaction_id=transaction_id,
                tracking_id="PRCL-1",
                amount=Decimal("1"),
                currency="usd",
            )
        )
    with pytest.raises(IntegrityError):
        await async_session.commit()


async def test_datetimes_round_trip_as_utc(async_session) -> None:
    local = timezone(timedelta(hours=2))
    async_session.add(
        TrackingModel(
            tracking_id="PRCL-1",
            status="parcel_created",
            details="parcel created",
            created_at=datetime(2024, 1, 1, 1, 30, tzinfo=local),
        )
    )
    await async_session.commit()
    async_session.expunge_all()

    entry = (await async_session.execute(select(TrackingModel))).scalar_one()

    assert entry.created_at == datetime(2023, 12, 31, 23, 30, tzinfo=UTC)
    assert entry.created_at.tzinfo is not None
