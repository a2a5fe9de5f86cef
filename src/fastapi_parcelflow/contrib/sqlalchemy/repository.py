"""SQLAlchemy repository implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fastapi_parcelflow.contrib.sqlalchemy.models import (
    Base,
    ParcelModel,
    PaymentModel,
    RiderModel,
    TrackingModel,
    UserModel,
)
from fastapi_parcelflow.exceptions import (
    DuplicatePaymentError,
    DuplicateUserError,
    ParcelNotFoundError,
    RiderNotFoundError,
    TrackingIdConflictError,
)
from fastapi_parcelflow.store import ParcelStore
from fastapi_parcelflow.types import TrackingStatus, UpdateResult


def _columns(model: type[Base], fields: dict[str, Any]) -> dict[str, Any]:
    names = model.__table__.columns.keys()
    return {key: value for key, value in fields.items() if key in names}


class _RecordRepository(ABC):
    """Get/create/update by primary key, one session per call."""

    model: type[Base]
    entity: str

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    @abstractmethod
    def not_found(self, record_id: str) -> Exception: ...

    async def get_by_id(self, record_id: str):
        async with self.session_factory() as session:
            record = await session.get(self.model, record_id)
            if record is None:
                raise self.not_found(record_id)
            return record

    async def create(self, **fields: Any):
        record = self.model(**_columns(self.model, fields))
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
            await session.refresh(record)
        return record

    async def update(self, record_id: str, **fields: Any) -> UpdateResult:
        async with self.session_factory() as session:
            record = await session.get(self.model, record_id)
            if record is None:
                return UpdateResult(self.entity, record_id, 0, 0)
            modified = 0
            for key, value in _columns(self.model, fields).items():
                if getattr(record, key) != value:
                    setattr(record, key, value)
                    modified = 1
            await session.commit()
            return UpdateResult(self.entity, record_id, 1, modified)


class SQLAlchemyParcelRepository(_RecordRepository):
    """Parcel repository; ``tracking_id`` is backed by a unique index."""

    model = ParcelModel
    entity = "parcel"

    def not_found(self, record_id: str) -> Exception:
        return ParcelNotFoundError(record_id)

    async def get_by_tracking_id(self, tracking_id: str) -> ParcelModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ParcelModel).where(
                    ParcelModel.tracking_id == tracking_id
                )
            )
            return result.scalar_one_or_none()

    async def create(self, **fields: Any) -> ParcelModel:
        try:
            return await super().create(**fields)
        except IntegrityError as exc:
            raise TrackingIdConflictError(fields["tracking_id"]) from exc

    async def count_active_for_rider(self, rider_id: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(ParcelModel)
                .where(
                    ParcelModel.rider_id == rider_id,
                    or_(
                        ParcelModel.delivery_status.is_(None),
                        ParcelModel.delivery_status
                        != TrackingStatus.PARCEL_DELIVERED.value,
                    ),
                )
            )
            return result.scalar_one()

    async def list_delivered_for_rider(
        self, rider_email: str
    ) -> list[ParcelModel]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ParcelModel).where(
                    ParcelModel.rider_email == rider_email,
                    ParcelModel.delivery_status
                    == TrackingStatus.PARCEL_DELIVERED.value,
                )
            )
            return list(result.scalars().all())


class SQLAlchemyRiderRepository(_RecordRepository):
    model = RiderModel
    entity = "rider"

    def not_found(self, record_id: str) -> Exception:
        return RiderNotFoundError(record_id)


class SQLAlchemyUserRepository:
    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def create(self, **fields: Any) -> UserModel:
        user = UserModel(**_columns(UserModel, fields))
        async with self.session_factory() as session:
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateUserError(fields["email"]) from exc
            await session.refresh(user)
        return user

    async def get_by_email(self, email: str) -> UserModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserModel).where(UserModel.email == email)
            )
            return result.scalar_one_or_none()

    async def set_role(self, email: str, role: str) -> UpdateResult:
        async with self.session_factory() as session:
            user = (
                await session.execute(
                    select(UserModel).where(UserModel.email == email)
                )
            ).scalar_one_or_none()
            if user is None:
                return UpdateResult("user", email, 0, 0)
            modified = int(user.role != role)
            user.role = role
            await session.commit()
            return UpdateResult("user", email, 1, modified)


class SQLAlchemyPaymentRepository:
    """Payment repository; ``transaction_id`` is backed by a unique index."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def get_by_transaction_id(
        self, transaction_id: str
    ) -> PaymentModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PaymentModel).where(
                    PaymentModel.transaction_id == transaction_id
                )
            )
            return result.scalar_one_or_none()

    async def create(self, **fields: Any) -> PaymentModel:
        payment = PaymentModel(**_columns(PaymentModel, fields))
        async with self.session_factory() as session:
            session.add(payment)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicatePaymentError(fields["transaction_id"]) from exc
            await session.refresh(payment)
        return payment

    async def delete(self, transaction_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                delete(PaymentModel).where(
                    PaymentModel.transaction_id == transaction_id
                )
            )
            await session.commit()


class SQLAlchemyTrackingRepository:
    """Ledger storage. Exposes inserts and reads only."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def add(
        self, tracking_id: str, status: str, details: str, created_at: datetime
    ) -> TrackingModel:
        entry = TrackingModel(
            tracking_id=tracking_id,
            status=status,
            details=details,
            created_at=created_at,
        )
        async with self.session_factory() as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        return entry

    async def list_by_tracking_id(
        self, tracking_id: str
    ) -> list[TrackingModel]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrackingModel)
                .where(TrackingModel.tracking_id == tracking_id)
                .order_by(TrackingModel.created_at, TrackingModel.id)
            )
            return list(result.scalars().all())

    async def latest(self, tracking_id: str) -> TrackingModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrackingModel)
                .where(TrackingModel.tracking_id == tracking_id)
                .order_by(
                    TrackingModel.created_at.desc(), TrackingModel.id.desc()
                )
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def list_by_status(
        self, tracking_ids: Sequence[str], status: str
    ) -> list[TrackingModel]:
        if not tracking_ids:
            return []
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrackingModel)
                .where(
                    TrackingModel.tracking_id.in_(list(tracking_ids)),
                    TrackingModel.status == status,
                )
                .order_by(TrackingModel.created_at, TrackingModel.id)
            )
            return list(result.scalars().all())


def create_sqlalchemy_store(
    session_factory: async_sessionmaker[AsyncSession],
) -> ParcelStore:
    """Build a :class:`ParcelStore` backed by one session factory."""
    return ParcelStore(
        parcels=SQLAlchemyParcelRepository(session_factory),
        riders=SQLAlchemyRiderRepository(session_factory),
        users=SQLAlchemyUserRepository(session_factory),
        payments=SQLAlchemyPaymentRepository(session_factory),
        trackings=SQLAlchemyTrackingRepository(session_factory),
    )
