"""Rider approval and work availability, plus user registration."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi_parcelflow.exceptions import (
    DuplicateUserError,
    RiderUnavailableError,
    ValidationError,
)
from fastapi_parcelflow.protocols import Rider
from fastapi_parcelflow.saga import Saga
from fastapi_parcelflow.store import ParcelStore
from fastapi_parcelflow.types import (
    RiderStatus,
    UpdateResult,
    UserRegistration,
    UserRole,
    WorkStatus,
)

logger = logging.getLogger(__name__)


class RiderWorkloadManager:
    """Owns rider ``status`` and ``work_status`` and the user accounts
    whose role follows rider approval.
    """

    def __init__(self, store: ParcelStore) -> None:
        self.store = store

    async def get(self, rider_id: str) -> Rider:
        if not rider_id:
            raise ValidationError("rider_id is required")
        return await self.store.riders.get_by_id(rider_id)

    async def register_user(
        self, email: str, display_name: str = ""
    ) -> UserRegistration:
        """Create a ``user`` account, or return the one already using
        ``email``.
        """
        if not email:
            raise ValidationError("user email is required")
        existing = await self.store.users.get_by_email(email)
        if existing is not None:
            return UserRegistration(user=existing, inserted=False)
        now = datetime.now(tz=UTC)
        try:
            user = await self.store.users.create(
                email=email,
                display_name=display_name,
                role=UserRole.USER.value,
                created_at=now,
                last_login_at=now,
            )
        except DuplicateUserError:
            existing = await self.store.users.get_by_email(email)
            if existing is None:
                raise
            return UserRegistration(user=existing, inserted=False)
        logger.info("User %s registered", email)
        return UserRegistration(user=user, inserted=True)

    async def register(self, **fields: Any) -> Rider:
        """Store a rider application awaiting approval."""
        if not fields.get("email"):
            raise ValidationError("rider email is required")
        if not fields.get("name"):
            raise ValidationError("rider name is required")
        fields.update(
            status=RiderStatus.PENDING.value,
            work_status=None,
            created_at=datetime.now(tz=UTC),
        )
        rider = await self.store.riders.create(**fields)
        logger.info("Rider %s registered (%s)", rider.id, rider.email)
        return rider

    async def approve(self, rider_id: str) -> UpdateResult:
        """Approve a rider and promote their user account to ``rider``.

        A rider still holding undelivered parcels stays ``in_delivery``.
        """
        rider = await self.get(rider_id)
        previous = {
            "status": rider.status,
            "work_status": rider.work_status,
        }
        active = await self.store.parcels.count_active_for_rider(rider_id)
        work_status = (
            WorkStatus.IN_DELIVERY if active else WorkStatus.AVAILABLE
        )

        async def restore() -> UpdateResult:
            return await self.store.riders.update(rider_id, **previous)

        saga = Saga("approve_rider")
        saga.add_step(
            "rider",
            lambda: self.store.riders.update(
                rider_id,
                status=RiderStatus.APPROVED.value,
                work_status=work_status.value,
            ),
            restore,
        )
        saga.add_step(
            "user",
            lambda: self.store.users.set_role(
                rider.email, UserRole.RIDER.value
            ),
        )
        results = await saga.run()

        user_update: UpdateResult = results["user"]
        if not user_update.matched:
            logger.warning(
                "Rider %s approved but no user account matches %s",
                rider_id,
                rider.email,
            )
        logger.info("Rider %s approved", rider_id)
        return results["rider"]

    async def reject(self, rider_id: str) -> UpdateResult:
        await self.get(rider_id)
        result = await self.store.riders.update(
            rider_id, status=RiderStatus.REJECTED.value
        )
        logger.info("Rider %s rejected", rider_id)
        return result

    async def set_work_status(
        self, rider_id: str, work_status: WorkStatus | str
    ) -> UpdateResult:
        work_status = WorkStatus(work_status)
        return await self.store.riders.update(
            rider_id, work_status=work_status.value
        )

    async def release(self, rider_id: str) -> UpdateResult:
        """Mark the rider available unless another parcel is still active."""
        active = await self.store.parcels.count_active_for_rider(rider_id)
        if active:
            logger.info(
                "Rider %s still has %d active parcel(s), staying in delivery",
                rider_id,
                active,
            )
            return UpdateResult(
                entity="rider",
                entity_id=rider_id,
                matched_count=1,
                modified_count=0,
            )
        return await self.set_work_status(rider_id, WorkStatus.AVAILABLE)

    def ensure_assignable(self, rider: Rider) -> None:
        if rider.status != RiderStatus.APPROVED:
            raise RiderUnavailableError(
                rider.id, f"status is {rider.status!r}, not approved"
            )
        if rider.work_status == WorkStatus.IN_DELIVERY:
            raise RiderUnavailableError(rider.id, "already in delivery")
