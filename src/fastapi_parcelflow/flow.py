"""Parcel lifecycle orchestration."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from fastapi_parcelflow.config import ParcelFlowConfig
from fastapi_parcelflow.exceptions import (
    ConflictError,
    ExternalServiceError,
    InvalidTransitionError,
    ParcelNotFoundError,
    PaymentGatewayError,
    TrackingIdConflictError,
    TrackingIdNotFoundError,
    ValidationError,
)
from fastapi_parcelflow.ledger import TrackingLedger
from fastapi_parcelflow.payments import ParcelSettlement, PaymentReconciler
from fastapi_parcelflow.protocols import (
    LedgerRetryStore,
    Parcel,
    PaymentGateway,
    TrackingEntry,
)
from fastapi_parcelflow.riders import RiderWorkloadManager
from fastapi_parcelflow.saga import RetriableFailureHook, Saga, SagaStep
from fastapi_parcelflow.store import ParcelStore
from fastapi_parcelflow.tracking import generate_tracking_id
from fastapi_parcelflow.types import (
    MAX_STATUS_LENGTH,
    PENDING_PICKUP,
    AssignResult,
    CheckoutSession,
    CreateResult,
    DeliveryStatus,
    DeliveryStatusKind,
    PaymentConfirmationResult,
    PaymentStatus,
    StatusResult,
    TrackingStatus,
    UpdateResult,
    WorkStatus,
)

logger = logging.getLogger(__name__)

_RIDER_FIELDS = ("delivery_status", "rider_id", "rider_name", "rider_email")


class ParcelFlow:
    """Drives every parcel transition.

    Each operation validates against the parcel's current state, applies
    the entity writes, then appends exactly one ledger entry. Writes that
    span several records run as a :class:`~fastapi_parcelflow.saga.Saga`
    so a failure midway is compensated or reported, never silently kept.
    """

    def __init__(
        self,
        *,
        store: ParcelStore,
        gateway: PaymentGateway | None = None,
        config: ParcelFlowConfig | None = None,
        retry_store: LedgerRetryStore | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.config = config or ParcelFlowConfig()
        self.retry_store = retry_store
        self.ledger = TrackingLedger(store)
        self.riders = RiderWorkloadManager(store)

    # -- creation -----------------------------------------------------------

    async def create_parcel(self, **fields: Any) -> CreateResult:
        """Store a new parcel under a fresh tracking id."""
        fields = self._validate_parcel_fields(fields)
        fields.update(
            delivery_status=None,
            payment_status=PaymentStatus.UNPAID.value,
            rider_id=None,
            rider_name=None,
            rider_email=None,
            created_at=datetime.now(tz=UTC),
        )

        stored: dict[str, Parcel] = {}

        async def insert() -> Parcel:
            stored["parcel"] = await self._insert_with_tracking_id(fields)
            return stored["parcel"]

        saga = Saga(
            "create_parcel",
            on_retriable_failure=self._ledger_retry_hook(
                lambda: stored["parcel"].tracking_id,
                TrackingStatus.PARCEL_CREATED,
            ),
        )
        saga.add_step("parcel", insert)
        saga.add_step(
            "ledger",
            lambda: self.ledger.append(
                stored["parcel"].tracking_id,
                TrackingStatus.PARCEL_CREATED.value,
            ),
            retriable=True,
        )
        results = await saga.run()

        parcel = results["parcel"]
        logger.info("Parcel %s created as %s", parcel.id, parcel.tracking_id)
        return CreateResult(
            parcel=parcel,
            tracking_id=parcel.tracking_id,
            tracking_entry=results["ledger"],
        )

    async def _insert_with_tracking_id(self, fields: dict[str, Any]) -> Parcel:
        attempts = self.config.tracking_id_max_attempts
        for attempt in range(1, attempts + 1):
            tracking_id = generate_tracking_id(self.config.tracking_id_prefix)
            try:
                return await self.store.parcels.create(
                    tracking_id=tracking_id, **fields
                )
            except TrackingIdConflictError:
                logger.warning(
                    "Tracking id %s taken (attempt %d of %d)",
                    tracking_id,
                    attempt,
                    attempts,
                )
        raise ConflictError(
            f"Could not allocate a unique tracking id in {attempts} attempts"
        )

    @staticmethod
    def _validate_parcel_fields(fields: dict[str, Any]) -> dict[str, Any]:
        fields = dict(fields)
        for key in ("tracking_id", "delivery_status", "payment_status"):
            if fields.pop(key, None) is not None:
                raise ValidationError(f"{key} is assigned by the flow")
        if not fields.get("parcel_name"):
            raise ValidationError("parcel_name is required")
        if not fields.get("sender_email"):
            raise ValidationError("sender_email is required")
        try:
            cost = Decimal(str(fields.get("cost")))
        except InvalidOperation as exc:
            raise ValidationError("cost must be a number") from exc
        if not cost.is_finite() or cost < 0:
            raise ValidationError("cost must be a non-negative number")
        fields["cost"] = cost
        return fields

    # -- rider assignment ---------------------------------------------------

    async def assign_rider(
        self,
        parcel_id: str,
        rider_id: str,
        rider_email: str | None = None,
        rider_name: str | None = None,
    ) -> AssignResult:
        if not parcel_id:
            raise ValidationError("parcel_id is required")
        parcel = await self.store.parcels.get_by_id(parcel_id)
        rider = await self.riders.get(rider_id)

        if DeliveryStatus.parse(parcel.delivery_status).is_delivered:
            raise InvalidTransitionError(
                f"Parcel {parcel_id} is already delivered"
            )
        if self.config.enforce_rider_availability:
            self.riders.ensure_assignable(rider)

        previous_parcel = {key: getattr(parcel, key) for key in _RIDER_FIELDS}
        previous_work_status = rider.work_status
        previous_rider_step = None
        if parcel.rider_id and parcel.rider_id != rider_id:
            previous_rider_step = await self._release_rider_step(
                parcel, parcel.rider_id, name="previous_rider"
            )

        async def restore_parcel() -> UpdateResult:
            return await self.store.parcels.update(
                parcel_id, **previous_parcel
            )

        async def restore_rider() -> UpdateResult:
            return await self.store.riders.update(
                rider_id, work_status=previous_work_status
            )

        saga = Saga(
            "assign_rider",
            on_retriable_failure=self._ledger_retry_hook(
                lambda: parcel.tracking_id, TrackingStatus.DRIVER_ASSIGNED
            ),
        )
        saga.add_step(
            "parcel",
            lambda: self._update_parcel(
                parcel_id,
                delivery_status=TrackingStatus.DRIVER_ASSIGNED.value,
                rider_id=rider_id,
                rider_name=rider_name or rider.name,
                rider_email=rider_email or rider.email,
            ),
            restore_parcel,
        )
        saga.add_step(
            "rider",
            lambda: self.riders.set_work_status(
                rider_id, WorkStatus.IN_DELIVERY
            ),
            restore_rider,
        )
        if previous_rider_step is not None:
            saga.steps.append(previous_rider_step)
        saga.add_step(
            "ledger",
            lambda: self.ledger.append(
                parcel.tracking_id, TrackingStatus.DRIVER_ASSIGNED.value
            ),
            retriable=True,
        )
        results = await saga.run()

        logger.info("Parcel %s assigned to rider %s", parcel_id, rider_id)
        return AssignResult(
            parcel_update=results["parcel"],
            rider_update=results["rider"],
            tracking_entry=results["ledger"],
            previous_rider_update=results.get("previous_rider"),
        )

    # -- status -------------------------------------------------------------

    async def set_status(
        self,
        parcel_id: str,
        status: str,
        rider_id: str | None = None,
    ) -> StatusResult:
        """Set a free-text delivery status.

        ``parcel_delivered`` additionally releases the rider (``rider_id``
        or the parcel's assigned rider) once no other parcel keeps them
        busy.
        """
        if not parcel_id:
            raise ValidationError("parcel_id is required")
        if not status or not status.strip():
            raise ValidationError("status is required")
        if len(status) > MAX_STATUS_LENGTH:
            raise ValidationError(
                f"status must be at most {MAX_STATUS_LENGTH} characters"
            )
        parcel = await self.store.parcels.get_by_id(parcel_id)
        target = DeliveryStatus.parse(status)
        previous_status = parcel.delivery_status

        async def restore_parcel() -> UpdateResult:
            return await self.store.parcels.update(
                parcel_id, delivery_status=previous_status
            )

        saga = Saga(
            "set_status",
            on_retriable_failure=self._ledger_retry_hook(
                lambda: parcel.tracking_id, status
            ),
        )
        saga.add_step(
            "parcel",
            lambda: self._update_parcel(parcel_id, delivery_status=status),
            restore_parcel,
        )

        match target.kind:
            case DeliveryStatusKind.DELIVERED:
                release_step = await self._release_rider_step(
                    parcel, rider_id
                )
                saga.steps.append(release_step)
            case (
                DeliveryStatusKind.CREATED
                | DeliveryStatusKind.PAID
                | DeliveryStatusKind.ASSIGNED
                | DeliveryStatusKind.CUSTOM
            ):
                pass

        saga.add_step(
            "ledger",
            lambda: self.ledger.append(parcel.tracking_id, status),
            retriable=True,
        )
        results = await saga.run()

        logger.info("Parcel %s status set to %s", parcel_id, status)
        return StatusResult(
            parcel_update=results["parcel"],
            rider_update=results.get("rider"),
            tracking_entry=results["ledger"],
        )

    async def _release_rider_step(
        self, parcel: Parcel, rider_id: str | None, name: str = "rider"
    ) -> SagaStep:
        rider_id = rider_id or parcel.rider_id
        if not rider_id:
            raise ValidationError(
                f"Parcel {parcel.id} has no rider to release on delivery"
            )
        rider = await self.riders.get(rider_id)
        previous_work_status = rider.work_status

        async def restore_rider() -> UpdateResult:
            return await self.store.riders.update(
                rider_id, work_status=previous_work_status
            )

        return SagaStep(
            name=name,
            action=lambda: self.riders.release(rider_id),
            compensation=restore_rider,
        )

    # -- payment ------------------------------------------------------------

    async def create_checkout_session(self, parcel_id: str) -> str:
        """Open a hosted checkout for the parcel and return its URL."""
        gateway = self._require_gateway()
        if not parcel_id:
            raise ValidationError("parcel_id is required")
        parcel = await self.store.parcels.get_by_id(parcel_id)
        if parcel.payment_status == PaymentStatus.PAID:
            raise ConflictError(f"Parcel {parcel_id} is already paid")

        site = self.config.site_domain.rstrip("/")
        session = await gateway.create_checkout_session(
            amount=Decimal(parcel.cost),
            currency=self.config.currency,
            product_name=f"Please pay for: {parcel.parcel_name}",
            customer_email=parcel.sender_email,
            metadata={
                "parcelId": str(parcel.id),
                "parcelName": parcel.parcel_name,
                "trackingId": parcel.tracking_id,
            },
            success_url=(
                f"{site}/dashboard/payment-success"
                "?session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{site}/dashboard/payment-canceled",
        )
        if not session.url:
            raise PaymentGatewayError(
                f"Checkout session {session.session_id} has no redirect url"
            )
        logger.info(
            "Checkout session %s opened for parcel %s",
            session.session_id,
            parcel_id,
        )
        return session.url

    async def confirm_payment(
        self, session_reference: str
    ) -> PaymentConfirmationResult:
        gateway = self._require_gateway()
        reconciler = PaymentReconciler(self.store, gateway, self.ledger)
        settled: dict[str, str] = {}

        async def settle_parcel(session: CheckoutSession) -> ParcelSettlement:
            settlement = await self._settlement_for(session)
            settled["tracking_id"] = settlement.tracking_id
            return settlement

        return await reconciler.reconcile(
            session_reference,
            settle_parcel,
            on_retriable_failure=self._ledger_retry_hook(
                lambda: settled["tracking_id"], TrackingStatus.PARCEL_PAID
            ),
        )

    async def _settlement_for(
        self, session: CheckoutSession
    ) -> ParcelSettlement:
        parcel = await self._parcel_for_session(session)
        if parcel.payment_status == PaymentStatus.PAID:
            raise ConflictError(
                f"Parcel {parcel.id} is already paid; session "
                f"{session.session_id} was not settled"
            )
        previous = {
            "payment_status": parcel.payment_status,
            "delivery_status": parcel.delivery_status,
        }

        async def restore_parcel() -> UpdateResult:
            return await self.store.parcels.update(parcel.id, **previous)

        step = SagaStep(
            name="parcel",
            action=lambda: self._update_parcel(
                parcel.id,
                payment_status=PaymentStatus.PAID.value,
                delivery_status=PENDING_PICKUP,
            ),
            compensation=restore_parcel,
        )
        return ParcelSettlement(
            step=step,
            parcel_id=str(parcel.id),
            tracking_id=parcel.tracking_id,
            parcel_name=parcel.parcel_name,
        )

    async def _parcel_for_session(self, session: CheckoutSession) -> Parcel:
        parcel_id = session.metadata.get("parcelId")
        tracking_id = session.metadata.get("trackingId")
        if parcel_id:
            parcel = await self.store.parcels.get_by_id(parcel_id)
            if tracking_id and parcel.tracking_id != tracking_id:
                raise ValidationError(
                    f"Session {session.session_id} tracking id does not "
                    f"match parcel {parcel_id}"
                )
            return parcel
        if tracking_id:
            parcel = await self.store.parcels.get_by_tracking_id(tracking_id)
            if parcel is None:
                raise TrackingIdNotFoundError(tracking_id)
            return parcel
        raise ValidationError(
            f"Session {session.session_id} does not reference a parcel"
        )

    def _require_gateway(self) -> PaymentGateway:
        if self.gateway is None:
            raise ExternalServiceError("No payment gateway configured")
        return self.gateway

    # -- history ------------------------------------------------------------

    async def history(self, tracking_id: str) -> list[TrackingEntry]:
        entries = await self.ledger.history(tracking_id)
        if not entries:
            parcel = await self.store.parcels.get_by_tracking_id(tracking_id)
            if parcel is None:
                raise TrackingIdNotFoundError(tracking_id)
        return entries

    async def deliveries_per_day(self, rider_email: str) -> dict[date, int]:
        return await self.ledger.deliveries_per_day(rider_email)

    # -- helpers ------------------------------------------------------------

    async def _update_parcel(
        self, parcel_id: str, **fields: Any
    ) -> UpdateResult:
        result = await self.store.parcels.update(parcel_id, **fields)
        if not result.matched:
            raise ParcelNotFoundError(parcel_id)
        return result

    def _ledger_retry_hook(
        self, tracking_id: Callable[[], str], status: str
    ) -> RetriableFailureHook:
        """Queue a failed ledger append for replay by the retry worker."""

        async def hook(step: SagaStep, exc: Exception) -> bool:
            if self.retry_store is None or not self.config.retry_enabled:
                return False
            retry_id = await self.retry_store.store_failed_append(
                tracking_id=tracking_id(),
                event_status=str(status),
                error=str(exc),
            )
            logger.warning(
                "Ledger append %s queued for retry as %s", status, retry_id
            )
            return True

        return hook
