"""Payment settlement."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi_parcelflow.exceptions import (
    ConflictError,
    DuplicatePaymentError,
    PaymentGatewayError,
    ValidationError,
)
from fastapi_parcelflow.ledger import TrackingLedger
from fastapi_parcelflow.protocols import PaymentGateway, PaymentRecord
from fastapi_parcelflow.saga import RetriableFailureHook, Saga, SagaStep
from fastapi_parcelflow.store import ParcelStore
from fastapi_parcelflow.types import (
    CheckoutSession,
    PaymentConfirmationResult,
    TrackingStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class ParcelSettlement:
    """The parcel side of a settlement, prepared by the flow."""

    step: SagaStep
    parcel_id: str
    tracking_id: str
    parcel_name: str = ""


SettleParcel = Callable[[CheckoutSession], Awaitable[ParcelSettlement]]


class PaymentReconciler:
    """Turns a paid checkout session into exactly one payment record.

    The payment record's transaction id is the idempotency key. The
    existence check runs before any write, and the insert itself relies on
    the repository's uniqueness guarantees so two concurrent confirmations
    of one session settle once, and a parcel never gets a second record.
    """

    def __init__(
        self,
        store: ParcelStore,
        gateway: PaymentGateway,
        ledger: TrackingLedger,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.ledger = ledger

    async def reconcile(
        self,
        session_reference: str,
        settle_parcel: SettleParcel,
        *,
        on_retriable_failure: RetriableFailureHook | None = None,
    ) -> PaymentConfirmationResult:
        """Settle the payment behind ``session_reference``.

        ``settle_parcel`` resolves the parcel and builds the saga step that
        marks it paid; it is invoked only for a first-time paid session.
        """
        if not session_reference:
            raise ValidationError("payment session reference is required")

        session = await self.gateway.retrieve_session(session_reference)
        transaction_id = session.transaction_id

        if transaction_id:
            existing = await self.store.payments.get_by_transaction_id(
                transaction_id
            )
            if existing is not None:
                logger.info(
                    "Payment %s already settled for %s",
                    transaction_id,
                    existing.tracking_id,
                )
                return self._already_settled(existing)

        if not session.is_paid:
            logger.info(
                "Session %s not paid (%s), nothing settled",
                session.session_id,
                session.payment_status,
            )
            return PaymentConfirmationResult(success=False)

        if not transaction_id:
            raise PaymentGatewayError(
                f"Paid session {session.session_id} has no payment intent"
            )

        settlement = await settle_parcel(session)
        tracking_id = settlement.tracking_id

        saga = Saga(
            "confirm_payment", on_retriable_failure=on_retriable_failure
        )
        saga.add_step(
            "payment",
            lambda: self._record_payment(session, settlement),
            lambda: self.store.payments.delete(transaction_id),
        )
        saga.steps.append(settlement.step)
        saga.add_step(
            "ledger",
            lambda: self.ledger.append(
                tracking_id, TrackingStatus.PARCEL_PAID.value
            ),
            retriable=True,
        )

        try:
            results = await saga.run()
        except DuplicatePaymentError as exc:
            # Lost the insert race: another confirmation settled it.
            existing = await self.store.payments.get_by_transaction_id(
                transaction_id
            )
            if existing is None:
                raise ConflictError(
                    f"Parcel {tracking_id} already has a payment record"
                ) from exc
            return self._already_settled(existing)

        logger.info(
            "Payment %s settled for parcel %s",
            transaction_id,
            tracking_id,
        )
        return PaymentConfirmationResult(
            success=True,
            tracking_id=tracking_id,
            transaction_id=transaction_id,
            parcel_update=results[settlement.step.name],
            payment_record=results["payment"],
        )

    async def _record_payment(
        self, session: CheckoutSession, settlement: ParcelSettlement
    ) -> PaymentRecord:
        return await self.store.payments.create(
            transaction_id=session.transaction_id,
            tracking_id=settlement.tracking_id,
            parcel_id=settlement.parcel_id,
            parcel_name=settlement.parcel_name,
            amount=session.amount,
            currency=session.currency,
            customer_email=session.customer_email,
            payment_status=session.payment_status,
            paid_at=datetime.now(tz=UTC),
        )

    @staticmethod
    def _already_settled(record: PaymentRecord) -> PaymentConfirmationResult:
        return PaymentConfirmationResult(
            success=True,
            tracking_id=record.tracking_id,
            transaction_id=record.transaction_id,
            payment_record=record,
            already_settled=True,
        )
