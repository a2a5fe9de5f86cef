"""Parcel flow exceptions and their HTTP response mapping."""

from __future__ import annotations

from collections.abc import Sequence

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ParcelFlowError(Exception):
    """Base class for all parcel flow errors."""

    code = "parcelflow_error"


class ValidationError(ParcelFlowError):
    """Missing or malformed identifiers or required fields."""

    code = "validation_error"


class NotFoundError(ParcelFlowError):
    """A referenced parcel, rider or tracking id does not exist."""

    code = "not_found"


class ParcelNotFoundError(NotFoundError):
    def __init__(self, parcel_id: str) -> None:
        self.parcel_id = parcel_id
        super().__init__(f"Parcel {parcel_id} not found")


class RiderNotFoundError(NotFoundError):
    def __init__(self, rider_id: str) -> None:
        self.rider_id = rider_id
        super().__init__(f"Rider {rider_id} not found")


class TrackingIdNotFoundError(NotFoundError):
    def __init__(self, tracking_id: str) -> None:
        self.tracking_id = tracking_id
        super().__init__(f"Tracking id {tracking_id} not found")


class ConflictError(ParcelFlowError):
    """The request conflicts with the current state of a record."""

    code = "conflict"


class DuplicatePaymentError(ConflictError):
    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(
            f"Payment {transaction_id} has already been recorded"
        )


class DuplicateUserError(ConflictError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"User {email} already exists")


class TrackingIdConflictError(ConflictError):
    def __init__(self, tracking_id: str) -> None:
        self.tracking_id = tracking_id
        super().__init__(f"Tracking id {tracking_id} is already in use")


class RiderUnavailableError(ConflictError):
    def __init__(self, rider_id: str, reason: str) -> None:
        self.rider_id = rider_id
        self.reason = reason
        super().__init__(f"Rider {rider_id} cannot be assigned: {reason}")


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"


class ExternalServiceError(ParcelFlowError):
    """An external collaborator failed or returned garbage."""

    code = "external_service_error"


class PaymentGatewayError(ExternalServiceError):
    code = "payment_gateway_error"


class PartialFailureError(ParcelFlowError):
    """One write of a multi-entity transition failed after another succeeded.

    ``completed_steps`` lists the steps that were applied before
    ``failed_step`` raised. ``compensated_steps`` lists those that were
    rolled back again; anything completed but not compensated is still in
    effect. ``retry_scheduled`` is set when the failed step was queued for
    forward recovery instead.
    """

    code = "partial_failure"

    def __init__(
        self,
        operation: str,
        *,
        failed_step: str,
        completed_steps: Sequence[str] = (),
        compensated_steps: Sequence[str] = (),
        retry_scheduled: bool = False,
        reason: str = "",
    ) -> None:
        self.operation = operation
        self.failed_step = failed_step
        self.completed_steps = tuple(completed_steps)
        self.compensated_steps = tuple(compensated_steps)
        self.retry_scheduled = retry_scheduled
        self.reason = reason
        message = f"{operation}: step {failed_step!r} failed"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)

    @property
    def pending_steps(self) -> tuple[str, ...]:
        """Completed steps whose effect was not rolled back."""
        return tuple(
            step
            for step in self.completed_steps
            if step not in self.compensated_steps
        )


def _error_response(
    status_code: int, exc: ParcelFlowError, **extra
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code, **extra},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register parcel flow exception handlers on a FastAPI app.

    More specific handlers must be registered first so FastAPI
    matches them before the generic ParcelFlowError handler.

    Handler order (most specific first):
    1. NotFoundError → 404
    2. ConflictError → 409
    3. ValidationError → 422
    4. ExternalServiceError → 502
    5. PartialFailureError → 500
    6. ParcelFlowError → 400 (catch-all)
    """

    @app.exception_handler(NotFoundError)
    async def _not_found(
        request: Request,
        exc: NotFoundError,
    ) -> JSONResponse:
        return _error_response(404, exc)

    @app.exception_handler(ConflictError)
    async def _conflict(
        request: Request,
        exc: ConflictError,
    ) -> JSONResponse:
        return _error_response(409, exc)

    @app.exception_handler(ValidationError)
    async def _validation(
        request: Request,
        exc: ValidationError,
    ) -> JSONResponse:
        return _error_response(422, exc)

    @app.exception_handler(ExternalServiceError)
    async def _external_service(
        request: Request,
        exc: ExternalServiceError,
    ) -> JSONResponse:
        return _error_response(502, exc)

    @app.exception_handler(PartialFailureError)
    async def _partial_failure(
        request: Request,
        exc: PartialFailureError,
    ) -> JSONResponse:
        return _error_response(
            500,
            exc,
            operation=exc.operation,
            failed_step=exc.failed_step,
            completed_steps=list(exc.completed_steps),
            compensated_steps=list(exc.compensated_steps),
            retry_scheduled=exc.retry_scheduled,
        )

    @app.exception_handler(ParcelFlowError)
    async def _parcelflow_error(
        request: Request,
        exc: ParcelFlowError,
    ) -> JSONResponse:
        return _error_response(400, exc)
