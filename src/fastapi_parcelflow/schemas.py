"""Request and response schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fastapi_parcelflow.types import MAX_STATUS_LENGTH, UpdateResult


class CreateParcelRequest(BaseModel):
    """Parcel fields supplied by the sender.

    Tracking id, delivery and payment status are assigned by the flow and
    are not accepted here.
    """

    model_config = ConfigDict(extra="forbid")

    parcel_name: str = Field(min_length=1)
    parcel_type: str = ""
    weight_kg: Decimal | None = None
    sender_name: str = ""
    sender_email: str = Field(min_length=1)
    receiver_name: str = ""
    receiver_email: str = ""
    receiver_address: str = ""
    cost: Decimal = Field(ge=0)


class AssignRiderRequest(BaseModel):
    rider_id: str = Field(min_length=1)
    rider_email: str | None = None
    rider_name: str | None = None


class UpdateStatusRequest(BaseModel):
    delivery_status: str = Field(min_length=1, max_length=MAX_STATUS_LENGTH)
    rider_id: str | None = None


class RegisterRiderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    phone: str = ""
    district: str = ""


class RegisterUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(min_length=1)
    display_name: str = ""


class ParcelResponse(BaseModel):
    id: str
    tracking_id: str
    parcel_name: str
    sender_email: str
    cost: Decimal
    delivery_status: str | None = None
    payment_status: str
    rider_id: str | None = None
    rider_name: str | None = None
    rider_email: str | None = None
    created_at: datetime

    @classmethod
    def from_parcel(cls, parcel) -> ParcelResponse:
        return cls(
            id=str(parcel.id),
            tracking_id=parcel.tracking_id,
            parcel_name=parcel.parcel_name,
            sender_email=parcel.sender_email,
            cost=parcel.cost,
            delivery_status=parcel.delivery_status,
            payment_status=parcel.payment_status,
            rider_id=parcel.rider_id,
            rider_name=parcel.rider_name,
            rider_email=parcel.rider_email,
            created_at=parcel.created_at,
        )


class RiderResponse(BaseModel):
    id: str
    name: str
    email: str
    status: str
    work_status: str | None = None

    @classmethod
    def from_rider(cls, rider) -> RiderResponse:
        return cls(
            id=str(rider.id),
            name=rider.name,
            email=rider.email,
            status=rider.status,
            work_status=rider.work_status,
        )


class UserResponse(BaseModel):
    email: str
    display_name: str = ""
    role: str

    @classmethod
    def from_user(cls, user) -> UserResponse:
        return cls(
            email=user.email,
            display_name=user.display_name or "",
            role=user.role,
        )


class UserRegistrationResponse(BaseModel):
    user: UserResponse
    inserted: bool


class PaymentRecordResponse(BaseModel):
    transaction_id: str
    tracking_id: str
    parcel_id: str
    amount: Decimal
    currency: str
    customer_email: str | None = None
    paid_at: datetime

    @classmethod
    def from_record(cls, record) -> PaymentRecordResponse:
        return cls(
            transaction_id=record.transaction_id,
            tracking_id=record.tracking_id,
            parcel_id=str(record.parcel_id),
            amount=record.amount,
            currency=record.currency,
            customer_email=record.customer_email,
            paid_at=record.paid_at,
        )


class UpdateResultResponse(BaseModel):
    matched_count: int
    modified_count: int

    @classmethod
    def from_result(cls, result: UpdateResult) -> UpdateResultResponse:
        return cls(
            matched_count=result.matched_count,
            modified_count=result.modified_count,
        )


class TrackingEntryResponse(BaseModel):
    tracking_id: str
    status: str
    details: str
    created_at: datetime

    @classmethod
    def from_entry(cls, entry) -> TrackingEntryResponse:
        return cls(
            tracking_id=entry.tracking_id,
            status=entry.status,
            details=entry.details,
            created_at=entry.created_at,
        )


class CreateParcelResponse(BaseModel):
    parcel: ParcelResponse
    tracking_id: str


class AssignResponse(BaseModel):
    parcel: UpdateResultResponse
    rider: UpdateResultResponse


class StatusResponse(BaseModel):
    parcel: UpdateResultResponse
    rider: UpdateResultResponse | None = None


class CheckoutSessionResponse(BaseModel):
    url: str


class PaymentConfirmationResponse(BaseModel):
    success: bool
    tracking_id: str | None = None
    transaction_id: str | None = None
    already_settled: bool = False
    parcel_update: UpdateResultResponse | None = None
    payment_record: PaymentRecordResponse | None = None

    @classmethod
    def from_result(cls, result) -> PaymentConfirmationResponse:
        return cls(
            success=result.success,
            tracking_id=result.tracking_id,
            transaction_id=result.transaction_id,
            already_settled=result.already_settled,
            parcel_update=(
                UpdateResultResponse.from_result(result.parcel_update)
                if result.parcel_update is not None
                else None
            ),
            payment_record=(
                PaymentRecordResponse.from_record(result.payment_record)
                if result.payment_record is not None
                else None
            ),
        )


class DeliveriesPerDayItem(BaseModel):
    day: date
    delivered_count: int
