"""User account endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fastapi_parcelflow.dependencies import get_rider_manager
from fastapi_parcelflow.schemas import (
    RegisterUserRequest,
    UserRegistrationResponse,
    UserResponse,
)

router = APIRouter()


@router.post("/users", response_model=UserRegistrationResponse)
async def register_user(
    body: RegisterUserRequest,
    riders=Depends(get_rider_manager),
) -> UserRegistrationResponse:
    """Create a user account; an existing email is returned unchanged."""
    registration = await riders.register_user(
        body.email, display_name=body.display_name
    )
    return UserRegistrationResponse(
        user=UserResponse.from_user(registration.user),
        inserted=registration.inserted,
    )
