"""Dependency providers for request handlers."""

from __future__ import annotations

from fastapi import Request

from fastapi_parcelflow.config import ParcelFlowConfig
from fastapi_parcelflow.flow import ParcelFlow
from fastapi_parcelflow.protocols import LedgerRetryStore, PaymentGateway
from fastapi_parcelflow.riders import RiderWorkloadManager
from fastapi_parcelflow.store import ParcelStore


def get_config(request: Request) -> ParcelFlowConfig:
    """Read config from FastAPI app state."""
    return request.app.state.parcelflow_config


def get_store(request: Request) -> ParcelStore:
    """Read the repository bundle from FastAPI app state."""
    return request.app.state.parcelflow_store


def get_gateway(request: Request) -> PaymentGateway | None:
    """Read the payment gateway from FastAPI app state."""
    return getattr(request.app.state, "parcelflow_gateway", None)


def get_retry_store(request: Request) -> LedgerRetryStore | None:
    """Read retry store from FastAPI app state."""
    return getattr(request.app.state, "parcelflow_retry_store", None)


def get_flow(request: Request) -> ParcelFlow:
    """Create ParcelFlow for the current request."""
    return ParcelFlow(
        store=get_store(request),
        gateway=get_gateway(request),
        config=get_config(request),
        retry_store=get_retry_store(request),
    )


def get_rider_manager(request: Request) -> RiderWorkloadManager:
    return RiderWorkloadManager(get_store(request))
