"""Router factory for fastapi-parcelflow."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from fastapi_parcelflow.config import ParcelFlowConfig
from fastapi_parcelflow.exceptions import register_exception_handlers
from fastapi_parcelflow.protocols import LedgerRetryStore, PaymentGateway
from fastapi_parcelflow.routes.parcels import router as parcels_router
from fastapi_parcelflow.routes.payments import router as payments_router
from fastapi_parcelflow.routes.riders import router as riders_router
from fastapi_parcelflow.routes.trackings import router as trackings_router
from fastapi_parcelflow.routes.users import router as users_router
from fastapi_parcelflow.store import ParcelStore


def create_parcel_router(
    *,
    config: ParcelFlowConfig,
    store: ParcelStore,
    gateway: PaymentGateway | None = None,
    retry_store: LedgerRetryStore | None = None,
) -> APIRouter:
    """Create a configured API router."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        app.state.parcelflow_config = config
        app.state.parcelflow_store = store
        app.state.parcelflow_gateway = gateway
        app.state.parcelflow_retry_store = retry_store
        register_exception_handlers(app)
        yield

    router = APIRouter(lifespan=lifespan)
    router.include_router(parcels_router)
    router.include_router(payments_router)
    router.include_router(riders_router)
    router.include_router(trackings_router)
    router.include_router(users_router)
    return router
