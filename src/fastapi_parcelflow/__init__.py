"""FastAPI parcel flow public API."""

from typing import TYPE_CHECKING

__version__ = "0.1.0"

__all__ = [
    "LedgerRetryStore",
    "ParcelFlow",
    "ParcelFlowConfig",
    "ParcelFlowError",
    "ParcelStore",
    "PartialFailureError",
    "StripeCheckoutGateway",
    "__version__",
    "create_parcel_router",
    "register_exception_handlers",
]

if TYPE_CHECKING:
    from fastapi_parcelflow.config import ParcelFlowConfig
    from fastapi_parcelflow.exceptions import (
        ParcelFlowError,
        PartialFailureError,
        register_exception_handlers,
    )
    from fastapi_parcelflow.flow import ParcelFlow
    from fastapi_parcelflow.gateway import StripeCheckoutGateway
    from fastapi_parcelflow.protocols import LedgerRetryStore
    from fastapi_parcelflow.router import create_parcel_router
    from fastapi_parcelflow.store import ParcelStore


def __getattr__(name: str):
    # Lazy imports to avoid loading all submodules on package import.
    if name == "ParcelFlowConfig":
        from fastapi_parcelflow.config import ParcelFlowConfig

        return ParcelFlowConfig
    if name == "create_parcel_router":
        from fastapi_parcelflow.router import create_parcel_router

        return create_parcel_router
    if name == "ParcelFlow":
        from fastapi_parcelflow.flow import ParcelFlow

        return ParcelFlow
    if name == "ParcelStore":
        from fastapi_parcelflow.store import ParcelStore

        return ParcelStore
    if name == "StripeCheckoutGateway":
        from fastapi_parcelflow.gateway import StripeCheckoutGateway

        return StripeCheckoutGateway
    if name in (
        "ParcelFlowError",
        "PartialFailureError",
        "register_exception_handlers",
    ):
        from fastapi_parcelflow import exceptions

        return getattr(exceptions, name)
    if name == "LedgerRetryStore":
        from fastapi_parcelflow import protocols

        return getattr(protocols, name)
    raise AttributeError(
        f"module 'fastapi_parcelflow' has no attribute {name!r}"
    )
