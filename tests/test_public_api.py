"""Public API surface tests."""

import re

import fastapi_parcelflow


def test_all_exports_exact_set() -> None:
    expected = {
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
    }
    assert set(fastapi_parcelflow.__all__) == expected


def test_all_exports_importable() -> None:
    for name in fastapi_parcelflow.__all__:
        obj = getattr(fastapi_parcelflow, name)
        assert obj is not None, f"{name} resolved to None"


def test_lazy_exports_are_the_module_objects() -> None:
    from fastapi_parcelflow.flow import ParcelFlow
    from fastapi_parcelflow.router import create_parcel_router

    assert fastapi_parcelflow.ParcelFlow is ParcelFlow
    assert fastapi_parcelflow.create_parcel_router is create_parcel_router


def test_version_semver_format() -> None:
    version = fastapi_parcelflow.__version__
    assert re.match(r"^\d+\.\d+\.\d+", version), (
        f"Version {version!r} does not match semver format"
    )
