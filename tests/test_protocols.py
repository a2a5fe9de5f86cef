"""Protocol conformance tests."""

from conftest import (
    FakeGateway,
    InMemoryParcelRepo,
    InMemoryPaymentRepo,
    InMemoryRiderRepo,
    InMemoryTrackingRepo,
    InMemoryUserRepo,
    RetryStore,
)
from fastapi_parcelflow.protocols import (
    LedgerRetryStore,
    ParcelRepository,
    PaymentGateway,
    PaymentRepository,
    RiderRepository,
    TrackingRepository,
    UserRepository,
)


class _IncompleteRetryStore:
    """Missing methods, should NOT satisfy protocol."""

    async def store_failed_append(
        self, tracking_id: str, event_status: str, error: str
    ) -> str:
        return "retry-1"


def test_full_store_satisfies_protocol() -> None:
    assert isinstance(RetryStore(), LedgerRetryStore)


def test_incomplete_store_does_not_satisfy_protocol() -> None:
    assert not isinstance(_IncompleteRetryStore(), LedgerRetryStore)


def test_repositories_satisfy_protocols() -> None:
    assert isinstance(InMemoryParcelRepo(), ParcelRepository)
    assert isinstance(InMemoryRiderRepo(), RiderRepository)
    assert isinstance(InMemoryUserRepo(), UserRepository)
    assert isinstance(InMemoryPaymentRepo(), PaymentRepository)
    assert isinstance(InMemoryTrackingRepo(), TrackingRepository)


def test_gateway_satisfies_protocol() -> None:
    assert isinstance(FakeGateway(), PaymentGateway)


async def test_sqlalchemy_repositories_satisfy_protocols(
    sqlalchemy_store,
) -> None:
    assert isinstance(sqlalchemy_store.parcels, ParcelRepository)
    assert isinstance(sqlalchemy_store.riders, RiderRepository)
    assert isinstance(sqlalchemy_store.users, UserRepository)
    assert isinstance(sqlalchemy_store.payments, PaymentRepository)
    assert isinstance(sqlalchemy_store.trackings, TrackingRepository)
