"""End-to-end integration tests exercising the full parcel lifecycle."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import FakeGateway, parcel_fields
from fastapi_parcelflow.config import ParcelFlowConfig
from fastapi_parcelflow.exceptions import register_exception_handlers
from fastapi_parcelflow.flow import ParcelFlow
from fastapi_parcelflow.router import create_parcel_router

# ---------------------------------------------------------------------------
# HTTP lifecycle over in-memory storage
# ---------------------------------------------------------------------------


def test_full_lifecycle_over_http(store, gateway) -> None:
    """create -> checkout -> pay (twice) -> assign -> deliver -> history."""
    store.users.roles["rita@example.com"] = "user"
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(
        create_parcel_router(
            config=ParcelFlowConfig(), store=store, gateway=gateway
        )
    )

    with TestClient(app) as client:
        created = client.post(
            "/parcels",
            json={
                "parcel_name": "Books",
                "sender_email": "sender@example.com",
                "cost": "150",
            },
        ).json()
        parcel_id = created["parcel"]["id"]
        tracking_id = created["tracking_id"]

        checkout = client.post(f"/parcels/{parcel_id}/checkout-session")
        assert checkout.status_code == 200
        metadata = gateway.created[0]["metadata"]
        gateway.add_session("cs_paid", metadata=metadata)

        assert client.patch("/payment-success?session_id=cs_paid").json()[
            "success"
        ]
        again = client.patch("/payment-success?session_id=cs_paid").json()
        assert again["already_settled"] is True

        rider_id = client.post(
            "/riders", json={"name": "Rita", "email": "rita@example.com"}
        ).json()["id"]
        client.patch(f"/riders/{rider_id}/approve")

        client.patch(
            f"/parcels/{parcel_id}/assign", json={"rider_id": rider_id}
        )
        client.patch(
            f"/parcels/{parcel_id}/status",
            json={"delivery_status": "parcel_delivered"},
        )

        logs = client.get(f"/trackings/{tracking_id}/logs").json()
        per_day = client.get(
            "/riders/delivery-per-day", params={"email": "rita@example.com"}
        ).json()

    assert [entry["status"] for entry in logs] == [
        "parcel_created",
        "parcel_paid",
        "driver_assigned",
        "parcel_delivered",
    ]
    assert [entry["details"] for entry in logs] == [
        "parcel created",
        "parcel paid",
        "driver assigned",
        "parcel delivered",
    ]
    assert per_day == [
        {"day": datetime.now(tz=UTC).date().isoformat(), "delivered_count": 1}
    ]
    parcel = store.parcels.items[parcel_id]
    assert parcel.payment_status == "paid"
    assert parcel.delivery_status == "parcel_delivered"
    assert store.riders.items[rider_id].work_status == "available"
    assert store.users.roles["rita@example.com"] == "rider"
    assert len(store.payments.items) == 1


# ---------------------------------------------------------------------------
# Flow over SQLAlchemy storage
# ---------------------------------------------------------------------------


async def test_full_lifecycle_over_sqlalchemy(
    sqlalchemy_store, sqlalchemy_retry_store
) -> None:
    gateway = FakeGateway()
    flow = ParcelFlow(
        store=sqlalchemy_store,
        gateway=gateway,
        retry_store=sqlalchemy_retry_store,
    )
    await sqlalchemy_store.users.create(email="rita@example.com")

    created = await flow.create_parcel(**parcel_fields())
    parcel_id = created.parcel.id
    await flow.create_checkout_session(parcel_id)
    gateway.add_session("cs_paid", metadata=gateway.created[0]["metadata"])

    first = await flow.confirm_payment("cs_paid")
    second = await flow.confirm_payment("cs_paid")

    rider = await flow.riders.register(name="Rita", email="rita@example.com")
    await flow.riders.approve(rider.id)
    await flow.assign_rider(parcel_id, rider.id)
    await flow.set_status(parcel_id, "parcel_delivered")

    assert first.success and not first.already_settled
    assert second.already_settled
    parcel = await sqlalchemy_store.parcels.get_by_id(parcel_id)
    assert parcel.payment_status == "paid"
    assert parcel.delivery_status == "parcel_delivered"
    assert parcel.rider_email == "rita@example.com"
    stored_rider = await sqlalchemy_store.riders.get_by_id(rider.id)
    assert stored_rider.status == "approved"
    assert stored_rider.work_status == "available"
    user = await sqlalchemy_store.users.get_by_email("rita@example.com")
    assert user.role == "rider"

    history = await flow.history(created.tracking_id)
    assert [entry.status for entry in history] == [
        "parcel_created",
        "parcel_paid",
        "driver_assigned",
        "parcel_delivered",
    ]
    counts = await flow.deliveries_per_day("rita@example.com")
    assert sum(counts.values()) == 1
