"""Stripe Checkout gateway over plain HTTP."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import httpx

from fastapi_parcelflow.config import ParcelFlowConfig
from fastapi_parcelflow.exceptions import (
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from fastapi_parcelflow.types import CheckoutSession

logger = logging.getLogger(__name__)

_CENTS = Decimal("100")


def to_minor_units(amount: Decimal) -> int:
    return int((amount * _CENTS).to_integral_value(rounding=ROUND_HALF_UP))


def parse_session(data: Mapping[str, Any]) -> CheckoutSession:
    """Normalise a Stripe checkout session object."""
    try:
        session_id = data["id"]
        amount = Decimal(data.get("amount_total") or 0) / _CENTS
        payment_status = data["payment_status"]
    except (KeyError, TypeError, InvalidOperation) as exc:
        raise PaymentGatewayError(
            f"Unparseable checkout session: {exc!r}"
        ) from exc

    intent = data.get("payment_intent")
    if isinstance(intent, Mapping):
        intent = intent.get("id")

    customer_email = data.get("customer_email")
    if not customer_email:
        details = data.get("customer_details") or {}
        customer_email = details.get("email")

    return CheckoutSession(
        session_id=session_id,
        transaction_id=intent,
        payment_status=payment_status,
        amount=amount,
        currency=data.get("currency") or "",
        customer_email=customer_email,
        metadata=dict(data.get("metadata") or {}),
        url=data.get("url"),
    )


class StripeCheckoutGateway:
    """Creates and retrieves Stripe Checkout sessions.

    Every request carries the configured timeout. Transport failures and
    non-2xx answers surface as :class:`PaymentGatewayError`.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.stripe.com/v1",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: ParcelFlowConfig,
        client: httpx.AsyncClient | None = None,
    ) -> StripeCheckoutGateway:
        return cls(
            api_key=config.stripe_secret_key,
            base_url=config.stripe_api_base,
            timeout=config.payment_gateway_timeout,
            client=client,
        )

    async def create_checkout_session(
        self,
        *,
        amount: Decimal,
        currency: str,
        product_name: str,
        customer_email: str | None,
        metadata: Mapping[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        form: dict[str, str | int] = {
            "mode": "payment",
            "line_items[0][quantity]": 1,
            "line_items[0][price_data][currency]": currency,
            "line_items[0][price_data][unit_amount]": to_minor_units(amount),
            "line_items[0][price_data][product_data][name]": product_name,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            form["customer_email"] = customer_email
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = value

        data = await self._request("POST", "/checkout/sessions", data=form)
        return parse_session(data)

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        if not session_id:
            raise ValidationError("session id is required")
        data = await self._request("GET", f"/checkout/sessions/{session_id}")
        return parse_session(data)

    async def _request(
        self, method: str, path: str, **kwargs: Any
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.request(
                    method,
                    url,
                    headers=headers,
                    timeout=self.timeout,
                    **kwargs,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method, url, headers=headers, **kwargs
                    )
        except httpx.HTTPError as exc:
            logger.warning(
                "Payment gateway %s %s failed: %s", method, path, exc
            )
            raise PaymentGatewayError(
                f"Payment gateway unreachable: {exc}"
            ) from exc

        if response.status_code == 404:
            raise NotFoundError(f"Payment session for {path} not found")
        if response.is_error:
            raise PaymentGatewayError(
                f"Payment gateway returned {response.status_code}: "
                f"{_error_message(response)}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise PaymentGatewayError(
                "Payment gateway returned invalid JSON"
            ) from exc
        if not isinstance(payload, dict):
            raise PaymentGatewayError("Payment gateway returned invalid JSON")
        return payload


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.text[:200]
