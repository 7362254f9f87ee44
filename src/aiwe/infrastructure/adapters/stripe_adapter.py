"""
Stripe local adapter.

Implements balance lookup and payment-intent operations over Stripe's REST
API through the shared HTTP transport. Stripe expects form-encoded request
bodies and a bearer secret key.
"""

import os
from typing import Any, Optional

from aiwe.core.domain.errors import CredentialError
from aiwe.core.interfaces.transport import HttpTransportProtocol
from aiwe.infrastructure.adapters.registry import LocalAdapter

STRIPE_API_BASE = "https://api.stripe.com/v1"


class StripeAdapter(LocalAdapter):
    """Local adapter for the `stripe` service."""

    service_name = "stripe"
    description = "Stripe payments: account balance and payment intents"
    actions = [
        {
            "name": "getBalance",
            "description": "Retrieve the current balance from Stripe",
        },
        {
            "name": "listPayments",
            "description": "List recent payment intents",
            "parameters": {"limit": {"type": "number", "required": False}},
        },
        {
            "name": "createPayment",
            "description": "Create a new payment intent",
            "parameters": {
                "amount": {"type": "number", "required": True},
                "currency": {"type": "string", "required": True},
                "description": {"type": "string", "required": True},
            },
        },
        {
            "name": "refundPayment",
            "description": "Refund a payment intent",
            "parameters": {"paymentIntentId": {"type": "string", "required": True}},
        },
    ]
    implementations = {
        "getBalance": "get_balance",
        "listPayments": "list_payments",
        "createPayment": "create_payment",
        "refundPayment": "refund_payment",
    }

    def __init__(
        self,
        transport: HttpTransportProtocol,
        secret_key: Optional[str] = None,
        api_base: str = STRIPE_API_BASE,
    ):
        self.transport = transport
        self.secret_key = secret_key or os.getenv("STRIPE_SECRET_KEY")
        self.api_base = api_base.rstrip("/")

    def _headers(self) -> dict[str, str]:
        if not self.secret_key:
            raise CredentialError(
                "Missing credentials for stripe:\nRequired: STRIPE_SECRET_KEY",
                missing=["STRIPE_SECRET_KEY"],
                service_name=self.service_name,
            )
        key = self.secret_key
        if not key.startswith("Bearer "):
            key = f"Bearer {key}"
        return {"Authorization": key}

    async def get_balance(self, params: dict[str, Any]) -> Any:
        return await self.transport.request("GET", f"{self.api_base}/balance", headers=self._headers())

    async def list_payments(self, params: dict[str, Any]) -> Any:
        return await self.transport.request(
            "GET",
            f"{self.api_base}/payment_intents",
            headers=self._headers(),
            params={"limit": int(params.get("limit") or 10)},
        )

    async def create_payment(self, params: dict[str, Any]) -> Any:
        return await self.transport.request(
            "POST",
            f"{self.api_base}/payment_intents",
            headers=self._headers(),
            data={
                "amount": int(params["amount"]),
                "currency": params["currency"],
                "description": params["description"],
            },
        )

    async def refund_payment(self, params: dict[str, Any]) -> Any:
        return await self.transport.request(
            "POST",
            f"{self.api_base}/refunds",
            headers=self._headers(),
            data={"payment_intent": params["paymentIntentId"]},
        )
