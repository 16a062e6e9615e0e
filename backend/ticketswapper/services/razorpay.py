"""Thin client for the Razorpay REST API and its signature schemes."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from ticketswapper.core.config import settings
from ticketswapper.core.errors import ConfigurationError, GatewayError
from ticketswapper.core.security import hmac_sha256_hex, signatures_match

logger = logging.getLogger(__name__)


def payment_signature(order_id: str, payment_id: str, key_secret: str) -> str:
    """Signature the checkout widget returns: HMAC-SHA256 of ``order_id|payment_id``."""
    return hmac_sha256_hex(key_secret, f"{order_id}|{payment_id}")


def verify_payment_signature(order_id: str, payment_id: str, signature: str | None, key_secret: str) -> bool:
    return signatures_match(payment_signature(order_id, payment_id, key_secret), signature)


def verify_webhook_signature(body: bytes, signature: str | None, webhook_secret: str) -> bool:
    return signatures_match(hmac_sha256_hex(webhook_secret, body), signature)


class RazorpayClient:
    def __init__(self, client: httpx.Client, key_id: str | None, key_secret: str | None,
                 base_url: str = "https://api.razorpay.com/v1", timeout: float = 30.0) -> None:
        self._client = client
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def ensure_configured(self) -> None:
        if not self.key_id or not self.key_secret:
            logger.error("Razorpay credentials missing (key id set: %s, secret set: %s)",
                         bool(self.key_id), bool(self.key_secret))
            raise ConfigurationError(
                "Razorpay credentials not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )

    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: dict[str, Any] | None = None) -> dict[str, Any]:
        """Create a gateway order. ``amount_minor`` is in the smallest currency unit.

        Raises GatewayError carrying the gateway's HTTP status and error description.
        """
        self.ensure_configured()
        payload = {"amount": amount_minor, "currency": currency, "receipt": receipt, "notes": notes or {}}
        logger.info("Creating Razorpay order receipt=%s amount=%s %s", receipt, amount_minor, currency)
        response = self._client.post(
            f"{self.base_url}/orders",
            json=payload,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            description = "Unknown error"
            try:
                description = response.json().get("error", {}).get("description") or description
            except (ValueError, AttributeError):
                pass
            logger.warning("Razorpay order creation failed status=%s: %s", response.status_code, description)
            raise GatewayError(f"Failed to create Razorpay order: {description}", status_code=response.status_code)
        order = response.json()
        logger.info("Razorpay order created: %s", order.get("id"))
        return order


def get_razorpay_client():
    with httpx.Client() as client:
        yield RazorpayClient(
            client,
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            base_url=settings.razorpay_api_base,
            timeout=settings.razorpay_timeout_seconds,
        )
