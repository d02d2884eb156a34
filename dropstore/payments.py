from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import stripe
from fastapi import Request

from . import config
from .crud import CheckoutLine
from .errors import ExternalServiceError, StoreError, ValidationError

logger = logging.getLogger(__name__)

# Stripe rejects session expiries closer than 30 minutes out.
STRIPE_MIN_EXPIRY = timedelta(minutes=30, seconds=30)


class StripeGateway:
    """Thin wrapper over the Stripe API used by checkout and the webhook."""

    def __init__(
        self,
        secret_key: str = "",
        webhook_secret: str = "",
        currency: str = "usd",
        timeout: int = 10,
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.timeout = timeout

    def _stripe_required(self) -> None:
        if not self.secret_key:
            raise StoreError("Stripe is not configured. Set STRIPE_SECRET_KEY.")
        stripe.api_key = self.secret_key
        stripe.default_http_client = stripe.RequestsClient(timeout=self.timeout)

    def build_metadata(self, lines: list[CheckoutLine], drop_id: Optional[int], reservation_id: int) -> dict[str, str]:
        """The re-derivable manifest; prices never leave the store."""
        return {
            "items": json.dumps([{"variantId": l.variant_id, "quantity": l.quantity} for l in lines]),
            "dropId": str(drop_id) if drop_id else "",
            "reservationId": str(reservation_id),
        }

    def create_checkout_session(
        self,
        *,
        lines: list[CheckoutLine],
        email: str,
        drop_id: Optional[int],
        reservation_id: int,
        expires_at: datetime,
        success_url: str,
        cancel_url: str,
    ) -> dict[str, Any]:
        self._stripe_required()

        metadata = self.build_metadata(lines, drop_id, reservation_id)
        # naive UTC in the store
        expires = max(expires_at.replace(tzinfo=timezone.utc), datetime.now(timezone.utc) + STRIPE_MIN_EXPIRY)
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "product_data": {
                                "name": l.title,
                                "description": f"Size: {l.size}",
                                "images": l.images,
                            },
                            "unit_amount": l.price,
                        },
                        "quantity": l.quantity,
                    }
                    for l in lines
                ],
                customer_email=email,
                client_reference_id=str(reservation_id),
                expires_at=int(expires.timestamp()),
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error("Stripe checkout session creation failed: %s", e)
            raise ExternalServiceError("Failed to create checkout session")

        return {"id": session.id, "url": getattr(session, "url", None)}

    def parse_event(self, payload: bytes, sig_header: Optional[str]) -> dict[str, Any]:
        """Verify the signature of a webhook delivery and return the event as a plain dict."""
        if not self.webhook_secret:
            raise StoreError("STRIPE_WEBHOOK_SECRET is not configured")
        if not sig_header:
            raise ValidationError("Missing Stripe-Signature header")

        try:
            stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning("Webhook signature verification failed: %s", e)
            raise ValidationError("Webhook signature verification failed")

        return json.loads(payload)


def build_gateway() -> StripeGateway:
    return StripeGateway(
        secret_key=config.STRIPE_SECRET_KEY,
        webhook_secret=config.STRIPE_WEBHOOK_SECRET,
        currency=config.STRIPE_CURRENCY,
        timeout=config.STRIPE_TIMEOUT_SECONDS,
    )


def get_gateway(request: Request) -> StripeGateway:
    return request.app.state.payments
