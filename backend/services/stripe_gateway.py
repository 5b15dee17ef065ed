"""Stripe access - Serverless-optimized.

The Stripe SDK is synchronous; calls run in the default executor so the
event loop is not blocked.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os

import stripe

logger = logging.getLogger(__name__)

_WEBHOOK_SECRET_ENV_VARS = (
    "STRIPE_WEBHOOK_SECRET_LIVE",
    "STRIPE_WEBHOOK_SECRET_TEST",
    "STRIPE_WEBHOOK_SECRET",
)


class WebhookVerificationError(Exception):
    """Raised when no configured secret validates a webhook payload."""


def webhook_secrets() -> list[str]:
    """Configured signing secrets in the order they are tried: live, test, generic."""
    secrets: list[str] = []
    for var in _WEBHOOK_SECRET_ENV_VARS:
        value = os.getenv(var)
        if value and value not in secrets:
            secrets.append(value)
    return secrets


def verify_webhook(payload: bytes, sig_header: str | None, secrets: list[str]) -> dict:
    """Verify a Stripe-Signature header and return the decoded event.

    Each secret is tried in turn; the first that validates wins. The payload is
    only parsed after a signature matches.

    Raises:
        WebhookVerificationError: Missing header, or no secret matches
    """
    if not sig_header:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    except UnicodeDecodeError as e:
        raise WebhookVerificationError("Invalid payload encoding") from e
    failures = []
    for secret in secrets:
        try:
            stripe.WebhookSignature.verify_header(
                text, sig_header, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as e:
            failures.append(str(e))
            continue
        try:
            return json.loads(text)
        except ValueError as e:
            raise WebhookVerificationError(f"Invalid payload: {e}") from e

    logger.debug("Signature rejected by %d secret(s): %s", len(secrets), failures)
    raise WebhookVerificationError("Signature verification failed (no matching webhook secret)")


def _plain(obj) -> dict:
    """StripeObject -> plain dict of metadata strings."""
    if not obj:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    to_dict = getattr(obj, "to_dict", None)
    if to_dict is not None:
        return to_dict()
    return {k: obj[k] for k in obj.keys()}


class StripeGateway:
    """Thin wrapper over the Stripe SDK, one instance per request."""

    @classmethod
    def is_configured(cls) -> bool:
        return bool(os.getenv("STRIPE_SECRET_KEY"))

    def __init__(self):
        self.api_key = os.getenv("STRIPE_SECRET_KEY")
        if not self.api_key:
            raise ValueError("STRIPE_SECRET_KEY not set.")

    async def create_checkout_session(
        self,
        *,
        email: str,
        amount_pence: int,
        product_name: str,
        description: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        currency: str = "gbp",
    ) -> str:
        """Create a one-line-item Checkout Session and return its hosted URL.

        Metadata is attached to both the session and its PaymentIntent so the
        webhook can recover it from either.
        """
        loop = asyncio.get_running_loop()
        session = await loop.run_in_executor(
            None,
            lambda: stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                customer_email=email,
                success_url=success_url,
                cancel_url=cancel_url,
                line_items=[
                    {
                        "quantity": 1,
                        "price_data": {
                            "currency": currency,
                            "unit_amount": amount_pence,
                            "product_data": {
                                "name": product_name,
                                "description": description,
                            },
                        },
                    }
                ],
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
            ),
        )
        return session.url

    async def payment_intent_metadata(self, payment_intent_id: str) -> dict[str, str]:
        """Fetch the metadata attached to a PaymentIntent."""
        loop = asyncio.get_running_loop()
        intent = await loop.run_in_executor(
            None,
            lambda: stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self.api_key),
        )
        return _plain(intent.metadata)
