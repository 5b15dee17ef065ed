"""Stripe webhook - verify, then fan out notifications.

Notifications are fire-and-forget: Telegram and Make failures are logged and
never change the response Stripe sees.
"""
from __future__ import annotations

import logging

import stripe
from fastapi import APIRouter, Header, HTTPException, Request

from backend.notifications import (
    booking_paid_message,
    charge_refunded_message,
    normalize_booking,
    payment_failed_message,
    payment_succeeded_message,
)
from backend.services.make_client import MakeClient
from backend.services.stripe_gateway import (
    StripeGateway,
    WebhookVerificationError,
    verify_webhook,
    webhook_secrets,
)
from backend.services.telegram import TelegramNotifier

router = APIRouter()
logger = logging.getLogger(__name__)


async def session_metadata(session: dict) -> dict:
    """Session metadata, or the PaymentIntent's when the session carries none."""
    metadata = dict(session.get("metadata") or {})
    payment_intent = session.get("payment_intent")
    if metadata or not payment_intent:
        return metadata

    if not StripeGateway.is_configured():
        logger.warning("STRIPE_SECRET_KEY missing; cannot recover PaymentIntent metadata")
        return metadata
    try:
        return await StripeGateway().payment_intent_metadata(payment_intent)
    except stripe.StripeError as e:
        logger.warning("Could not retrieve PI metadata for %s: %s", payment_intent, e)
        return metadata


async def on_checkout_completed(session: dict, event: dict) -> None:
    metadata = await session_metadata(session)
    booking = normalize_booking(session, metadata, livemode=event.get("livemode"))
    logger.info("Booking paid: %s", booking.as_dict())

    await TelegramNotifier().send(booking_paid_message(booking))
    result = await MakeClient().create_job(booking.to_make_payload())
    if not result.get("ok"):
        logger.warning("Make job creation did not succeed for %s: %s", booking.session_id, result)


async def on_payment_succeeded(intent: dict, event: dict) -> None:
    await TelegramNotifier().send(payment_succeeded_message(intent))


async def on_payment_failed(intent: dict, event: dict) -> None:
    await TelegramNotifier().send(payment_failed_message(intent))


async def on_charge_refunded(charge: dict, event: dict) -> None:
    await TelegramNotifier().send(charge_refunded_message(charge))


EVENT_HANDLERS = {
    "checkout.session.completed": on_checkout_completed,
    "payment_intent.succeeded": on_payment_succeeded,
    "payment_intent.payment_failed": on_payment_failed,
    "charge.refunded": on_charge_refunded,
}


async def handle_event(event: dict) -> bool:
    """Dispatch a verified event. Returns False for event types we ignore."""
    event_type = event.get("type", "")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info("Unhandled event type %s", event_type)
        return False
    obj = (event.get("data") or {}).get("object") or {}
    await handler(obj, event)
    return True


@router.post("/stripe/webhook")
@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None),
):
    """Receive Stripe events. Signature failures are 400 so Stripe can surface them."""
    secrets = webhook_secrets()
    if not secrets:
        logger.error("No Stripe webhook secret configured")
        raise HTTPException(status_code=500, detail="Server misconfigured")

    payload = await request.body()
    try:
        event = verify_webhook(payload, stripe_signature, secrets)
    except WebhookVerificationError as e:
        logger.error("Stripe signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    logger.info("Stripe event %s (%s)", event.get("id"), event.get("type"))
    try:
        await handle_event(event)
    except Exception:
        logger.exception("Webhook handler error")
        raise HTTPException(status_code=500, detail="Server error")

    return {"received": True}
