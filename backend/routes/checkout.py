"""Quote and Stripe Checkout routes."""
from __future__ import annotations

import logging
import os
from datetime import UTC, datetime

import stripe
from fastapi import APIRouter, HTTPException, Request

from backend.models.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    QuoteRequest,
    QuoteResponse,
)
from backend.pricing.engine import (
    PriceBreakdown,
    PricingError,
    bank_holidays_from_env,
    calculate_price,
)
from backend.pricing.profiles import get_profile
from backend.scheduling import (
    make_booking_ref,
    parse_job_datetime,
    schedule_window,
    to_iso,
)
from backend.services.geo import DistanceService, RoutingError, meters_to_miles
from backend.services.stripe_gateway import StripeGateway

router = APIRouter()
logger = logging.getLogger(__name__)

PRODUCT_NAME = "Gilead Courier Booking"
METADATA_VALUE_LIMIT = 500

CHECKOUT_REQUIRED = (
    "company",
    "industry",
    "pickup",
    "dropoff",
    "miles",
    "email",
    "when_date",
    "when_time",
)


def site_origin(request: Request) -> str:
    """Origin for Checkout return URLs: SITE_URL, else the forwarded host."""
    configured = os.getenv("SITE_URL")
    if configured:
        return configured.rstrip("/")
    proto = request.headers.get("x-forwarded-proto") or "https"
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    return f"{proto}://{host}"


def require_job_time(booking: QuoteRequest) -> datetime:
    job_time = parse_job_datetime(booking.when_date, booking.when_time)
    if job_time is None:
        raise HTTPException(status_code=400, detail="Invalid whenDate/whenTime")
    return job_time


def price_booking(booking: QuoteRequest, miles, job_time: datetime) -> PriceBreakdown:
    """Apply the industry profile; pricing refusals become 400s."""
    profile = get_profile(booking.industry, booking.service_type)
    try:
        return calculate_price(
            miles,
            job_time,
            profile,
            bank_holidays=bank_holidays_from_env(),
        )
    except PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))


def build_metadata(
    booking: CheckoutRequest,
    breakdown: PriceBreakdown,
    schedule_start: datetime,
    schedule_end: datetime,
    booking_ref: str,
) -> dict[str, str]:
    metadata = {
        "company": booking.company,
        "industry": booking.industry,
        "serviceType": booking.service_type,
        "pickup": booking.pickup,
        "dropoff": booking.dropoff,
        "miles": f"{breakdown.miles:g}",
        "email": booking.email,
        "whenDate": booking.when_date,
        "whenTime": booking.when_time,
        "notes": booking.notes,
        "scheduleStart": to_iso(schedule_start),
        "scheduleEnd": to_iso(schedule_end),
        "bookingRef": booking_ref,
    }
    metadata.update(breakdown.to_metadata())
    return {k: v[:METADATA_VALUE_LIMIT] for k, v in metadata.items()}


@router.post("/create-checkout-session", response_model=CheckoutResponse)
@router.post("/create-checkout-session-v2", response_model=CheckoutResponse, include_in_schema=False)
@router.post("/stripe/create-checkout-session", response_model=CheckoutResponse, include_in_schema=False)
@router.post("/stripe/create-checkout-session-v2", response_model=CheckoutResponse, include_in_schema=False)
async def create_checkout_session(booking: CheckoutRequest, request: Request):
    """Price a booking and open a Stripe Checkout Session for it."""
    missing = booking.missing(*CHECKOUT_REQUIRED)
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Missing required fields: {', '.join(missing)}",
        )

    job_time = require_job_time(booking)
    breakdown = price_booking(booking, booking.miles, job_time)
    schedule_start, schedule_end = schedule_window(job_time, breakdown.miles)
    booking_ref = booking.booking_ref or make_booking_ref(datetime.now(UTC))

    logger.info(
        "Pricing %s (%s): %s miles -> %s",
        booking_ref,
        breakdown.version,
        breakdown.miles,
        breakdown.total,
    )

    origin = site_origin(request)
    try:
        gateway = StripeGateway()
    except ValueError:
        logger.exception("Stripe not configured")
        raise HTTPException(status_code=500, detail="Payment system not configured")

    try:
        url = await gateway.create_checkout_session(
            email=booking.email,
            amount_pence=breakdown.amount_pence,
            product_name=PRODUCT_NAME,
            description=(
                f"Pickup: {booking.pickup} → Dropoff: {booking.dropoff} "
                f"({breakdown.miles:g} miles)"
            ),
            metadata=build_metadata(booking, breakdown, schedule_start, schedule_end, booking_ref),
            success_url=f"{origin}/?status=success",
            cancel_url=f"{origin}/?status=cancel",
        )
    except stripe.StripeError:
        logger.exception("Stripe checkout session creation failed for %s", booking_ref)
        raise HTTPException(status_code=502, detail="Payment provider error. Please try again.")

    return CheckoutResponse(
        url=url,
        calculatedPrice=breakdown.total,
        currency="GBP",
        pricingRuleVersion=breakdown.version,
        bookingRef=booking_ref,
    )


@router.post("/quote", response_model=QuoteResponse)
async def quote(booking: QuoteRequest):
    """Itemised price for a job. Without miles, distance comes from Google Routes."""
    required = ("when_date", "when_time") if booking.miles is not None else (
        "pickup", "dropoff", "when_date", "when_time"
    )
    missing = booking.missing(*required)
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Missing required fields: {', '.join(missing)}",
        )

    job_time = require_job_time(booking)
    miles = booking.miles
    eta_text = None
    duration = None

    if miles is None:
        departure = job_time if job_time > datetime.now(UTC) else None
        try:
            route = await DistanceService().address_route(booking.pickup, booking.dropoff, departure)
        except ValueError:
            logger.exception("Address routing not configured")
            raise HTTPException(status_code=500, detail="Distance lookup not configured")
        except RoutingError as e:
            logger.warning("Quote routing failed: %s", e)
            raise HTTPException(status_code=502, detail="Routing failed")
        miles = meters_to_miles(route.meters)
        eta_text = route.eta_text
        duration = route.seconds

    breakdown = price_booking(booking, miles, job_time)
    return QuoteResponse(**breakdown.to_dict(), etaText=eta_text, durationSeconds=duration)
