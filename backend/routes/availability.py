"""Availability check, proxied to the Make scheduling scenario."""
from __future__ import annotations

import logging
import math
import os

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from backend.models.schemas import AvailabilityRequest
from backend.scheduling import parse_job_datetime, schedule_window, to_iso
from backend.services.make_client import (
    AvailabilityUnavailable,
    MakeClient,
    availability_webhook_url,
)

router = APIRouter()
logger = logging.getLogger(__name__)

AVAILABILITY_REQUIRED = ("pickup", "dropoff", "when_date", "when_time")

SLOT_UNAVAILABLE_MESSAGE = (
    "Sorry, that time slot is not available. Please choose another time "
    "or contact us for a quote."
)


def mask_upstream_errors() -> bool:
    return os.getenv("AVAILABILITY_MASK_ERRORS", "").strip().lower() in ("1", "true", "yes")


def _unavailable(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"available": False, "message": message})


@router.post("/availability")
@router.post("/stripe/availability", include_in_schema=False)
async def check_availability(booking: AvailabilityRequest):
    """Ask the scheduling scenario whether the requested slot is free.

    Returns the scenario's JSON reply on success. Upstream failures give 502,
    or a plain "slot unavailable" answer when AVAILABILITY_MASK_ERRORS is set.
    """
    url = availability_webhook_url()
    if not url:
        logger.error("No availability webhook URL set. Set MAKE_AVAILABILITY_WEBHOOK_URL.")
        return _unavailable(500, "Booking system configuration error. Please try again later.")

    missing = booking.missing(*AVAILABILITY_REQUIRED)
    if missing:
        return _unavailable(
            400,
            f"Missing required fields to check availability: {', '.join(missing)}",
        )

    job_time = parse_job_datetime(booking.when_date, booking.when_time)
    if job_time is None:
        return _unavailable(400, "Invalid whenDate/whenTime.")

    if booking.miles is not None and not (math.isfinite(booking.miles) and booking.miles > 0):
        return _unavailable(400, "Invalid miles.")

    start, end = schedule_window(job_time, booking.miles)
    payload = {
        "pickup": booking.pickup,
        "dropoff": booking.dropoff,
        "miles": booking.miles if booking.miles is not None else "",
        "whenDate": booking.when_date,
        "whenTime": booking.when_time,
        "email": booking.email,
        "scheduleStart": to_iso(start),
        "scheduleEnd": to_iso(end),
    }

    try:
        return await MakeClient().check_availability(url, payload)
    except AvailabilityUnavailable as e:
        logger.error("Availability check failed: %s (%s)", e.message, e.detail)
        if mask_upstream_errors():
            return _unavailable(200, SLOT_UNAVAILABLE_MESSAGE)
        return _unavailable(502, e.message)
