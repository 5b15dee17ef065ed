"""Postcode-to-postcode distance lookup."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query

from backend.models.schemas import DistanceResponse
from backend.services.geo import DistanceService, GeocodingError, RoutingError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/calc-miles", response_model=DistanceResponse)
async def calc_miles(
    from_postcode: str = Query("", alias="from", max_length=16),
    to_postcode: str = Query("", alias="to", max_length=16),
):
    """Driving miles between two UK postcodes (one decimal, minimum 1)."""
    from_postcode = from_postcode.strip()
    to_postcode = to_postcode.strip()
    if not from_postcode or not to_postcode:
        raise HTTPException(status_code=400, detail="Missing from/to")

    try:
        miles = await DistanceService().postcode_miles(from_postcode, to_postcode)
    except GeocodingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RoutingError:
        logger.exception("Distance lookup failed for %s -> %s", from_postcode, to_postcode)
        raise HTTPException(status_code=502, detail="Routing failed")

    return DistanceResponse(miles=miles)
