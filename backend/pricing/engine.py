"""Courier price calculation.

Base fee covers the first ``included_miles``; each mile beyond is charged at
``per_mile``. Flat uplifts for distance bracket, urgency, after-hours and
weekend/bank holiday are added on top, then the total is rounded half-up to
the profile granularity.
"""
from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal

from backend.pricing.profiles import PricingProfile

logger = logging.getLogger(__name__)


class PricingError(ValueError):
    """Base class for inputs that cannot be priced automatically."""


class InvalidMiles(PricingError):
    def __init__(self, miles):
        super().__init__("Invalid miles")
        self.miles = miles


class ManualQuoteRequired(PricingError):
    def __init__(self, miles: float, ceiling: float):
        super().__init__(f"Manual quote required for {ceiling:g}+ miles")
        self.miles = miles
        self.ceiling = ceiling


def round_half_up(value: float, step: float = 1) -> float:
    """Round to the nearest multiple of step, halves away from zero."""
    d_step = Decimal(str(step))
    units = (Decimal(str(value)) / d_step).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    result = units * d_step
    return int(result) if result == result.to_integral_value() else float(result)


def bank_holidays_from_env() -> frozenset[date]:
    """Parse BANK_HOLIDAYS (comma-separated YYYY-MM-DD) into a set of dates."""
    raw = os.getenv("BANK_HOLIDAYS", "")
    days = set()
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            days.add(date.fromisoformat(item))
        except ValueError:
            logger.warning("Ignoring malformed BANK_HOLIDAYS entry %r", item)
    return frozenset(days)


@dataclass(frozen=True)
class PriceBreakdown:
    """Itemised price, as written to Stripe metadata for audit."""

    profile: PricingProfile
    miles: float
    base: float
    distance: float
    distance_uplift: float
    urgency: float
    after_hours: float
    weekend: float
    bank_holiday: float
    total_before_rounding: float
    total: float
    is_urgent: bool
    is_after_hours: bool
    is_weekend: bool
    is_bank_holiday: bool

    @property
    def version(self) -> str:
        return self.profile.version

    @property
    def amount_pence(self) -> int:
        return int(round_half_up(self.total * 100))

    def to_metadata(self) -> dict[str, str]:
        """Stripe metadata values must be strings."""
        return {
            "pricingRuleVersion": self.version,
            "pricing_base": f"{self.base:g}",
            "pricing_distance": f"{round_half_up(self.distance, 0.01):g}",
            "pricing_uplift_distance": f"{self.distance_uplift:g}",
            "pricing_urgency": f"{self.urgency:g}",
            "pricing_after1700": f"{self.after_hours:g}",
            "pricing_weekend": f"{self.weekend:g}",
            "pricing_bank_holiday": f"{self.bank_holiday:g}",
            "pricing_total_before_rounding": f"{round_half_up(self.total_before_rounding, 0.01):g}",
            "pricing_rounding_to": str(self.profile.round_to),
            "calculatedPrice": f"{self.total:g}",
            "after1700": str(self.is_after_hours).lower(),
            "weekend": str(self.is_weekend).lower(),
            "bankHoliday": str(self.is_bank_holiday).lower(),
            "urgent": str(self.is_urgent).lower(),
        }

    def to_dict(self) -> dict:
        return {
            "pricingRuleVersion": self.version,
            "industry": self.profile.industry,
            "serviceType": self.profile.service_type,
            "miles": self.miles,
            "base": self.base,
            "distance": round_half_up(self.distance, 0.01),
            "distanceUplift": self.distance_uplift,
            "urgency": self.urgency,
            "afterHours": self.after_hours,
            "weekend": self.weekend,
            "bankHoliday": self.bank_holiday,
            "totalBeforeRounding": round_half_up(self.total_before_rounding, 0.01),
            "roundingTo": self.profile.round_to,
            "calculatedPrice": self.total,
            "currency": "GBP",
        }


def _check_miles(miles) -> float:
    try:
        value = float(miles)
    except (TypeError, ValueError):
        raise InvalidMiles(miles) from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidMiles(miles)
    return value


def calculate_price(
    miles,
    job_time: datetime,
    profile: PricingProfile,
    now: datetime | None = None,
    bank_holidays: frozenset[date] | set[date] = frozenset(),
) -> PriceBreakdown:
    """Price a single job.

    Args:
        miles: Total journey miles
        job_time: Aware datetime of the job (UTC)
        profile: Pricing profile to apply
        now: Current time, for the urgency window
        bank_holidays: Dates that attract the bank holiday uplift

    Raises:
        InvalidMiles: If miles is not a positive finite number
        ManualQuoteRequired: If miles is at or beyond the profile ceiling
    """
    miles = _check_miles(miles)
    if miles >= profile.manual_quote_miles:
        raise ManualQuoteRequired(miles, profile.manual_quote_miles)

    now = now or datetime.now(UTC)
    job_utc = job_time.astimezone(UTC)

    base = profile.base_fee
    distance = max(0.0, miles - profile.included_miles) * profile.per_mile
    distance_uplift = profile.distance_uplift(miles)

    minutes_until = (job_utc - now).total_seconds() / 60
    is_urgent = 0 <= minutes_until < profile.urgency_minutes
    is_after_hours = job_utc.hour >= profile.after_hours_from
    is_weekend = job_utc.weekday() >= 5
    is_bank_holiday = job_utc.date() in bank_holidays

    urgency = profile.urgency_uplift if is_urgent else 0
    after_hours = profile.after_hours_uplift if is_after_hours else 0
    # Bank holiday replaces the weekend uplift rather than stacking with it.
    weekend = profile.weekend_uplift if is_weekend and not is_bank_holiday else 0
    bank_holiday = profile.bank_holiday_uplift if is_bank_holiday else 0

    total_before_rounding = (
        base + distance + distance_uplift + urgency + after_hours + weekend + bank_holiday
    )
    total = max(round_half_up(total_before_rounding, profile.round_to), profile.base_fee)

    return PriceBreakdown(
        profile=profile,
        miles=miles,
        base=base,
        distance=distance,
        distance_uplift=distance_uplift,
        urgency=urgency,
        after_hours=after_hours,
        weekend=weekend,
        bank_holiday=bank_holiday,
        total_before_rounding=total_before_rounding,
        total=total,
        is_urgent=is_urgent,
        is_after_hours=is_after_hours,
        is_weekend=is_weekend,
        is_bank_holiday=is_bank_holiday,
    )
