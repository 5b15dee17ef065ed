"""Industry pricing profiles - the single canonical ruleset."""
from __future__ import annotations

import re
from dataclasses import dataclass, field

ONE_WAY = "one_way"
SAME_DAY_RETURN = "same_day_return"
SERVICE_TYPES = (ONE_WAY, SAME_DAY_RETURN)

DEFAULT_INDUSTRY = "general"
# Matched as whole words, first listed wins.
INDUSTRIES = ("medical", "legal", DEFAULT_INDUSTRY)


@dataclass(frozen=True)
class DistanceUplift:
    """Flat uplift for total miles in [min_miles, max_miles)."""

    min_miles: float
    max_miles: float
    amount: float

    def applies(self, miles: float) -> bool:
        return self.min_miles <= miles < self.max_miles


@dataclass(frozen=True)
class PricingProfile:
    """Parameters for one (industry, service type) combination."""

    industry: str
    service_type: str
    version: str
    base_fee: float
    included_miles: float
    per_mile: float
    manual_quote_miles: float
    round_to: int
    distance_uplifts: tuple[DistanceUplift, ...] = field(default_factory=tuple)
    urgency_minutes: int = 180
    urgency_uplift: float = 40
    after_hours_from: int = 17
    after_hours_uplift: float = 35
    weekend_uplift: float = 60
    bank_holiday_uplift: float = 90

    @property
    def key(self) -> tuple[str, str]:
        return (self.industry, self.service_type)

    def distance_uplift(self, miles: float) -> float:
        for bracket in self.distance_uplifts:
            if bracket.applies(miles):
                return bracket.amount
        return 0


_ONE_WAY_BRACKETS = (
    DistanceUplift(80, 120, 50),
    DistanceUplift(120, 180, 90),
)

_RETURN_BRACKETS = (
    DistanceUplift(60, 100, 60),
    DistanceUplift(100, 150, 110),
)


PROFILES: dict[tuple[str, str], PricingProfile] = {
    p.key: p
    for p in (
        PricingProfile(
            industry="general",
            service_type=ONE_WAY,
            version="PR-PREMIUM-V1.0",
            base_fee=120,
            included_miles=20,
            per_mile=3.5,
            manual_quote_miles=180,
            round_to=5,
            distance_uplifts=_ONE_WAY_BRACKETS,
        ),
        PricingProfile(
            industry="general",
            service_type=SAME_DAY_RETURN,
            version="PR-PREMIUM-RTN-V1.0",
            base_fee=190,
            included_miles=20,
            per_mile=5.25,
            manual_quote_miles=150,
            round_to=10,
            distance_uplifts=_RETURN_BRACKETS,
        ),
        # Clinical samples and pharmacy: chain-of-custody handling on every job.
        PricingProfile(
            industry="medical",
            service_type=ONE_WAY,
            version="PR-MEDICAL-V1.0",
            base_fee=140,
            included_miles=20,
            per_mile=3.75,
            manual_quote_miles=180,
            round_to=5,
            distance_uplifts=_ONE_WAY_BRACKETS,
            urgency_uplift=50,
        ),
        PricingProfile(
            industry="medical",
            service_type=SAME_DAY_RETURN,
            version="PR-MEDICAL-RTN-V1.0",
            base_fee=220,
            included_miles=20,
            per_mile=5.75,
            manual_quote_miles=150,
            round_to=10,
            distance_uplifts=_RETURN_BRACKETS,
            urgency_uplift=50,
        ),
        PricingProfile(
            industry="legal",
            service_type=ONE_WAY,
            version="PR-LEGAL-V1.0",
            base_fee=125,
            included_miles=20,
            per_mile=3.5,
            manual_quote_miles=180,
            round_to=5,
            distance_uplifts=_ONE_WAY_BRACKETS,
        ),
        PricingProfile(
            industry="legal",
            service_type=SAME_DAY_RETURN,
            version="PR-LEGAL-RTN-V1.0",
            base_fee=200,
            included_miles=20,
            per_mile=5.25,
            manual_quote_miles=150,
            round_to=10,
            distance_uplifts=_RETURN_BRACKETS,
        ),
    )
}


def normalize_industry(industry: str | None) -> str:
    """Map free-text industry from the booking form to a profile key."""
    words = set(re.findall(r"[a-z]+", (industry or "").lower()))
    for known in INDUSTRIES:
        if known in words:
            return known
    return DEFAULT_INDUSTRY


def get_profile(industry: str | None, service_type: str = ONE_WAY) -> PricingProfile:
    """Look up the profile for an industry and service type.

    Unknown industries use the general profile.

    Raises:
        KeyError: If service_type is not one of SERVICE_TYPES
    """
    if service_type not in SERVICE_TYPES:
        raise KeyError(f"Unknown service type: {service_type}")
    return PROFILES[(normalize_industry(industry), service_type)]
