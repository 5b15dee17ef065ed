"""Pydantic schemas for API."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ServiceType = Literal["one_way", "same_day_return"]


class BookingFields(BaseModel):
    """Fields posted by the booking form (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    pickup: str = Field("", max_length=512)
    dropoff: str = Field("", max_length=512)
    miles: float | None = None
    when_date: str = Field("", alias="whenDate", max_length=32)
    when_time: str = Field("", alias="whenTime", max_length=32)

    def missing(self, *names: str) -> list[str]:
        """Return wire names of required fields that are empty."""
        absent = []
        for name in names:
            value = getattr(self, name)
            if value is None or value == "":
                field = type(self).model_fields[name]
                absent.append(field.alias or name)
        return absent

    @field_validator("miles", mode="before")
    @classmethod
    def _blank_miles(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class QuoteRequest(BookingFields):
    industry: str = Field("", max_length=128)
    service_type: ServiceType = Field("one_way", alias="serviceType")


class CheckoutRequest(QuoteRequest):
    company: str = Field("", max_length=256)
    email: str = Field("", max_length=320)
    notes: str = Field("", max_length=2000)
    booking_ref: str | None = Field(None, alias="bookingRef", max_length=64)


class CheckoutResponse(BaseModel):
    url: str
    calculatedPrice: float
    currency: str = "GBP"
    pricingRuleVersion: str
    bookingRef: str


class QuoteResponse(BaseModel):
    """Itemised price without a checkout session."""

    pricingRuleVersion: str
    industry: str
    serviceType: str
    miles: float
    base: float
    distance: float
    distanceUplift: float
    urgency: float
    afterHours: float
    weekend: float
    bankHoliday: float
    totalBeforeRounding: float
    roundingTo: int
    calculatedPrice: float
    currency: str = "GBP"
    etaText: str | None = None
    durationSeconds: int | None = None


class AvailabilityRequest(BookingFields):
    email: str = Field("", max_length=320)


class AvailabilityResponse(BaseModel):
    available: bool
    message: str | None = None


class DistanceResponse(BaseModel):
    miles: float
