"""Normalise paid Stripe objects into booking records and dispatch text.

Metadata arrives from several generations of the booking form, so the same
value may sit under different keys (``pickup`` or ``pickup_address``,
``whenDate`` or ``date``). Everything downstream reads the normalised record.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from html import escape

from backend.scheduling import parse_iso, schedule_window_iso, to_iso

VEHICLE = "Main Van"


def _first(mapping: dict, *keys: str, default: str = "") -> str:
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return str(value)
    return default


def minor_to_major(amount) -> float:
    return (amount or 0) / 100


def format_money(amount: float, currency: str) -> str:
    currency = (currency or "gbp").upper()
    if currency == "GBP":
        return f"£{amount:.2f} GBP"
    return f"{amount:.2f} {currency}"


@dataclass
class PaidBooking:
    session_id: str
    mode: str
    payment_intent: str | None
    email: str
    amount_paid: float
    currency: str
    pickup: str
    dropoff: str
    miles: str
    when_date: str
    when_time: str
    schedule_start: str
    schedule_end: str
    notes: str
    booking_ref: str
    company: str
    industry: str
    pricing_rule_version: str

    def to_make_payload(self) -> dict:
        """Job record for the Make create-job scenario."""
        return {
            "source": "stripe_webhook",
            "mode": self.mode,
            "sessionId": self.session_id,
            "paymentIntent": self.payment_intent,
            "email": self.email,
            "amountPaid": self.amount_paid,
            "currency": self.currency,
            "pickup": self.pickup,
            "dropoff": self.dropoff,
            "miles": self.miles,
            "whenDate": self.when_date,
            "whenTime": self.when_time,
            "scheduleStart": self.schedule_start,
            "scheduleEnd": self.schedule_end,
            "vehicle": VEHICLE,
            "notes": self.notes,
            "bookingRef": self.booking_ref,
            "company": self.company,
            "industry": self.industry,
            "pricingRuleVersion": self.pricing_rule_version,
        }

    def as_dict(self) -> dict:
        return asdict(self)


def normalize_booking(session: dict, metadata: dict, livemode: bool | None = None) -> PaidBooking:
    """Build a PaidBooking from a completed Checkout Session and its metadata."""
    md = metadata or {}
    details = session.get("customer_details") or {}

    email = details.get("email") or session.get("customer_email") or md.get("email") or "unknown"

    when_date = _first(md, "whenDate", "date")
    when_time = _first(md, "whenTime", "time")
    miles = _first(md, "miles")

    start = parse_iso(md.get("scheduleStart"))
    end = parse_iso(md.get("scheduleEnd"))
    fallback_start, fallback_end = schedule_window_iso(when_date, when_time, miles)

    if livemode is None:
        livemode = bool(session.get("livemode"))

    return PaidBooking(
        session_id=session.get("id", ""),
        mode="live" if livemode else "test",
        payment_intent=session.get("payment_intent") or None,
        email=email,
        amount_paid=minor_to_major(session.get("amount_total")),
        currency=(session.get("currency") or "gbp").upper(),
        pickup=_first(md, "pickup", "pickup_address"),
        dropoff=_first(md, "dropoff", "dropoff_address"),
        miles=miles,
        when_date=when_date,
        when_time=when_time,
        schedule_start=to_iso(start) if start else (fallback_start or ""),
        schedule_end=to_iso(end) if end else (fallback_end or ""),
        notes=_first(md, "notes", "message"),
        booking_ref=_first(md, "bookingRef", "booking_ref"),
        company=_first(md, "company"),
        industry=_first(md, "industry"),
        pricing_rule_version=_first(md, "pricingRuleVersion"),
    )


def booking_paid_message(booking: PaidBooking) -> str:
    na = "N/A"
    lines = [
        f"✅ <b>Booking Paid ({booking.mode.upper()})</b>",
        f"Ref: {escape(booking.booking_ref or na)}",
        f"Amount: {format_money(booking.amount_paid, booking.currency)}",
        f"Email: {escape(booking.email)}",
    ]
    if booking.company:
        lines.append(f"Company: {escape(booking.company)}")
    lines += [
        f"Pickup: {escape(booking.pickup or na)}",
        f"Dropoff: {escape(booking.dropoff or na)}",
        f"Miles: {escape(booking.miles or na)}",
        f"When (date): {escape(booking.when_date or na)}",
        f"When (time): {escape(booking.when_time or na)}",
        f"Schedule Start: {booking.schedule_start or na}",
        f"Schedule End: {booking.schedule_end or na}",
    ]
    if booking.notes:
        lines.append(f"Notes: {escape(booking.notes)}")
    lines.append(f"Session: {escape(booking.session_id)}")
    return "\n".join(lines)


def payment_succeeded_message(intent: dict) -> str:
    amount = minor_to_major(intent.get("amount_received") or intent.get("amount"))
    ref = (intent.get("metadata") or {}).get("bookingRef")
    lines = [
        "✅ Payment Succeeded",
        f"Amount: {format_money(amount, intent.get('currency'))}",
    ]
    if ref:
        lines.append(f"Ref: {escape(ref)}")
    lines.append(f"PI: {escape(intent.get('id', ''))}")
    return "\n".join(lines)


def payment_failed_message(intent: dict) -> str:
    reason = (intent.get("last_payment_error") or {}).get("message") or "Unknown"
    return "\n".join([
        "❌ Payment Failed",
        f"PI: {escape(intent.get('id', ''))}",
        f"Reason: {escape(reason)}",
    ])


def charge_refunded_message(charge: dict) -> str:
    amount = minor_to_major(charge.get("amount_refunded"))
    return "\n".join([
        "↩️ Charge Refunded",
        f"Amount: {format_money(amount, charge.get('currency'))}",
        f"Charge: {escape(charge.get('id', ''))}",
    ])
