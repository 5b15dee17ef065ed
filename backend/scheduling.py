"""Job timing helpers shared by checkout, availability and the webhook."""
from __future__ import annotations

import math
import random
from datetime import UTC, datetime, timedelta

AVG_MPH = 30
BUFFER_MINUTES = 20
DEFAULT_DRIVE_MINUTES = 60
# Schedule windows never assume a longer drive than this.
MAX_DRIVE_MILES = 500
MIN_JOB_YEAR = 2000

BOOKING_REF_PREFIX = "GC"


def parse_job_datetime(when_date: str | None, when_time: str | None) -> datetime | None:
    """Combine "YYYY-MM-DD" and "HH:MM" into an aware UTC datetime.

    Returns None when either part is missing or malformed.
    """
    if not when_date or not when_time:
        return None
    try:
        dt = datetime.strptime(f"{when_date.strip()}T{when_time.strip()}", "%Y-%m-%dT%H:%M")
    except ValueError:
        return None
    if dt.year < MIN_JOB_YEAR:
        return None
    return dt.replace(tzinfo=UTC)


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp (with or without trailing Z), else None."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso(dt: datetime) -> str:
    """Render as 2025-01-31T09:30:00.000Z."""
    dt = dt.astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def drive_minutes(miles) -> float:
    try:
        value = float(miles)
    except (TypeError, ValueError):
        return DEFAULT_DRIVE_MINUTES
    if not math.isfinite(value) or value <= 0:
        return DEFAULT_DRIVE_MINUTES
    return min(value, MAX_DRIVE_MILES) / AVG_MPH * 60


def schedule_window(job_time: datetime, miles) -> tuple[datetime, datetime]:
    """Estimate the (start, end) block a job occupies in the van's diary.

    The job ends at the requested time and starts early enough to drive the
    distance at AVG_MPH plus a loading buffer.
    """
    total = drive_minutes(miles) + BUFFER_MINUTES
    return job_time - timedelta(minutes=total), job_time


def schedule_window_iso(when_date: str | None, when_time: str | None, miles) -> tuple[str | None, str | None]:
    job_time = parse_job_datetime(when_date, when_time)
    if job_time is None:
        return None, None
    start, end = schedule_window(job_time, miles)
    return to_iso(start), to_iso(end)


def make_booking_ref(now: datetime | None = None, rng: random.Random | None = None) -> str:
    """Customer-facing reference such as GC-20250131-4821."""
    now = now or datetime.now(UTC)
    rng = rng or random
    return f"{BOOKING_REF_PREFIX}-{now:%Y%m%d}-{rng.randint(1000, 9999)}"
