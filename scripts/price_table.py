#!/usr/bin/env python3
"""
Print the price grid for a pricing profile so it can be reviewed before deploy.

  uv run python scripts/price_table.py --industry medical --service same_day_return
  uv run python scripts/price_table.py --when 2026-03-14T18:30 --miles 10 25 90 150

Prices assume a job booked well in advance (no urgency uplift) unless --now
is given. BANK_HOLIDAYS is read from .env.local like the deployed app.
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from backend.pricing.engine import (  # noqa: E402
    ManualQuoteRequired,
    bank_holidays_from_env,
    calculate_price,
)
from backend.pricing.profiles import PROFILES, SERVICE_TYPES, get_profile  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger(__name__)

load_dotenv(Path(__file__).resolve().parent.parent / ".env.local")

DEFAULT_MILES = (5, 20, 21, 40, 79, 80, 119.9, 120, 149, 179.9, 180)


def parse_args(argv=None):
    industries = sorted({key[0] for key in PROFILES})
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--industry", default="general", choices=industries)
    parser.add_argument("--service", default="one_way", choices=SERVICE_TYPES)
    parser.add_argument("--when", help="Job time, YYYY-MM-DDTHH:MM (UTC). Default: next Wednesday 10:00")
    parser.add_argument("--now", help="Booking time, YYYY-MM-DDTHH:MM (UTC), to test urgency")
    parser.add_argument("--miles", type=float, nargs="*", default=list(DEFAULT_MILES))
    return parser.parse_args(argv)


def _parse_utc(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%dT%H:%M").replace(tzinfo=UTC)


def _next_wednesday(now: datetime) -> datetime:
    days = (2 - now.weekday()) % 7 or 7
    return (now + timedelta(days=days)).replace(hour=10, minute=0, second=0, microsecond=0)


def main(argv=None) -> int:
    args = parse_args(argv)
    profile = get_profile(args.industry, args.service)
    now = _parse_utc(args.now) if args.now else datetime.now(UTC)
    when = _parse_utc(args.when) if args.when else _next_wednesday(now)
    holidays = bank_holidays_from_env()

    log.info("Profile %s (%s/%s), job at %s", profile.version, profile.industry, profile.service_type, when.isoformat())
    print(f"{'miles':>8}  {'base':>6}  {'dist':>8}  {'uplifts':>7}  {'raw':>8}  {'price':>6}")
    for miles in args.miles:
        try:
            b = calculate_price(miles, when, profile, now=now, bank_holidays=holidays)
        except ManualQuoteRequired as e:
            print(f"{miles:>8g}  {str(e)}")
            continue
        uplifts = b.distance_uplift + b.urgency + b.after_hours + b.weekend + b.bank_holiday
        print(
            f"{miles:>8g}  {b.base:>6g}  {b.distance:>8.2f}  {uplifts:>7g}  "
            f"{b.total_before_rounding:>8.2f}  {b.total:>6g}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
