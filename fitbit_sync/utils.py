from __future__ import annotations

import datetime as dt
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterator, Optional

import pytz

from .config import get_settings


def get_tz(name: Optional[str] = None) -> pytz.BaseTzInfo:
    return pytz.timezone(name or get_settings().TZ)


def today(tz: Optional[dt.tzinfo] = None) -> dt.date:
    return dt.datetime.now(tz or get_tz()).date()


def iso_date(d: dt.date | dt.datetime) -> str:
    if isinstance(d, dt.datetime):
        d = d.date()
    return d.isoformat()


def iter_days(start_date: dt.date, end_date: dt.date) -> Iterator[dt.date]:
    delta = (end_date - start_date).days
    for n in range(delta + 1):
        yield start_date + dt.timedelta(days=n)


def round_2dp(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    q = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(q)


def format_2dp(value: Optional[float]) -> Optional[str]:
    """Fixed two-decimal string, e.g. 6.5 -> '6.50'."""
    rounded = round_2dp(value)
    if rounded is None:
        return None
    return f"{rounded:.2f}"


def parse_timestamp(ts: Optional[str]) -> Optional[dt.datetime]:
    if not ts:
        return None
    try:
        return dt.datetime.fromisoformat(ts)
    except (TypeError, ValueError):
        return None


def clock_12h(ts: Optional[str], tz: Optional[dt.tzinfo] = None) -> Optional[str]:
    """'2024-01-10T23:30:00' -> '11:30 PM'.

    Naive timestamps are taken as already local. Aware ones are converted to ``tz``.
    """
    t = parse_timestamp(ts)
    if t is None:
        return None
    if t.tzinfo is not None and tz is not None:
        t = t.astimezone(tz)
    hour = t.hour % 12 or 12
    return f"{hour}:{t.minute:02d} {'AM' if t.hour < 12 else 'PM'}"


def redact(value: Optional[str]) -> str:
    if not value:
        return ""
    return value[:4] + "…" if len(value) > 8 else "***"
