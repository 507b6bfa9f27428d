"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, datetime

import pendulum

DEFAULT_TZ = "Europe/Bucharest"
ISO_DATE_FORMAT = "YYYY-MM-DD"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def today_in_tz() -> date:
    return now_in_tz().date()


def utcnow() -> datetime:
    """Naive UTC timestamp for created_at/updated_at columns."""
    return pendulum.now("UTC").naive()


def parse_iso_date(value: str) -> date:
    """Parse a strict yyyy-MM-dd date; raises ValueError otherwise."""
    return pendulum.from_format(value.strip(), ISO_DATE_FORMAT).date()
