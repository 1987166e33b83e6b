"""Computation of the time window of a GetMetricData request."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Protocol

_ONE_MICROSECOND = timedelta(microseconds=1)
_ORIGIN_AWARE = datetime(1, 1, 1, tzinfo=timezone.utc)
_ORIGIN_NAIVE = datetime(1, 1, 1)


class Clock(Protocol):
    """A source of the current time."""

    def now(self) -> datetime:
        """Return the current time."""


class SystemClock:
    """The wall clock, in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def _round(moment: datetime, period: timedelta) -> datetime:
    """Round to the nearest multiple of ``period`` since year 1; halves round up."""
    step = period // _ONE_MICROSECOND
    if step <= 0:
        return moment
    origin = _ORIGIN_NAIVE if moment.tzinfo is None else _ORIGIN_AWARE
    remainder = ((moment - origin) // _ONE_MICROSECOND) % step
    if remainder + remainder < step:
        return moment - timedelta(microseconds=remainder)
    return moment + timedelta(microseconds=step - remainder)


@dataclass
class MetricWindowCalculator:
    """Derives start and end times from the clock and the request parameters."""

    clock: Clock = field(default_factory=SystemClock)

    def calculate(
        self, period: timedelta, length: timedelta, delay: timedelta
    ) -> tuple[datetime, datetime]:
        now = self.clock.now()
        if period > timedelta(0):
            now = _round(now - period / 2, period)
        return now - (length + delay), now - delay


def format_time(moment: datetime) -> str:
    """Format as RFC 3339 with trimmed fractional seconds and a numeric offset."""
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    fraction = f"{moment.microsecond:06d}".rstrip("0")
    if fraction:
        text += "." + fraction
    offset = moment.utcoffset() or timedelta(0)
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(offset) // timedelta(minutes=1)
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"