"""RentalPeriod value object: the booked date range and its day/week arithmetic."""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

ONE_DAY = timedelta(days=1)
ONE_WEEK = timedelta(days=7)


def ceil_days(delta: timedelta) -> int:
    """Any started day counts as a full day."""
    return math.ceil(delta.total_seconds() / ONE_DAY.total_seconds())


def ceil_weeks(days: int) -> int:
    return math.ceil(days / 7)


@dataclass(frozen=True)
class RentalPeriod:
    """
    Immutable [start, end) range of a booking.

    Attributes:
        start: Rental start (timezone-aware).
        end: Rental end, strictly after start.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"start must be before end: {self.start} >= {self.end}")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def total_days(self) -> int:
        return ceil_days(self.duration)

    @property
    def total_weeks(self) -> int:
        """ceil((end - start) / 7 days)."""
        return math.ceil(self.duration.total_seconds() / ONE_WEEK.total_seconds())

    def days_used(self, now: datetime) -> int:
        """Started days between start and now, zero before the rental begins."""
        return max(0, ceil_days(now - self.start))

    def remaining_days(self, now: datetime) -> int:
        return max(0, self.total_days - self.days_used(now))

    def has_ended(self, now: datetime) -> bool:
        return now > self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()} -> {self.end.isoformat()}"
