"""Stay ranges and business-date arithmetic."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator


@dataclass(frozen=True)
class StayRange:
    """Half-open range of nights: ``arrival`` is the first night, ``departure`` is not a night."""

    arrival: date
    departure: date

    @property
    def night_count(self) -> int:
        return (self.departure - self.arrival).days

    def nights(self) -> list[date]:
        """Return every night covered by the range, in date order."""
        return list(iter_nights(self.arrival, self.departure))

    def covers(self, night: date) -> bool:
        return self.arrival <= night < self.departure

    def __str__(self) -> str:
        return f"{self.arrival.isoformat()}..{self.departure.isoformat()}"


def iter_nights(start: date, end: date) -> Iterator[date]:
    """Yield each date in [start, end)."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def business_date(moment: datetime, cutover_hour: int) -> date:
    """
    Return the business date in effect at ``moment``.

    Before the cutover hour the previous calendar day is still open, so a
    02:00 timestamp with a 03:00 cutover belongs to yesterday.
    """
    if moment.hour < cutover_hour:
        return moment.date() - timedelta(days=1)
    return moment.date()


def audit_target_date(moment: datetime, cutover_hour: int) -> date:
    """Return the most recently closed business date at ``moment``."""
    return business_date(moment, cutover_hour) - timedelta(days=1)
