"""Helpers for Slack message timestamps.

Slack identifies messages by a ``ts`` string such as ``"1621573200.000100"``.
The value is both an identifier and an epoch time with microsecond precision,
so comparisons go through :class:`~decimal.Decimal` rather than ``float``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation


def ts_key(ts: str) -> Decimal:
    """Return a sortable numeric key for a Slack timestamp.

    Raises:
        ValueError: If ts is not a numeric Slack timestamp.
    """
    try:
        return Decimal(ts)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid Slack timestamp: {ts!r}") from e


def max_ts(*values: str | None) -> str | None:
    """Return the greatest of the given timestamps, ignoring None."""
    present = [value for value in values if value]
    if not present:
        return None
    return max(present, key=ts_key)


def ts_to_datetime(ts: str) -> datetime:
    """Convert a Slack timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(float(ts_key(ts)), tz=timezone.utc)


def datetime_to_ts(value: datetime) -> str:
    """Convert a datetime to a Slack timestamp string."""
    return f"{as_utc(value).timestamp():.6f}"


def as_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime.

    SQLite hands datetimes back without tzinfo; they are stored in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TimeWindow:
    """A closed [start, end] interval of UTC datetimes."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))
        if self.start > self.end:
            raise ValueError("Window start must not be after window end")

    @classmethod
    def last_hours(cls, hours: float, now: datetime | None = None) -> "TimeWindow":
        """Return the window covering the hours before now."""
        end = as_utc(now or utcnow())
        return cls(start=end - timedelta(hours=hours), end=end)
