"""Day-relative time helpers for booking intervals."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator

from dateutil import parser

from rental_shop.config import MINUTES_IN_DAY
from rental_shop.services.errors import InvalidTimestampError

END_OF_DAY = time(23, 59, 59, 999000)


def parse_timestamp(value: datetime | str) -> datetime:
    """Return a naive local datetime truncated to the minute."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = parser.isoparse(value.strip())
        except (ValueError, OverflowError) as exc:
            raise InvalidTimestampError(
                f"Invalid timestamp: {value!r}.", field="timestamp"
            ) from exc
    else:
        raise InvalidTimestampError(
            f"Invalid timestamp: {value!r}.", field="timestamp"
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed.replace(second=0, microsecond=0)


def _require_datetime(value: object) -> datetime:
    if not isinstance(value, datetime):
        raise InvalidTimestampError(
            f"Invalid timestamp: {value!r}.", field="timestamp"
        )
    return value


def minutes_from_midnight(value: datetime) -> int:
    """Minutes elapsed since local midnight, in [0, 1440)."""
    moment = _require_datetime(value)
    return moment.hour * 60 + moment.minute


def day_fraction(value: datetime) -> float:
    """Position of the timestamp inside its day, in [0, 1)."""
    return minutes_from_midnight(value) / MINUTES_IN_DAY


def is_full_day_start(value: datetime) -> bool:
    moment = _require_datetime(value)
    return moment.hour == 0 and moment.minute == 0


def is_full_day_end(value: datetime) -> bool:
    # 23:59 counts as end of day; a booking ending at midnight does not.
    moment = _require_datetime(value)
    return moment.hour == 23 and moment.minute >= 59


def as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidTimestampError(f"Invalid day: {value!r}.", field="day")


def start_of_day(value: date | datetime) -> datetime:
    return datetime.combine(as_day(value), time.min)


def end_of_day(value: date | datetime) -> datetime:
    return datetime.combine(as_day(value), END_OF_DAY)


def iter_days(start: date | datetime, end: date | datetime) -> Iterator[date]:
    """Yield every calendar day from start to end, both inclusive."""
    current = as_day(start)
    last = as_day(end)
    while current <= last:
        yield current
        current += timedelta(days=1)


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open overlap test for [start_a, end_a) and [start_b, end_b)."""
    return start_a < end_b and start_b < end_a
