from datetime import date, datetime

import pytest

from rental_shop.services.errors import InvalidTimestampError, ValidationError
from rental_shop.utils.time_intervals import (
    day_fraction,
    end_of_day,
    intervals_overlap,
    is_full_day_end,
    is_full_day_start,
    iter_days,
    minutes_from_midnight,
    parse_timestamp,
    start_of_day,
)


def test_minutes_from_midnight_and_fraction():
    moment = datetime(2024, 1, 1, 18, 0)
    assert minutes_from_midnight(moment) == 1080
    assert day_fraction(moment) == pytest.approx(0.75)
    assert minutes_from_midnight(datetime(2024, 1, 1, 0, 0)) == 0
    assert minutes_from_midnight(datetime(2024, 1, 1, 23, 59)) == 1439


def test_full_day_boundaries():
    assert is_full_day_start(datetime(2024, 1, 1, 0, 0))
    assert not is_full_day_start(datetime(2024, 1, 1, 0, 1))
    assert is_full_day_end(datetime(2024, 1, 1, 23, 59))
    assert not is_full_day_end(datetime(2024, 1, 2, 0, 0))
    assert not is_full_day_end(datetime(2024, 1, 1, 23, 58))


@pytest.mark.parametrize("value", ["2024-01-01T10:00", None, 42])
def test_invalid_input_raises_invalid_timestamp(value):
    with pytest.raises(InvalidTimestampError):
        minutes_from_midnight(value)


def test_invalid_timestamp_is_a_validation_error():
    with pytest.raises(ValidationError):
        parse_timestamp("next tuesday-ish")


def test_parse_timestamp_truncates_to_minute():
    assert parse_timestamp("2024-01-01T10:15:42") == datetime(2024, 1, 1, 10, 15)
    assert parse_timestamp(datetime(2024, 1, 1, 10, 15, 59, 1)) == datetime(2024, 1, 1, 10, 15)


def test_parse_timestamp_returns_naive_local_time():
    parsed = parse_timestamp("2024-01-01T10:00:00+00:00")
    assert parsed.tzinfo is None


def test_day_bounds_and_iteration():
    assert start_of_day(date(2024, 1, 2)) == datetime(2024, 1, 2, 0, 0)
    assert end_of_day(datetime(2024, 1, 2, 13, 0)) == datetime(2024, 1, 2, 23, 59, 59, 999000)
    assert list(iter_days(date(2024, 1, 30), date(2024, 2, 1))) == [
        date(2024, 1, 30),
        date(2024, 1, 31),
        date(2024, 2, 1),
    ]


def test_half_open_overlap():
    a_start, a_end = datetime(2024, 1, 1, 10), datetime(2024, 1, 3, 10)
    assert intervals_overlap(a_start, a_end, datetime(2024, 1, 2), datetime(2024, 1, 2, 12))
    assert not intervals_overlap(a_start, a_end, a_end, datetime(2024, 1, 4, 10))
