"""Revenue aggregation over booking start dates."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from dateutil.relativedelta import SU, relativedelta

from rental_shop.domain.models import HIDDEN_STATUSES, Booking
from rental_shop.logging_config import get_logger
from rental_shop.services.errors import ValidationError
from rental_shop.utils.time_intervals import as_day, iter_days


class RevenuePeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


@dataclass(frozen=True)
class RevenueDataPoint:
    label: str
    start: date
    bookings: int
    rent: float
    deposit: float
    total: float


@dataclass(frozen=True)
class AggregatedRevenue:
    data: list[RevenueDataPoint]
    total_revenue: float
    total_bookings: int
    total_rent: float
    total_deposit: float


def _counted(bookings: Iterable[Booking]) -> list[Booking]:
    return [booking for booking in bookings if booking.status not in HIDDEN_STATUSES]


def _bucket(
    label: str, first: date, last: date, bookings: Iterable[Booking]
) -> RevenueDataPoint:
    inside = [booking for booking in bookings if first <= booking.start.date() <= last]
    return RevenueDataPoint(
        label=label,
        start=first,
        bookings=len(inside),
        rent=sum(booking.rent for booking in inside),
        deposit=sum(booking.deposit for booking in inside),
        total=sum(booking.total_amount for booking in inside),
    )


def _with_totals(data: list[RevenueDataPoint]) -> AggregatedRevenue:
    return AggregatedRevenue(
        data=data,
        total_revenue=sum(point.total for point in data),
        total_bookings=sum(point.bookings for point in data),
        total_rent=sum(point.rent for point in data),
        total_deposit=sum(point.deposit for point in data),
    )


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError("Report end date is before its start date.", field="end")


def week_start(value: date | datetime) -> date:
    """Sunday on or before the given day."""
    return as_day(value) + relativedelta(weekday=SU(-1))


def aggregate_by_day(
    bookings: Iterable[Booking], start: date | datetime, end: date | datetime
) -> AggregatedRevenue:
    first, last = as_day(start), as_day(end)
    _check_range(first, last)
    counted = _counted(bookings)
    return _with_totals(
        [_bucket(day.strftime("%b %d"), day, day, counted) for day in iter_days(first, last)]
    )


def aggregate_by_week(
    bookings: Iterable[Booking], start: date | datetime, end: date | datetime
) -> AggregatedRevenue:
    """Whole Sunday-to-Saturday weeks touching the range, labelled Week 1..N."""
    first, last = as_day(start), as_day(end)
    _check_range(first, last)
    counted = _counted(bookings)
    data = []
    current = week_start(first)
    while current <= last:
        data.append(
            _bucket(
                f"Week {len(data) + 1}", current, current + timedelta(days=6), counted
            )
        )
        current += timedelta(weeks=1)
    return _with_totals(data)


def aggregate_by_month(
    bookings: Iterable[Booking], start: date | datetime, end: date | datetime
) -> AggregatedRevenue:
    first, last = as_day(start), as_day(end)
    _check_range(first, last)
    counted = _counted(bookings)
    data = []
    current = first.replace(day=1)
    while current <= last:
        month_end = current + relativedelta(months=1, days=-1)
        data.append(_bucket(current.strftime("%b %Y"), current, month_end, counted))
        current += relativedelta(months=1)
    return _with_totals(data)


def default_range(period: RevenuePeriod, today: date) -> tuple[date, date]:
    """Window shown when no dates are picked: 30 days, 12 weeks or 12 months."""
    if period == RevenuePeriod.WEEKLY:
        return today - timedelta(weeks=12), today
    if period == RevenuePeriod.MONTHLY:
        return today - relativedelta(months=12), today
    return today - timedelta(days=30), today


def aggregate(
    period: RevenuePeriod,
    bookings: Iterable[Booking],
    start: date | datetime,
    end: date | datetime,
) -> AggregatedRevenue:
    if period == RevenuePeriod.WEEKLY:
        return aggregate_by_week(bookings, start, end)
    if period == RevenuePeriod.MONTHLY:
        return aggregate_by_month(bookings, start, end)
    return aggregate_by_day(bookings, start, end)


def write_csv(report: AggregatedRevenue, filepath: Path) -> Path:
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with filepath.open("w", encoding="utf-8-sig", newline="") as file:
        writer = csv.writer(file, delimiter=";")
        writer.writerow(["Period", "Bookings", "Rent", "Deposit", "Total"])
        writer.writerows(
            [
                point.label,
                str(point.bookings),
                f"{point.rent:.2f}",
                f"{point.deposit:.2f}",
                f"{point.total:.2f}",
            ]
            for point in report.data
        )
    return filepath


class RevenueService:
    """Revenue reports for one shop."""

    def __init__(
        self, booking_repo, clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self._booking_repo = booking_repo
        self._clock = clock or datetime.now
        self._logger = get_logger(self.__class__.__name__)

    def report(
        self,
        shop_id: int,
        period: RevenuePeriod = RevenuePeriod.DAILY,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> AggregatedRevenue:
        if start is None or end is None:
            if period == RevenuePeriod.CUSTOM:
                raise ValidationError("Pick a start and end date.", field="start")
            start, end = default_range(period, self._clock().date())
        first, last = as_day(start), as_day(end)
        _check_range(first, last)
        # Weekly and monthly buckets reach past the range edges.
        if period == RevenuePeriod.WEEKLY:
            fetch_first, fetch_last = week_start(first), week_start(last) + timedelta(days=6)
        elif period == RevenuePeriod.MONTHLY:
            fetch_first = first.replace(day=1)
            fetch_last = last.replace(day=1) + relativedelta(months=1, days=-1)
        else:
            fetch_first, fetch_last = first, last
        bookings = self._booking_repo.list_by_start_range(shop_id, fetch_first, fetch_last)
        result = aggregate(period, bookings, first, last)
        self._logger.debug(
            "Revenue shop_id=%s period=%s buckets=%s total=%s",
            shop_id,
            period.value,
            len(result.data),
            result.total_revenue,
        )
        return result
