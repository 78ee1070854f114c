"""Calendar occupancy segments and stack layout."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from rental_shop.config import MAX_VISIBLE_STACKS, MIN_SEGMENT_WIDTH_PCT, MINUTES_IN_DAY
from rental_shop.domain.models import HIDDEN_STATUSES, Booking, Vehicle
from rental_shop.logging_config import get_logger
from rental_shop.utils.time_intervals import (
    as_day,
    day_fraction,
    end_of_day,
    is_full_day_end,
    is_full_day_start,
    minutes_from_midnight,
    start_of_day,
)


@dataclass(frozen=True)
class CalendarSegment:
    """The part of one booking's occupancy of one vehicle inside one day."""

    id: str
    booking_id: int
    vehicle_id: int
    day_index: int
    left_pct: float
    width_pct: float
    raw_width_pct: float
    is_start_partial: bool
    is_end_partial: bool
    is_first_day: bool
    is_last_day: bool
    start_minutes: int
    end_minutes: int
    booking: Booking = field(compare=False, repr=False)
    stack_index: int = 0


SegmentIndex = dict[int, dict[int, list[CalendarSegment]]]


@dataclass(frozen=True)
class CalendarLayout:
    segments: list[CalendarSegment]
    index: SegmentIndex
    days: tuple[date, ...]

    def segments_for(self, vehicle_id: int, day_index: int) -> list[CalendarSegment]:
        return self.index.get(vehicle_id, {}).get(day_index, [])

    def visible_segments(
        self,
        vehicle_id: int,
        day_index: int,
        max_visible: int = MAX_VISIBLE_STACKS,
    ) -> list[CalendarSegment]:
        return [
            segment
            for segment in self.segments_for(vehicle_id, day_index)
            if segment.stack_index < max_visible
        ]

    def hidden_count(
        self,
        vehicle_id: int,
        day_index: int,
        max_visible: int = MAX_VISIBLE_STACKS,
    ) -> int:
        """Number of segments summarized as "+N" in a vehicle/day cell."""
        bucket = self.segments_for(vehicle_id, day_index)
        return sum(1 for segment in bucket if segment.stack_index >= max_visible)

    def row_stacks(
        self, vehicle_id: int, max_visible: int = MAX_VISIBLE_STACKS
    ) -> int:
        """Rows needed to draw a vehicle across the visible days."""
        deepest = 0
        for bucket in self.index.get(vehicle_id, {}).values():
            for segment in bucket:
                deepest = max(deepest, segment.stack_index + 1)
        return min(max(deepest, 1), max_visible)


def _segment_geometry(
    booking: Booking, is_first_day: bool, is_last_day: bool
) -> tuple[float, float, int, int]:
    left_pct = 0.0
    width_pct = 100.0
    start_minutes = 0
    end_minutes = MINUTES_IN_DAY
    if is_first_day:
        start_fraction = day_fraction(booking.start)
        left_pct = start_fraction * 100
        start_minutes = minutes_from_midnight(booking.start)
        if is_last_day:
            width_pct = (day_fraction(booking.end) - start_fraction) * 100
            end_minutes = minutes_from_midnight(booking.end)
        else:
            width_pct = (1 - start_fraction) * 100
    elif is_last_day:
        width_pct = day_fraction(booking.end) * 100
        end_minutes = minutes_from_midnight(booking.end)
    return left_pct, width_pct, start_minutes, end_minutes


def build_segments(
    vehicles: Iterable[Vehicle],
    bookings: Iterable[Booking],
    days: Sequence[date | datetime],
    *,
    min_width_pct: float = MIN_SEGMENT_WIDTH_PCT,
) -> tuple[list[CalendarSegment], SegmentIndex]:
    """Split bookings into per-vehicle, per-day segments.

    Cancelled and deleted bookings are skipped. Segments come back with stack
    index 0; see :func:`assign_stacks`. The index maps every known vehicle id
    to ``{day_index: [segments]}`` in generation order.
    """
    vehicle_ids = [vehicle.id for vehicle in vehicles if vehicle.id is not None]
    known = set(vehicle_ids)
    visible_days = [as_day(day) for day in days]
    segments: list[CalendarSegment] = []
    index: SegmentIndex = {vehicle_id: {} for vehicle_id in vehicle_ids}

    for booking in bookings:
        if booking.status in HIDDEN_STATUSES or booking.id is None:
            continue
        for vehicle_id in booking.vehicle_ids:
            if vehicle_id not in known:
                continue
            for day_index, day in enumerate(visible_days):
                day_start = start_of_day(day)
                day_end = end_of_day(day)
                if not (booking.start <= day_end and booking.end > day_start):
                    continue
                is_first_day = booking.start.date() == day
                is_last_day = booking.end.date() == day
                if is_last_day and minutes_from_midnight(booking.end) == 0:
                    continue

                left_pct, raw_width, start_minutes, end_minutes = _segment_geometry(
                    booking, is_first_day, is_last_day
                )
                segment = CalendarSegment(
                    id=f"{booking.id}-{vehicle_id}-{day_index}",
                    booking_id=booking.id,
                    vehicle_id=vehicle_id,
                    day_index=day_index,
                    left_pct=left_pct,
                    width_pct=max(raw_width, min_width_pct),
                    raw_width_pct=raw_width,
                    is_start_partial=is_first_day and not is_full_day_start(booking.start),
                    is_end_partial=is_last_day and not is_full_day_end(booking.end),
                    is_first_day=is_first_day,
                    is_last_day=is_last_day,
                    start_minutes=start_minutes,
                    end_minutes=end_minutes,
                    booking=booking,
                )
                segments.append(segment)
                index[vehicle_id].setdefault(day_index, []).append(segment)
    return segments, index


def _overlaps(a: CalendarSegment, b: CalendarSegment) -> bool:
    return a.start_minutes < b.end_minutes and a.end_minutes > b.start_minutes


def assign_stacks(
    segments: Sequence[CalendarSegment], index: SegmentIndex
) -> tuple[list[CalendarSegment], SegmentIndex]:
    """Give each segment the lowest stack row free of overlapping neighbours.

    Buckets are processed in the order their segments were generated, so the
    layout is deterministic for a given booking order.
    """
    placed: dict[str, CalendarSegment] = {}
    stacked_index: SegmentIndex = {}
    for vehicle_id, by_day in index.items():
        stacked_index[vehicle_id] = {}
        for day_index, bucket in by_day.items():
            stacked_bucket: list[CalendarSegment] = []
            for segment in bucket:
                used = {
                    other.stack_index
                    for other in stacked_bucket
                    if _overlaps(segment, other)
                }
                stack_index = 0
                while stack_index in used:
                    stack_index += 1
                stacked = replace(segment, stack_index=stack_index)
                stacked_bucket.append(stacked)
                placed[stacked.id] = stacked
            stacked_index[vehicle_id][day_index] = stacked_bucket
    return [placed.get(segment.id, segment) for segment in segments], stacked_index


def build_calendar(
    vehicles: Iterable[Vehicle],
    bookings: Iterable[Booking],
    days: Sequence[date | datetime],
) -> CalendarLayout:
    vehicles = list(vehicles)
    segments, index = build_segments(vehicles, bookings, days)
    segments, index = assign_stacks(segments, index)
    return CalendarLayout(
        segments=segments,
        index=index,
        days=tuple(as_day(day) for day in days),
    )


class CalendarService:
    """Builds calendar layouts from a shop's current snapshot."""

    def __init__(self, vehicle_repo, booking_repo) -> None:
        self._vehicle_repo = vehicle_repo
        self._booking_repo = booking_repo
        self._logger = get_logger(self.__class__.__name__)

    def layout_for(
        self,
        shop_id: int,
        days: Sequence[date | datetime],
        vehicle_ids: Optional[Iterable[int]] = None,
    ) -> CalendarLayout:
        vehicles = self._vehicle_repo.list_all(shop_id)
        if vehicle_ids is not None:
            wanted = set(vehicle_ids)
            vehicles = [vehicle for vehicle in vehicles if vehicle.id in wanted]
        if not days:
            return CalendarLayout(segments=[], index={}, days=())
        bookings = self._booking_repo.list_overlapping(
            shop_id, start_of_day(days[0]), end_of_day(days[-1])
        )
        layout = build_calendar(vehicles, bookings, days)
        self._logger.debug(
            "Calendar shop_id=%s days=%s segments=%s",
            shop_id,
            len(days),
            len(layout.segments),
        )
        return layout
