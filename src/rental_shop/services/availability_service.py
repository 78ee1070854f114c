"""Vehicle conflict and availability checks."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from rental_shop.domain.models import Booking, Vehicle, VehicleStatus
from rental_shop.logging_config import get_logger
from rental_shop.utils.time_intervals import end_of_day, iter_days, start_of_day

BlockCheck = Callable[[int, date], bool]


def _never_blocked(vehicle_id: int, day: date) -> bool:
    return False


def find_conflicts(
    vehicle_ids: Iterable[int],
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int],
    bookings: Iterable[Booking],
) -> list[Booking]:
    """Bookings that would share a vehicle with the candidate time range.

    Cancelled, deleted and completed bookings never conflict. Intervals are
    half-open, so a booking may start exactly when another ends.
    """
    requested = set(vehicle_ids)
    conflicts: list[Booking] = []
    for booking in bookings:
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        if not booking.holds_vehicles:
            continue
        if requested.isdisjoint(booking.vehicle_ids):
            continue
        if booking.end <= start or booking.start >= end:
            continue
        conflicts.append(booking)
    return conflicts


def has_conflict(
    vehicle_ids: Iterable[int],
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int],
    bookings: Iterable[Booking],
) -> bool:
    return bool(find_conflicts(vehicle_ids, start, end, exclude_booking_id, bookings))


def is_vehicle_available_on(
    vehicle: Vehicle,
    day: date | datetime,
    bookings: Iterable[Booking],
    is_blocked: BlockCheck = _never_blocked,
) -> bool:
    if vehicle.status == VehicleStatus.MAINTENANCE or vehicle.archived:
        return False
    if vehicle.id is None:
        return False
    day_start = start_of_day(day)
    day_end = end_of_day(day)
    for booking in bookings:
        if not booking.holds_vehicles or vehicle.id not in booking.vehicle_ids:
            continue
        if booking.start < day_end and booking.end > day_start:
            return False
    return not is_blocked(vehicle.id, day_start.date())


def available_vehicles(
    vehicles: Iterable[Vehicle],
    day: date | datetime,
    bookings: Iterable[Booking],
    is_blocked: BlockCheck = _never_blocked,
) -> list[Vehicle]:
    bookings = list(bookings)
    return [
        vehicle
        for vehicle in vehicles
        if is_vehicle_available_on(vehicle, day, bookings, is_blocked)
    ]


def blocked_days(
    vehicle_id: int,
    start: datetime,
    end: datetime,
    is_blocked: BlockCheck,
) -> list[date]:
    """Days touched by [start, end) on which the vehicle is blocked."""
    last_minute = max(end - timedelta(minutes=1), start)
    return [
        day for day in iter_days(start, last_minute) if is_blocked(vehicle_id, day)
    ]


class AvailabilityService:
    """Answers availability questions against a shop's stored data."""

    def __init__(self, vehicle_repo, booking_repo, override_repo) -> None:
        self._vehicle_repo = vehicle_repo
        self._booking_repo = booking_repo
        self._override_repo = override_repo
        self._logger = get_logger(self.__class__.__name__)

    def block_check(self, shop_id: int) -> BlockCheck:
        overrides = self._override_repo.list_all(shop_id)
        shop_wide = {override.day for override in overrides if override.vehicle_id is None}
        per_vehicle = {
            (override.vehicle_id, override.day)
            for override in overrides
            if override.vehicle_id is not None
        }

        def is_blocked(vehicle_id: int, day: date) -> bool:
            return day in shop_wide or (vehicle_id, day) in per_vehicle

        return is_blocked

    def has_conflict(
        self,
        shop_id: int,
        vehicle_ids: Iterable[int],
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        bookings = self._booking_repo.list_overlapping(shop_id, start, end)
        return has_conflict(vehicle_ids, start, end, exclude_booking_id, bookings)

    def available_on(self, shop_id: int, day: date | datetime) -> list[Vehicle]:
        vehicles = self._vehicle_repo.list_all(shop_id)
        bookings = self._booking_repo.list_overlapping(
            shop_id, start_of_day(day), end_of_day(day)
        )
        result = available_vehicles(vehicles, day, bookings, self.block_check(shop_id))
        self._logger.debug(
            "Availability shop_id=%s day=%s available=%s/%s",
            shop_id,
            day,
            len(result),
            len(vehicles),
        )
        return result
