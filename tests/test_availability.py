from datetime import date, datetime, timedelta
import random

from rental_shop.domain.models import BookingStatus, VehicleStatus
from rental_shop.repositories import AvailabilityOverrideRepo, BookingRepo, VehicleRepo
from rental_shop.services.availability_service import (
    AvailabilityService,
    available_vehicles,
    blocked_days,
    find_conflicts,
    has_conflict,
    is_vehicle_available_on,
)
from rental_shop.utils.time_intervals import intervals_overlap


def test_overlap_inside_existing_booking_conflicts(make_booking):
    existing = [make_booking(1, [1], "2024-01-01T10:00", "2024-01-03T10:00")]
    assert has_conflict(
        [1], datetime(2024, 1, 2, 0, 0), datetime(2024, 1, 2, 12, 0), None, existing
    )


def test_back_to_back_booking_does_not_conflict(make_booking):
    existing = [make_booking(1, [1], "2024-01-01T10:00", "2024-01-03T10:00")]
    assert not has_conflict(
        [1], datetime(2024, 1, 3, 10, 0), datetime(2024, 1, 4, 10, 0), None, existing
    )
    assert not has_conflict(
        [1], datetime(2023, 12, 31, 10, 0), datetime(2024, 1, 1, 10, 0), None, existing
    )


def test_released_bookings_and_other_vehicles_never_conflict(make_booking):
    existing = [
        make_booking(1, [1], "2024-01-01T10:00", "2024-01-03T10:00", BookingStatus.CANCELLED),
        make_booking(2, [1], "2024-01-01T10:00", "2024-01-03T10:00", BookingStatus.DELETED),
        make_booking(3, [1], "2024-01-01T10:00", "2024-01-03T10:00", BookingStatus.COMPLETED),
        make_booking(4, [2], "2024-01-01T10:00", "2024-01-03T10:00", BookingStatus.ACTIVE),
    ]
    assert not has_conflict(
        [1], datetime(2024, 1, 2), datetime(2024, 1, 2, 12), None, existing
    )


def test_editing_a_booking_excludes_itself(make_booking):
    existing = [make_booking(1, [1, 2], "2024-01-01T10:00", "2024-01-03T10:00")]
    assert not has_conflict(
        [1, 2], datetime(2024, 1, 1, 12), datetime(2024, 1, 3, 12), 1, existing
    )


def test_find_conflicts_lists_every_clash(make_booking):
    existing = [
        make_booking(1, [1], "2024-01-01T10:00", "2024-01-02T10:00"),
        make_booking(2, [2], "2024-01-02T08:00", "2024-01-02T20:00"),
        make_booking(3, [3], "2024-01-02T08:00", "2024-01-02T20:00"),
    ]
    conflicts = find_conflicts(
        [1, 2], datetime(2024, 1, 2, 9), datetime(2024, 1, 2, 11), None, existing
    )
    assert [booking.id for booking in conflicts] == [1, 2]


def test_checker_accepts_exactly_the_non_overlapping_bookings(make_booking):
    rng = random.Random(42)
    accepted = []
    base = datetime(2024, 1, 1)
    for booking_id in range(1, 300):
        vehicle_ids = rng.sample([1, 2, 3, 4], rng.randint(1, 2))
        start = base + timedelta(hours=rng.randrange(0, 24 * 20))
        end = start + timedelta(hours=rng.randint(1, 72))
        clash = any(
            set(vehicle_ids) & set(other.vehicle_ids)
            and intervals_overlap(start, end, other.start, other.end)
            for other in accepted
        )
        assert has_conflict(vehicle_ids, start, end, None, accepted) is clash
        if not clash:
            accepted.append(
                make_booking(
                    booking_id,
                    vehicle_ids,
                    start.isoformat(timespec="minutes"),
                    end.isoformat(timespec="minutes"),
                )
            )

    for position, booking in enumerate(accepted):
        for other in accepted[position + 1:]:
            if set(booking.vehicle_ids) & set(other.vehicle_ids):
                assert not intervals_overlap(booking.start, booking.end, other.start, other.end)


def test_vehicle_availability_on_a_day(make_booking, make_vehicle):
    bookings = [make_booking(1, [1], "2024-01-01T22:00", "2024-01-02T02:00")]
    fleet = [
        make_vehicle(1),
        make_vehicle(2),
        make_vehicle(3, status=VehicleStatus.MAINTENANCE),
        make_vehicle(4, archived=True),
    ]
    day = date(2024, 1, 2)
    assert not is_vehicle_available_on(fleet[0], day, bookings)
    assert is_vehicle_available_on(fleet[0], date(2024, 1, 3), bookings)
    assert [vehicle.id for vehicle in available_vehicles(fleet, day, bookings)] == [2]

    def blocked(vehicle_id, on_day):
        return vehicle_id == 2 and on_day == day

    assert available_vehicles(fleet, day, bookings, blocked) == []


def test_blocked_days_ignores_exclusive_end():
    blocked = {date(2024, 1, 2), date(2024, 1, 3)}

    def is_blocked(vehicle_id, day):
        return day in blocked

    assert blocked_days(
        1, datetime(2024, 1, 1, 10), datetime(2024, 1, 3, 0, 0), is_blocked
    ) == [date(2024, 1, 2)]


def test_overrides_block_single_vehicle_or_whole_shop(connection, shop, vehicles):
    overrides = AvailabilityOverrideRepo(connection)
    service = AvailabilityService(VehicleRepo(connection), BookingRepo(connection), overrides)
    overrides.block(shop.id, date(2024, 1, 5), vehicle_id=vehicles[0].id, reason="Service")
    overrides.block(shop.id, date(2024, 1, 6), reason="Holiday")

    check = service.block_check(shop.id)
    assert check(vehicles[0].id, date(2024, 1, 5))
    assert not check(vehicles[1].id, date(2024, 1, 5))
    assert check(vehicles[1].id, date(2024, 1, 6))

    on_fifth = service.available_on(shop.id, date(2024, 1, 5))
    assert {vehicle.id for vehicle in on_fifth} == {vehicles[1].id, vehicles[2].id}
    assert service.available_on(shop.id, date(2024, 1, 6)) == []

    assert overrides.is_blocked(shop.id, vehicles[2].id, date(2024, 1, 6))
    assert overrides.unblock(shop.id, date(2024, 1, 6))
    assert not overrides.is_blocked(shop.id, vehicles[2].id, date(2024, 1, 6))


def test_blocking_twice_keeps_one_override(connection, shop, vehicles):
    overrides = AvailabilityOverrideRepo(connection)
    first = overrides.block(shop.id, date(2024, 1, 5), vehicle_id=vehicles[0].id)
    second = overrides.block(shop.id, date(2024, 1, 5), vehicle_id=vehicles[0].id)
    assert first.id == second.id
    assert len(overrides.list_all(shop.id)) == 1
