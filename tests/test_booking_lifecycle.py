from datetime import datetime, timedelta

import pytest

from rental_shop.domain.intents import (
    CancelBooking,
    CreateBooking,
    DamageReport,
    DeleteBooking,
    MarkTaken,
    RecordPayment,
    ReturnBooking,
    UpdateBooking,
)
from rental_shop.domain.models import (
    BookingStatus,
    DamageSeverity,
    DamageType,
    PaymentKind,
    PaymentMethod,
    PaymentStatus,
    VehicleStatus,
)
from rental_shop.services.booking_lifecycle import (
    apply_intent,
    can_apply,
    create_booking,
    payment_status_for,
)
from rental_shop.services.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    VehicleOverlapError,
)
from rental_shop.utils.config_store import BookingSettings

NOW = datetime(2024, 1, 1, 9, 0)


@pytest.fixture
def fleet(make_vehicle):
    return {
        1: make_vehicle(1),
        2: make_vehicle(2),
        3: make_vehicle(3, status=VehicleStatus.MAINTENANCE),
        4: make_vehicle(4, archived=True),
    }


def _create(fleet, existing=(), settings=None, **overrides):
    fields = dict(
        vehicle_ids=(1,),
        start="2024-01-01T10:00",
        end="2024-01-03T10:00",
        rent=1000,
        deposit=2000,
        customer_id=5,
    )
    fields.update(overrides)
    intent = CreateBooking(**fields)
    booking = create_booking(
        intent,
        shop_id=1,
        booking_number=1,
        customer_id=intent.customer_id,
        existing=existing,
        vehicles=fleet,
        actor_id="clerk-1",
        now=NOW,
        settings=settings or BookingSettings(),
    )
    booking.id = 100
    return booking


def _apply(booking, intent, fleet=None, **kwargs):
    return apply_intent(booking, intent, actor_id="clerk-1", now=NOW, vehicles=fleet, **kwargs)


def _confirmed(fleet):
    booking = _create(fleet)
    return _apply(booking, RecordPayment(3000, PaymentKind.FULL, PaymentMethod.UPI)).booking


def _active(fleet):
    return _apply(_confirmed(fleet), MarkTaken(opening_odometer=1200), fleet).booking


def test_create_starts_booked_and_unpaid(fleet):
    booking = _create(fleet)
    assert booking.status == BookingStatus.BOOKED
    assert booking.payment_status == PaymentStatus.UNPAID
    assert booking.total_amount == 3000
    assert booking.remaining_amount == 3000
    assert [entry.description for entry in booking.history] == ["Booking created"]
    assert booking.display_number == "BK-0001"


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"end": "2024-01-01T10:00"}, "end"),
        ({"end": "2024-01-01T09:00"}, "end"),
        ({"vehicle_ids": ()}, "vehicle_ids"),
        ({"customer_id": None}, "customer_id"),
        ({"rent": -1}, "rent"),
        ({"deposit": -5}, "deposit"),
        ({"vehicle_ids": (3,)}, "vehicle_ids"),
        ({"vehicle_ids": (4,)}, "vehicle_ids"),
    ],
)
def test_create_rejects_invalid_input(fleet, overrides, field):
    with pytest.raises(ValidationError) as excinfo:
        _create(fleet, **overrides)
    assert excinfo.value.field == field


def test_create_rejects_unknown_vehicle(fleet):
    with pytest.raises(NotFoundError):
        _create(fleet, vehicle_ids=(99,))


def test_back_date_window(fleet):
    eight_days_ago = (NOW - timedelta(days=8)).isoformat(timespec="minutes")
    six_days_ago = (NOW - timedelta(days=6)).isoformat(timespec="minutes")
    with pytest.raises(ValidationError) as excinfo:
        _create(fleet, start=eight_days_ago)
    assert excinfo.value.field == "start"
    assert _create(fleet, start=six_days_ago).status == BookingStatus.BOOKED
    allowed = BookingSettings(allow_backdate_override=True)
    assert _create(fleet, start=eight_days_ago, settings=allowed).status == BookingStatus.BOOKED


def test_create_refuses_overlap(fleet, make_booking):
    existing = [make_booking(7, [1], "2024-01-01T10:00", "2024-01-03T10:00")]
    with pytest.raises(VehicleOverlapError) as excinfo:
        _create(fleet, existing=existing, start="2024-01-02T00:00", end="2024-01-02T12:00")
    assert excinfo.value.conflicting_ids == (7,)
    booking = _create(fleet, existing=existing, start="2024-01-03T10:00", end="2024-01-04T10:00")
    assert booking.status == BookingStatus.BOOKED


def test_blocked_day_refuses_booking(fleet):
    def is_blocked(vehicle_id, day):
        return day.isoformat() == "2024-01-02"

    with pytest.raises(ValidationError):
        create_booking(
            CreateBooking((1,), "2024-01-01T10:00", "2024-01-03T10:00", 100, 0, customer_id=5),
            shop_id=1,
            booking_number=1,
            customer_id=5,
            existing=(),
            vehicles=fleet,
            actor_id="clerk-1",
            now=NOW,
            settings=BookingSettings(),
            is_blocked=is_blocked,
        )


def test_advance_payment_confirms_with_partial_status(fleet):
    booking = _create(fleet)
    result = _apply(booking, RecordPayment(500, PaymentKind.ADVANCE))
    updated = result.booking
    assert updated.status == BookingStatus.CONFIRMED
    assert updated.payment_status == PaymentStatus.PARTIAL
    assert updated.status_label == "Advance Paid"
    assert updated.advance_amount == 500
    assert updated.remaining_amount == 2500
    assert result.payment.amount == 500
    assert result.payment.kind == PaymentKind.ADVANCE
    assert booking.status == BookingStatus.BOOKED


@pytest.mark.parametrize("amount", [0, 3000, 3500])
def test_advance_must_be_below_total(fleet, amount):
    with pytest.raises(ValidationError):
        _apply(_create(fleet), RecordPayment(amount, PaymentKind.ADVANCE))


def test_full_payment_after_advance(fleet):
    advanced = _apply(_create(fleet), RecordPayment(500, PaymentKind.ADVANCE)).booking
    with pytest.raises(ValidationError):
        _apply(advanced, RecordPayment(2000, PaymentKind.FULL))
    with pytest.raises(ValidationError):
        _apply(advanced, RecordPayment(3001, PaymentKind.FULL))
    paid = _apply(advanced, RecordPayment(2500, PaymentKind.FULL, PaymentMethod.CARD)).booking
    assert paid.status == BookingStatus.CONFIRMED
    assert paid.payment_status == PaymentStatus.PAID
    assert paid.remaining_amount == 0
    assert paid.paid_amount == 3000
    assert paid.paid_by == "clerk-1"
    assert paid.status_label == "Confirmed"


def test_mark_taken_requires_odometer(fleet):
    confirmed = _confirmed(fleet)
    for reading in (None, -1, 12.5, True):
        with pytest.raises(ValidationError):
            _apply(confirmed, MarkTaken(opening_odometer=reading), fleet)


def test_mark_taken_activates_and_books_vehicles(fleet):
    result = _apply(_confirmed(fleet), MarkTaken(opening_odometer=1200), fleet)
    assert result.booking.status == BookingStatus.ACTIVE
    assert result.booking.opening_odometer == 1200
    assert result.booking.taken_by == "clerk-1"
    assert [vehicle.status for vehicle in result.vehicles] == [VehicleStatus.BOOKED]
    assert fleet[1].status == VehicleStatus.AVAILABLE


def test_mark_taken_needs_payment_first(fleet):
    with pytest.raises(InvalidTransitionError) as excinfo:
        _apply(_create(fleet), MarkTaken(opening_odometer=10), fleet)
    assert excinfo.value.current_status == "Booked"
    assert excinfo.value.action == "hand over"


def test_cancel_active_releases_vehicles(fleet):
    result = _apply(_active(fleet), CancelBooking("Customer no-show"), fleet)
    assert result.booking.status == BookingStatus.CANCELLED
    assert result.booking.cancelled_at is not None
    assert result.booking.history[-1].description == "Cancelled: Customer no-show"
    assert [vehicle.status for vehicle in result.vehicles] == [VehicleStatus.AVAILABLE]


def test_cancel_after_completion_is_rejected(fleet):
    completed = _apply(_active(fleet), ReturnBooking(closing_odometer=1300), fleet).booking
    with pytest.raises(InvalidTransitionError):
        _apply(completed, CancelBooking(), fleet)


def test_delete_allowed_until_deleted(fleet):
    completed = _apply(_active(fleet), ReturnBooking(closing_odometer=1300), fleet).booking
    deleted = _apply(completed, DeleteBooking("Duplicate entry"), fleet).booking
    assert deleted.status == BookingStatus.DELETED
    assert not can_apply(deleted, DeleteBooking())
    with pytest.raises(InvalidTransitionError):
        _apply(deleted, DeleteBooking(), fleet)


def test_update_recomputes_totals(fleet, make_booking):
    advanced = _apply(_create(fleet), RecordPayment(500, PaymentKind.ADVANCE)).booking
    existing = [advanced, make_booking(8, [2], "2024-01-05T10:00", "2024-01-06T10:00")]
    updated = _apply(
        advanced,
        UpdateBooking((1, 2), "2024-01-01T10:00", "2024-01-04T10:00", 1500, 2000, 5),
        fleet,
        existing=existing,
    ).booking
    assert updated.vehicle_ids == (1, 2)
    assert updated.total_amount == 3500
    assert updated.remaining_amount == 3000
    assert updated.payment_status == PaymentStatus.PARTIAL
    assert updated.history[-1].description == "Edited details"


def test_update_into_another_booking_is_refused(fleet, make_booking):
    booking = _create(fleet)
    existing = [booking, make_booking(8, [2], "2024-01-02T10:00", "2024-01-06T10:00")]
    with pytest.raises(VehicleOverlapError):
        _apply(
            booking,
            UpdateBooking((1, 2), "2024-01-01T10:00", "2024-01-03T10:00", 1000, 2000, 5),
            fleet,
            existing=existing,
        )


def test_update_keeps_old_start_outside_back_date_window(fleet):
    allowed = BookingSettings(allow_backdate_override=True)
    old = _create(fleet, start="2023-12-20T10:00", settings=allowed)
    updated = _apply(
        old,
        UpdateBooking((1,), "2023-12-20T10:00", "2024-01-03T12:00", 1000, 2000, 5),
        fleet,
    ).booking
    assert updated.end == datetime(2024, 1, 3, 12, 0)


def test_every_transition_appends_one_history_entry(fleet):
    booking = _create(fleet)
    steps = [
        (RecordPayment(500, PaymentKind.ADVANCE), {}),
        (RecordPayment(2500, PaymentKind.FULL), {}),
        (MarkTaken(opening_odometer=100), {}),
        (ReturnBooking(closing_odometer=150), {}),
        (DeleteBooking(), {}),
    ]
    for intent, kwargs in steps:
        before = list(booking.history)
        booking = _apply(booking, intent, fleet, **kwargs).booking
        assert len(booking.history) == len(before) + 1
        assert booking.history[: len(before)] == before
        assert booking.history[-1].actor_id == "clerk-1"


def test_return_applies_damages_per_vehicle(fleet):
    booking = _create(fleet, vehicle_ids=(1, 2))
    booking = _apply(booking, RecordPayment(3000, PaymentKind.FULL)).booking
    booking = _apply(booking, MarkTaken(opening_odometer=500), fleet).booking
    scratch = DamageReport(DamageType.SCRATCH, DamageSeverity.MINOR, "Left panel")
    mirror = DamageReport(DamageType.BROKEN_MIRROR, DamageSeverity.MAJOR, vehicle_id=2)
    result = _apply(
        booking,
        ReturnBooking(
            closing_odometer=640,
            deposit_deduction=500,
            new_damages=(scratch, mirror),
            damage_notes="Mirror replaced at cost",
        ),
        fleet,
    )
    completed = result.booking
    assert completed.status == BookingStatus.COMPLETED
    assert completed.finalized
    assert completed.refund_amount == 1500
    assert completed.history[-1].description == (
        "Returned, closing odometer 640 km, deposit deduction 500"
    )
    by_id = {vehicle.id: vehicle for vehicle in result.vehicles}
    assert [damage.damage_type for damage in by_id[1].damages] == [DamageType.SCRATCH]
    assert [damage.damage_type for damage in by_id[2].damages] == [
        DamageType.SCRATCH,
        DamageType.BROKEN_MIRROR,
    ]
    assert all(vehicle.status == VehicleStatus.AVAILABLE for vehicle in result.vehicles)
    assert all(vehicle.last_closing_odometer == 640 for vehicle in result.vehicles)
    assert len(result.new_damages) == 3
    assert result.summary.net_revenue == 1500


def test_return_rejects_damage_for_foreign_vehicle(fleet):
    active = _active(fleet)
    with pytest.raises(ValidationError):
        _apply(
            active,
            ReturnBooking(
                closing_odometer=1300,
                new_damages=(DamageReport(DamageType.DENT, DamageSeverity.MINOR, vehicle_id=2),),
            ),
            fleet,
        )


def test_return_below_opening_odometer_is_accepted(fleet, caplog):
    active = _active(fleet)
    result = _apply(active, ReturnBooking(closing_odometer=900), fleet)
    assert result.booking.closing_odometer == 900
    assert "below opening" in caplog.text


def test_payment_status_thresholds():
    assert payment_status_for(0, 100) == PaymentStatus.UNPAID
    assert payment_status_for(40, 100) == PaymentStatus.PARTIAL
    assert payment_status_for(100, 100) == PaymentStatus.PAID


def test_balance_can_be_paid_after_handover(fleet):
    advanced = _apply(_create(fleet), RecordPayment(500, PaymentKind.ADVANCE)).booking
    taken = _apply(advanced, MarkTaken(opening_odometer=100), fleet).booking
    paid = _apply(taken, RecordPayment(2500, PaymentKind.FULL)).booking
    assert paid.status == BookingStatus.ACTIVE
    assert paid.payment_status == PaymentStatus.PAID
    assert paid.remaining_amount == 0


def test_editing_active_booking_swaps_vehicle_status(fleet):
    active = _active(fleet)
    result = _apply(
        active,
        UpdateBooking((2,), "2024-01-01T10:00", "2024-01-03T10:00", 1000, 2000, 5),
        fleet,
    )
    assert result.booking.vehicle_ids == (2,)
    assert {vehicle.id: vehicle.status for vehicle in result.vehicles} == {
        1: VehicleStatus.AVAILABLE,
        2: VehicleStatus.BOOKED,
    }


def test_editing_open_booking_leaves_vehicles_alone(fleet):
    result = _apply(
        _confirmed(fleet),
        UpdateBooking((2,), "2024-01-01T10:00", "2024-01-03T10:00", 1000, 2000, 5),
        fleet,
    )
    assert result.vehicles == []


@pytest.mark.parametrize("amount", [float("nan"), float("inf"), "abc", 10**400])
def test_non_finite_amounts_are_rejected(fleet, amount):
    with pytest.raises(ValidationError) as excinfo:
        _apply(_create(fleet), RecordPayment(amount, PaymentKind.ADVANCE))
    assert excinfo.value.field == "amount"
    with pytest.raises(ValidationError):
        _create(fleet, deposit=amount)
    with pytest.raises(ValidationError):
        _apply(
            _create(fleet),
            UpdateBooking((1,), "2024-01-01T10:00", "2024-01-03T10:00", amount, 2000, 5),
            fleet,
        )


def test_return_records_invoice_number_in_same_entry(fleet):
    active = _active(fleet)
    before = len(active.history)
    completed = _apply(
        active, ReturnBooking(closing_odometer=1300), fleet, invoice_number="INV-0007"
    ).booking
    assert completed.invoice_number == "INV-0007"
    assert completed.invoice_generated_at == NOW.isoformat(timespec="seconds")
    assert len(completed.history) == before + 1
    assert completed.history[-1].description == "Returned, closing odometer 1300 km, invoice INV-0007"

    deferred = _apply(
        active,
        ReturnBooking(closing_odometer=1300, invoice_pending=True),
        fleet,
        invoice_number="INV-0007",
    ).booking
    assert deferred.invoice_number is None
    assert deferred.invoice_pending
