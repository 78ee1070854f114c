"""Booking state machine.

Every operation takes the current booking plus an explicit intent and returns
a new booking; the input is never modified, so a rejected transition leaves
nothing half-applied. Persisting the outcome is the caller's job
(see :mod:`rental_shop.services.booking_service`).

Stored statuses::

    Booked --payment--> Confirmed --mark taken--> Active --return--> Completed
       \\                   |                        |
        +--------------- cancel ---------------------+--> Cancelled

"Advance Paid" is Confirmed with a partial payment. Any status except Deleted
may be soft-deleted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from rental_shop.domain.intents import (
    BookingIntent,
    CancelBooking,
    CreateBooking,
    DeleteBooking,
    MarkTaken,
    RecordPayment,
    ReturnBooking,
    UpdateBooking,
)
from rental_shop.domain.models import (
    Booking,
    BookingStatus,
    Damage,
    HistoryEntry,
    Payment,
    PaymentKind,
    PaymentStatus,
    Vehicle,
    VehicleStatus,
)
from rental_shop.logging_config import get_logger
from rental_shop.services.availability_service import (
    BlockCheck,
    blocked_days,
    find_conflicts,
)
from rental_shop.services.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    VehicleOverlapError,
)
from rental_shop.services.return_flow import InvoiceSummary, calculate_return
from rental_shop.utils.config_store import BookingSettings
from rental_shop.utils.time_intervals import parse_timestamp

logger = get_logger(__name__)

_OPEN = frozenset({BookingStatus.BOOKED, BookingStatus.CONFIRMED})

ALLOWED_FROM: dict[type, frozenset[BookingStatus]] = {
    UpdateBooking: _OPEN | {BookingStatus.ACTIVE},
    RecordPayment: _OPEN | {BookingStatus.ACTIVE},
    MarkTaken: frozenset({BookingStatus.CONFIRMED}),
    ReturnBooking: frozenset({BookingStatus.ACTIVE}),
    CancelBooking: _OPEN | {BookingStatus.ACTIVE},
    DeleteBooking: frozenset(BookingStatus) - {BookingStatus.DELETED},
}

ACTION_NAMES: dict[type, str] = {
    UpdateBooking: "edit",
    RecordPayment: "record a payment on",
    MarkTaken: "hand over",
    ReturnBooking: "return",
    CancelBooking: "cancel",
    DeleteBooking: "delete",
}


@dataclass(frozen=True)
class TransitionResult:
    booking: Booking
    vehicles: list[Vehicle] = field(default_factory=list)
    new_damages: list[Damage] = field(default_factory=list)
    payment: Optional[Payment] = None
    summary: Optional[InvoiceSummary] = None


def _stamp(now: datetime) -> str:
    return now.isoformat(timespec="seconds")


def _with_history(
    booking: Booking, actor_id: str, now: datetime, description: str
) -> list[HistoryEntry]:
    entry = HistoryEntry(actor_id=actor_id, timestamp=_stamp(now), description=description)
    return [*booking.history, entry]


def payment_status_for(paid_amount: float, total_amount: float) -> PaymentStatus:
    if paid_amount <= 0:
        return PaymentStatus.UNPAID
    if paid_amount < total_amount:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PAID


def can_apply(booking: Booking, intent: BookingIntent) -> bool:
    allowed = ALLOWED_FROM.get(type(intent))
    return allowed is not None and booking.status in allowed


def _require_transition(booking: Booking, intent: BookingIntent) -> None:
    if not can_apply(booking, intent):
        raise InvalidTransitionError(
            booking.status_label, ACTION_NAMES.get(type(intent), "change")
        )


def _amount(value: float, field_name: str) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"Invalid {field_name}.", field=field_name) from exc
    if not math.isfinite(amount):
        raise ValidationError(f"Invalid {field_name}.", field=field_name)
    if amount < 0:
        raise ValidationError(f"{field_name.capitalize()} cannot be negative.", field=field_name)
    return amount


def _unique_ids(vehicle_ids: Iterable[int]) -> tuple[int, ...]:
    ordered: dict[int, None] = {}
    for vehicle_id in vehicle_ids:
        ordered[int(vehicle_id)] = None
    if not ordered:
        raise ValidationError("Select at least one vehicle.", field="vehicle_ids")
    return tuple(ordered)


def _check_dates(
    start: datetime,
    end: datetime,
    now: datetime,
    settings: BookingSettings,
) -> None:
    if end <= start:
        raise ValidationError(
            "End date/time must be after start date/time.", field="end"
        )
    window_start = now - timedelta(days=settings.back_date_window_days)
    if not settings.allow_backdate_override and start < window_start:
        raise ValidationError(
            "Bookings can only be created up to "
            f"{settings.back_date_window_days} days in the past.",
            field="start",
        )


def _check_vehicles(
    vehicle_ids: Iterable[int],
    start: datetime,
    end: datetime,
    vehicles: Mapping[int, Vehicle],
    is_blocked: Optional[BlockCheck],
) -> None:
    for vehicle_id in vehicle_ids:
        vehicle = vehicles.get(vehicle_id)
        if vehicle is None:
            raise NotFoundError(f"Vehicle {vehicle_id} not found.")
        if vehicle.archived:
            raise ValidationError(
                f"{vehicle.name} is archived and cannot be booked.", field="vehicle_ids"
            )
        if vehicle.status == VehicleStatus.MAINTENANCE:
            raise ValidationError(
                f"{vehicle.name} is under maintenance.", field="vehicle_ids"
            )
        if is_blocked is not None:
            blocked = blocked_days(vehicle_id, start, end, is_blocked)
            if blocked:
                raise ValidationError(
                    f"{vehicle.name} is blocked on {blocked[0].isoformat()}.",
                    field="vehicle_ids",
                )


def _check_overlap(
    vehicle_ids: Iterable[int],
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int],
    existing: Iterable[Booking],
) -> None:
    conflicts = find_conflicts(vehicle_ids, start, end, exclude_booking_id, existing)
    if conflicts:
        numbers = ", ".join(booking.display_number for booking in conflicts)
        raise VehicleOverlapError(
            f"One or more vehicles are already booked for these dates ({numbers}).",
            conflicting_ids=[booking.id for booking in conflicts if booking.id is not None],
        )


def create_booking(
    intent: CreateBooking,
    *,
    shop_id: int,
    booking_number: int,
    customer_id: Optional[int],
    existing: Iterable[Booking],
    vehicles: Mapping[int, Vehicle],
    actor_id: str,
    now: datetime,
    settings: BookingSettings,
    is_blocked: Optional[BlockCheck] = None,
) -> Booking:
    """Validate a new reservation and return it in status Booked/Unpaid."""
    if customer_id is None:
        raise ValidationError("Select a customer.", field="customer_id")
    vehicle_ids = _unique_ids(intent.vehicle_ids)
    start = parse_timestamp(intent.start)
    end = parse_timestamp(intent.end)
    rent = _amount(intent.rent, "rent")
    deposit = _amount(intent.deposit, "deposit")
    _check_dates(start, end, now, settings)
    _check_vehicles(vehicle_ids, start, end, vehicles, is_blocked)
    _check_overlap(vehicle_ids, start, end, None, existing)

    total = rent + deposit
    booking = Booking(
        id=None,
        shop_id=shop_id,
        booking_number=booking_number,
        vehicle_ids=vehicle_ids,
        customer_id=customer_id,
        start=start,
        end=end,
        rent=rent,
        deposit=deposit,
        total_amount=total,
        status=BookingStatus.BOOKED,
        payment_status=PaymentStatus.UNPAID,
        remaining_amount=total,
        created_at=_stamp(now),
        updated_at=_stamp(now),
    )
    booking.history = _with_history(booking, actor_id, now, "Booking created")
    return booking


def _update(
    booking: Booking,
    intent: UpdateBooking,
    *,
    actor_id: str,
    now: datetime,
    existing: Iterable[Booking],
    vehicles: Mapping[int, Vehicle],
    settings: BookingSettings,
    is_blocked: Optional[BlockCheck],
) -> TransitionResult:
    vehicle_ids = _unique_ids(intent.vehicle_ids)
    start = parse_timestamp(intent.start)
    end = parse_timestamp(intent.end)
    rent = _amount(intent.rent, "rent")
    deposit = _amount(intent.deposit, "deposit")
    if end <= start:
        raise ValidationError(
            "End date/time must be after start date/time.", field="end"
        )
    if start != booking.start:
        _check_dates(start, end, now, settings)
    added = [vehicle_id for vehicle_id in vehicle_ids if vehicle_id not in booking.vehicle_ids]
    _check_vehicles(added, start, end, vehicles, is_blocked)
    _check_overlap(vehicle_ids, start, end, booking.id, existing)

    total = rent + deposit
    updated = replace(
        booking,
        vehicle_ids=vehicle_ids,
        customer_id=intent.customer_id,
        start=start,
        end=end,
        rent=rent,
        deposit=deposit,
        total_amount=total,
        payment_status=payment_status_for(booking.paid_amount, total),
        remaining_amount=max(total - booking.paid_amount, 0.0),
        updated_at=_stamp(now),
        history=_with_history(booking, actor_id, now, "Edited details"),
    )
    changed: list[Vehicle] = []
    if booking.status == BookingStatus.ACTIVE:
        removed = [
            vehicle_id for vehicle_id in booking.vehicle_ids if vehicle_id not in vehicle_ids
        ]
        changed = [
            *_set_vehicle_status(removed, vehicles, VehicleStatus.AVAILABLE, now),
            *_set_vehicle_status(added, vehicles, VehicleStatus.BOOKED, now),
        ]
    return TransitionResult(booking=updated, vehicles=changed)


def _record_payment(
    booking: Booking, intent: RecordPayment, *, actor_id: str, now: datetime
) -> TransitionResult:
    amount = _amount(intent.amount, "amount")
    total = booking.total_amount
    if amount <= 0:
        raise ValidationError("Enter the amount received.", field="amount")
    # a rental already out stays Active
    status = (
        BookingStatus.ACTIVE
        if booking.status == BookingStatus.ACTIVE
        else BookingStatus.CONFIRMED
    )
    stamp = _stamp(now)
    if intent.kind == PaymentKind.ADVANCE:
        if amount >= total:
            raise ValidationError(
                "Advance must be less than the total amount.", field="amount"
            )
        updated = replace(
            booking,
            status=status,
            payment_status=PaymentStatus.PARTIAL,
            advance_amount=amount,
            paid_amount=amount,
            remaining_amount=total - amount,
            payment_method=intent.method,
            updated_at=stamp,
            history=_with_history(
                booking, actor_id, now, f"Advance {amount:g} via {intent.method.value}"
            ),
        )
    else:
        outstanding = max(total - booking.paid_amount, 0.0)
        if amount < outstanding:
            raise ValidationError(
                f"Enter the full balance of {outstanding:g} to mark as paid.",
                field="amount",
            )
        if amount > total:
            raise ValidationError(
                "Amount cannot exceed total charges.", field="amount"
            )
        updated = replace(
            booking,
            status=status,
            payment_status=PaymentStatus.PAID,
            paid_amount=total,
            remaining_amount=0.0,
            payment_method=intent.method,
            paid_at=stamp,
            paid_by=actor_id,
            updated_at=stamp,
            history=_with_history(
                booking, actor_id, now, f"Full payment {amount:g} via {intent.method.value}"
            ),
        )
    payment = Payment(
        id=None,
        booking_id=booking.id or 0,
        amount=amount,
        kind=intent.kind,
        method=intent.method,
        paid_at=stamp,
        recorded_by=actor_id,
    )
    return TransitionResult(booking=updated, payment=payment)


def _set_vehicle_status(
    vehicle_ids: Iterable[int],
    vehicles: Mapping[int, Vehicle],
    status: VehicleStatus,
    now: datetime,
) -> list[Vehicle]:
    changed = []
    for vehicle_id in vehicle_ids:
        vehicle = vehicles.get(vehicle_id)
        if vehicle is None or vehicle.status == VehicleStatus.MAINTENANCE:
            continue
        changed.append(replace(vehicle, status=status, updated_at=_stamp(now)))
    return changed


def _mark_taken(
    booking: Booking,
    intent: MarkTaken,
    *,
    actor_id: str,
    now: datetime,
    vehicles: Mapping[int, Vehicle],
) -> TransitionResult:
    reading = intent.opening_odometer
    if reading is None or isinstance(reading, bool) or not isinstance(reading, int):
        raise ValidationError(
            "Record the current odometer reading before handing over.",
            field="opening_odometer",
        )
    if reading < 0:
        raise ValidationError(
            "Enter a valid odometer reading.", field="opening_odometer"
        )
    stamp = _stamp(now)
    updated = replace(
        booking,
        status=BookingStatus.ACTIVE,
        opening_odometer=reading,
        taken_at=stamp,
        taken_by=actor_id,
        updated_at=stamp,
        history=_with_history(
            booking, actor_id, now, f"Vehicle taken, opening odometer {reading} km"
        ),
    )
    return TransitionResult(
        booking=updated,
        vehicles=_set_vehicle_status(booking.vehicle_ids, vehicles, VehicleStatus.BOOKED, now),
    )


def _return(
    booking: Booking,
    intent: ReturnBooking,
    *,
    actor_id: str,
    now: datetime,
    vehicles: Mapping[int, Vehicle],
    invoice_number: Optional[str] = None,
) -> TransitionResult:
    summary = calculate_return(booking, intent)
    closing = int(intent.closing_odometer)
    if booking.opening_odometer is not None and closing < booking.opening_odometer:
        logger.warning(
            "Closing odometer %s below opening %s for booking id=%s",
            closing,
            booking.opening_odometer,
            booking.id,
        )
    stamp = _stamp(now)
    new_damages: list[Damage] = []
    changed: list[Vehicle] = []
    for vehicle_id in booking.vehicle_ids:
        vehicle = vehicles.get(vehicle_id)
        if vehicle is None:
            continue
        damages = [
            Damage(
                id=None,
                vehicle_id=vehicle_id,
                booking_id=booking.id,
                damage_type=report.damage_type,
                severity=report.severity,
                notes=report.notes,
                photo_refs=list(report.photo_refs),
                recorded_by=actor_id,
                recorded_at=stamp,
            )
            for report in intent.new_damages
            if report.vehicle_id in (None, vehicle_id)
        ]
        new_damages.extend(damages)
        changed.append(
            replace(
                vehicle,
                damages=[*vehicle.damages, *damages],
                last_closing_odometer=closing,
                status=(
                    vehicle.status
                    if vehicle.status == VehicleStatus.MAINTENANCE
                    else VehicleStatus.AVAILABLE
                ),
                updated_at=stamp,
            )
        )

    description = f"Returned, closing odometer {closing} km"
    if summary.deposit_deduction:
        description += f", deposit deduction {summary.deposit_deduction:g}"
    if intent.invoice_pending:
        invoice_number = None
    if invoice_number:
        description += f", invoice {invoice_number}"
    updated = replace(
        booking,
        status=BookingStatus.COMPLETED,
        closing_odometer=closing,
        deposit_deduction=summary.deposit_deduction,
        refund_amount=summary.refund,
        damage_notes=intent.damage_notes or None,
        returned_at=stamp,
        finalized=True,
        invoice_number=invoice_number or booking.invoice_number,
        invoice_pending=intent.invoice_pending,
        invoice_generated_at=stamp if invoice_number else booking.invoice_generated_at,
        updated_at=stamp,
        history=_with_history(booking, actor_id, now, description),
    )
    return TransitionResult(
        booking=updated, vehicles=changed, new_damages=new_damages, summary=summary
    )


def _cancel(
    booking: Booking,
    intent: CancelBooking,
    *,
    actor_id: str,
    now: datetime,
    vehicles: Mapping[int, Vehicle],
) -> TransitionResult:
    stamp = _stamp(now)
    description = "Cancelled"
    if intent.reason:
        description += f": {intent.reason}"
    updated = replace(
        booking,
        status=BookingStatus.CANCELLED,
        cancelled_at=stamp,
        updated_at=stamp,
        history=_with_history(booking, actor_id, now, description),
    )
    released = []
    if booking.status == BookingStatus.ACTIVE:
        released = _set_vehicle_status(
            booking.vehicle_ids, vehicles, VehicleStatus.AVAILABLE, now
        )
    return TransitionResult(booking=updated, vehicles=released)


def _delete(
    booking: Booking,
    intent: DeleteBooking,
    *,
    actor_id: str,
    now: datetime,
    vehicles: Mapping[int, Vehicle],
) -> TransitionResult:
    description = "Deleted"
    if intent.reason:
        description += f": {intent.reason}"
    updated = replace(
        booking,
        status=BookingStatus.DELETED,
        updated_at=_stamp(now),
        history=_with_history(booking, actor_id, now, description),
    )
    released = []
    if booking.status == BookingStatus.ACTIVE:
        released = _set_vehicle_status(
            booking.vehicle_ids, vehicles, VehicleStatus.AVAILABLE, now
        )
    return TransitionResult(booking=updated, vehicles=released)


def apply_intent(
    booking: Booking,
    intent: BookingIntent,
    *,
    actor_id: str,
    now: datetime,
    existing: Iterable[Booking] = (),
    vehicles: Optional[Mapping[int, Vehicle]] = None,
    settings: Optional[BookingSettings] = None,
    is_blocked: Optional[BlockCheck] = None,
    invoice_number: Optional[str] = None,
) -> TransitionResult:
    """Run one transition on an existing booking.

    ``invoice_number`` is stamped on a return unless the invoice is deferred.
    """
    if isinstance(intent, CreateBooking):
        raise TypeError("Use create_booking() for new reservations.")
    _require_transition(booking, intent)
    vehicles = vehicles or {}
    if isinstance(intent, UpdateBooking):
        return _update(
            booking,
            intent,
            actor_id=actor_id,
            now=now,
            existing=existing,
            vehicles=vehicles,
            settings=settings or BookingSettings(),
            is_blocked=is_blocked,
        )
    if isinstance(intent, RecordPayment):
        return _record_payment(booking, intent, actor_id=actor_id, now=now)
    if isinstance(intent, MarkTaken):
        return _mark_taken(booking, intent, actor_id=actor_id, now=now, vehicles=vehicles)
    if isinstance(intent, ReturnBooking):
        return _return(
            booking,
            intent,
            actor_id=actor_id,
            now=now,
            vehicles=vehicles,
            invoice_number=invoice_number,
        )
    if isinstance(intent, CancelBooking):
        return _cancel(booking, intent, actor_id=actor_id, now=now, vehicles=vehicles)
    return _delete(booking, intent, actor_id=actor_id, now=now, vehicles=vehicles)


def append_history(
    booking: Booking, actor_id: str, now: datetime, description: str
) -> Booking:
    """Return a copy of the booking with one more history entry."""
    return replace(
        booking,
        updated_at=_stamp(now),
        history=_with_history(booking, actor_id, now, description),
    )
