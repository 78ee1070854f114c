"""SQLite row mappers for domain models."""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

from rental_shop.domain.models import (
    ADVANCE_PAID_LABEL,
    AvailabilityOverride,
    Booking,
    BookingStatus,
    Customer,
    Damage,
    DamageSeverity,
    DamageType,
    HistoryEntry,
    Payment,
    PaymentKind,
    PaymentMethod,
    PaymentStatus,
    Shop,
    Vehicle,
    VehicleCategory,
    VehicleStatus,
    VerificationStatus,
)


def _row_value(row: sqlite3.Row, key: str) -> Any:
    return row[key] if key in row.keys() else None


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="minutes")


def _parse_stored_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _optional_method(value: Optional[str]) -> Optional[PaymentMethod]:
    if not value:
        return None
    try:
        return PaymentMethod(value)
    except ValueError:
        return PaymentMethod.OTHER


def booking_status_from_value(value: str) -> tuple[BookingStatus, bool]:
    """Map stored text to a status; flags legacy "Advance Paid" rows."""
    if value == ADVANCE_PAID_LABEL:
        return BookingStatus.CONFIRMED, True
    return BookingStatus(value), False


def shop_from_row(row: sqlite3.Row) -> Shop:
    return Shop(
        id=row["id"],
        name=row["name"],
        city=_row_value(row, "city"),
        gst_number=_row_value(row, "gst_number"),
        created_at=_row_value(row, "created_at"),
    )


def damage_from_row(row: sqlite3.Row) -> Damage:
    raw_refs = _row_value(row, "photo_refs") or "[]"
    try:
        photo_refs = [str(ref) for ref in json.loads(raw_refs)]
    except (TypeError, json.JSONDecodeError):
        photo_refs = []
    try:
        damage_type = DamageType(row["damage_type"])
    except ValueError:
        damage_type = DamageType.OTHER
    return Damage(
        id=row["id"],
        vehicle_id=row["vehicle_id"],
        booking_id=_row_value(row, "booking_id"),
        damage_type=damage_type,
        severity=DamageSeverity(row["severity"]),
        notes=_row_value(row, "notes") or "",
        photo_refs=photo_refs,
        recorded_by=_row_value(row, "recorded_by"),
        recorded_at=_row_value(row, "recorded_at"),
    )


def damage_to_record(damage: Damage) -> Dict[str, Any]:
    return {
        "id": damage.id,
        "vehicle_id": damage.vehicle_id,
        "booking_id": damage.booking_id,
        "damage_type": damage.damage_type.value,
        "severity": damage.severity.value,
        "notes": damage.notes,
        "photo_refs": json.dumps(list(damage.photo_refs)),
        "recorded_by": damage.recorded_by,
        "recorded_at": damage.recorded_at,
    }


def vehicle_from_row(
    row: sqlite3.Row, damages: Iterable[Damage] = ()
) -> Vehicle:
    return Vehicle(
        id=row["id"],
        shop_id=row["shop_id"],
        name=row["name"],
        registration_number=row["registration_number"],
        category=VehicleCategory(row["category"]),
        daily_price=float(row["daily_price"] or 0),
        status=VehicleStatus(row["status"]),
        damages=list(damages),
        last_closing_odometer=_row_value(row, "last_closing_odometer"),
        archived=bool(_row_value(row, "archived") or 0),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def customer_from_row(row: sqlite3.Row) -> Customer:
    raw_status = _row_value(row, "verification_status") or VerificationStatus.PENDING.value
    try:
        verification = VerificationStatus(raw_status)
    except ValueError:
        verification = VerificationStatus.PENDING
    return Customer(
        id=row["id"],
        shop_id=row["shop_id"],
        name=row["name"],
        phone=_row_value(row, "phone"),
        id_proof_type=_row_value(row, "id_proof_type"),
        id_proof_number=_row_value(row, "id_proof_number"),
        verification_status=verification,
        notes=_row_value(row, "notes"),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def history_from_row(row: sqlite3.Row) -> HistoryEntry:
    return HistoryEntry(
        actor_id=row["actor_id"],
        timestamp=row["timestamp"],
        description=row["description"],
    )


def booking_from_row(
    row: sqlite3.Row,
    vehicle_ids: Iterable[int],
    history: Iterable[HistoryEntry] = (),
) -> Booking:
    status, legacy_advance = booking_status_from_value(row["status"])
    payment_status = PaymentStatus(row["payment_status"])
    if legacy_advance and payment_status == PaymentStatus.UNPAID:
        payment_status = PaymentStatus.PARTIAL
    return Booking(
        id=row["id"],
        shop_id=row["shop_id"],
        booking_number=row["booking_number"],
        vehicle_ids=tuple(vehicle_ids),
        customer_id=row["customer_id"],
        start=_parse_stored_timestamp(row["start_at"]),
        end=_parse_stored_timestamp(row["end_at"]),
        rent=float(row["rent"]),
        deposit=float(row["deposit"]),
        total_amount=float(row["total_amount"]),
        status=status,
        payment_status=payment_status,
        advance_amount=float(_row_value(row, "advance_amount") or 0),
        paid_amount=float(_row_value(row, "paid_amount") or 0),
        remaining_amount=float(_row_value(row, "remaining_amount") or 0),
        payment_method=_optional_method(_row_value(row, "payment_method")),
        paid_at=_row_value(row, "paid_at"),
        paid_by=_row_value(row, "paid_by"),
        opening_odometer=_row_value(row, "opening_odometer"),
        taken_at=_row_value(row, "taken_at"),
        taken_by=_row_value(row, "taken_by"),
        closing_odometer=_row_value(row, "closing_odometer"),
        deposit_deduction=_row_value(row, "deposit_deduction"),
        refund_amount=_row_value(row, "refund_amount"),
        damage_notes=_row_value(row, "damage_notes"),
        returned_at=_row_value(row, "returned_at"),
        finalized=bool(_row_value(row, "finalized") or 0),
        cancelled_at=_row_value(row, "cancelled_at"),
        invoice_number=_row_value(row, "invoice_number"),
        invoice_pending=bool(_row_value(row, "invoice_pending") or 0),
        invoice_generated_at=_row_value(row, "invoice_generated_at"),
        history=list(history),
        created_at=_row_value(row, "created_at"),
        updated_at=_row_value(row, "updated_at"),
    )


def booking_to_record(booking: Booking) -> Dict[str, Any]:
    return {
        "id": booking.id,
        "shop_id": booking.shop_id,
        "booking_number": booking.booking_number,
        "customer_id": booking.customer_id,
        "start_at": format_timestamp(booking.start),
        "end_at": format_timestamp(booking.end),
        "rent": booking.rent,
        "deposit": booking.deposit,
        "total_amount": booking.total_amount,
        "status": booking.status.value,
        "payment_status": booking.payment_status.value,
        "advance_amount": booking.advance_amount,
        "paid_amount": booking.paid_amount,
        "remaining_amount": booking.remaining_amount,
        "payment_method": booking.payment_method.value if booking.payment_method else None,
        "paid_at": booking.paid_at,
        "paid_by": booking.paid_by,
        "opening_odometer": booking.opening_odometer,
        "taken_at": booking.taken_at,
        "taken_by": booking.taken_by,
        "closing_odometer": booking.closing_odometer,
        "deposit_deduction": booking.deposit_deduction,
        "refund_amount": booking.refund_amount,
        "damage_notes": booking.damage_notes,
        "returned_at": booking.returned_at,
        "finalized": int(booking.finalized),
        "cancelled_at": booking.cancelled_at,
        "invoice_number": booking.invoice_number,
        "invoice_pending": int(booking.invoice_pending),
        "invoice_generated_at": booking.invoice_generated_at,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
    }


def payment_from_row(row: sqlite3.Row) -> Payment:
    return Payment(
        id=row["id"],
        booking_id=row["booking_id"],
        amount=float(row["amount"]),
        kind=PaymentKind(row["kind"]),
        method=_optional_method(_row_value(row, "method")),
        paid_at=_row_value(row, "paid_at"),
        recorded_by=_row_value(row, "recorded_by"),
    )


def override_from_row(row: sqlite3.Row) -> AvailabilityOverride:
    return AvailabilityOverride(
        id=row["id"],
        shop_id=row["shop_id"],
        vehicle_id=_row_value(row, "vehicle_id"),
        day=date.fromisoformat(row["day"]),
        reason=_row_value(row, "reason"),
        created_at=_row_value(row, "created_at"),
    )
