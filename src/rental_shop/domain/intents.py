"""Update intents accepted by the booking state machine.

Each mutation of a booking is described by one of these records instead of a
free-form partial update, so the lifecycle can validate exactly the fields an
operation needs before anything is applied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from rental_shop.domain.models import (
    DamageSeverity,
    DamageType,
    PaymentKind,
    PaymentMethod,
)


@dataclass(frozen=True)
class NewCustomer:
    """Customer details captured inline while creating a booking."""

    name: str
    phone: Optional[str] = None
    id_proof_type: Optional[str] = None
    id_proof_number: Optional[str] = None


@dataclass(frozen=True)
class CreateBooking:
    vehicle_ids: tuple[int, ...]
    start: datetime | str
    end: datetime | str
    rent: float
    deposit: float
    customer_id: Optional[int] = None
    new_customer: Optional[NewCustomer] = None


@dataclass(frozen=True)
class UpdateBooking:
    vehicle_ids: tuple[int, ...]
    start: datetime | str
    end: datetime | str
    rent: float
    deposit: float
    customer_id: int


@dataclass(frozen=True)
class RecordPayment:
    amount: float
    kind: PaymentKind
    method: PaymentMethod = PaymentMethod.CASH


@dataclass(frozen=True)
class MarkTaken:
    opening_odometer: Optional[int]


@dataclass(frozen=True)
class DamageReport:
    damage_type: DamageType
    severity: DamageSeverity
    notes: str = ""
    photo_refs: tuple[str, ...] = ()
    # None applies the damage to every vehicle on the booking.
    vehicle_id: Optional[int] = None


@dataclass(frozen=True)
class ReturnBooking:
    closing_odometer: Optional[int]
    deposit_deduction: float = 0.0
    new_damages: tuple[DamageReport, ...] = field(default_factory=tuple)
    damage_notes: Optional[str] = None
    invoice_pending: bool = False


@dataclass(frozen=True)
class CancelBooking:
    reason: Optional[str] = None


@dataclass(frozen=True)
class DeleteBooking:
    reason: Optional[str] = None


BookingIntent = Union[
    CreateBooking,
    UpdateBooking,
    RecordPayment,
    MarkTaken,
    ReturnBooking,
    CancelBooking,
    DeleteBooking,
]
