"""Domain dataclasses and enums."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from rental_shop.config import BOOKING_NUMBER_PREFIX


class BookingStatus(str, Enum):
    BOOKED = "Booked"
    CONFIRMED = "Confirmed"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    DELETED = "Deleted"


# Derived label for Confirmed bookings holding only an advance.
ADVANCE_PAID_LABEL = "Advance Paid"


class PaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    PAID = "Paid"


class PaymentKind(str, Enum):
    ADVANCE = "advance"
    FULL = "full"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    UPI = "UPI"
    CARD = "Card"
    OTHER = "Other"


class VehicleStatus(str, Enum):
    AVAILABLE = "Available"
    BOOKED = "Booked"
    MAINTENANCE = "Maintenance"


class VehicleCategory(str, Enum):
    BIKE = "bike"
    CAR = "car"


class DamageType(str, Enum):
    SCRATCH = "Scratch"
    DENT = "Dent"
    BROKEN_MIRROR = "Broken Mirror"
    TYRE = "Tyre"
    MECHANICAL = "Mechanical"
    OTHER = "Other"


class DamageSeverity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"


class VerificationStatus(str, Enum):
    VERIFIED = "Verified"
    PENDING = "Pending"


# Bookings in these states never hold a vehicle.
RELEASED_STATUSES = frozenset(
    {BookingStatus.DELETED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}
)

# Bookings in these states are hidden from the calendar and revenue views.
HIDDEN_STATUSES = frozenset({BookingStatus.DELETED, BookingStatus.CANCELLED})


@dataclass(slots=True)
class Shop:
    id: Optional[int]
    name: str
    city: Optional[str] = None
    gst_number: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(slots=True)
class Damage:
    id: Optional[int]
    vehicle_id: Optional[int]
    damage_type: DamageType
    severity: DamageSeverity
    notes: str = ""
    photo_refs: list[str] = field(default_factory=list)
    booking_id: Optional[int] = None
    recorded_by: Optional[str] = None
    recorded_at: Optional[str] = None


@dataclass(slots=True)
class Vehicle:
    id: Optional[int]
    shop_id: int
    name: str
    registration_number: str
    category: VehicleCategory = VehicleCategory.BIKE
    daily_price: float = 0.0
    status: VehicleStatus = VehicleStatus.AVAILABLE
    damages: list[Damage] = field(default_factory=list)
    last_closing_odometer: Optional[int] = None
    archived: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class Customer:
    id: Optional[int]
    shop_id: int
    name: str
    phone: Optional[str]
    id_proof_type: Optional[str] = None
    id_proof_number: Optional[str] = None
    verification_status: VerificationStatus = VerificationStatus.PENDING
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    actor_id: str
    timestamp: str
    description: str


@dataclass(slots=True)
class Booking:
    id: Optional[int]
    shop_id: int
    booking_number: int
    vehicle_ids: tuple[int, ...]
    customer_id: int
    start: datetime
    end: datetime
    rent: float
    deposit: float
    total_amount: float
    status: BookingStatus = BookingStatus.BOOKED
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    advance_amount: float = 0.0
    paid_amount: float = 0.0
    remaining_amount: float = 0.0
    payment_method: Optional[PaymentMethod] = None
    paid_at: Optional[str] = None
    paid_by: Optional[str] = None
    opening_odometer: Optional[int] = None
    taken_at: Optional[str] = None
    taken_by: Optional[str] = None
    closing_odometer: Optional[int] = None
    deposit_deduction: Optional[float] = None
    refund_amount: Optional[float] = None
    damage_notes: Optional[str] = None
    returned_at: Optional[str] = None
    finalized: bool = False
    cancelled_at: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_pending: bool = False
    invoice_generated_at: Optional[str] = None
    history: list[HistoryEntry] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def display_number(self) -> str:
        return f"{BOOKING_NUMBER_PREFIX}-{self.booking_number:04d}"

    @property
    def status_label(self) -> str:
        """Status as shown to staff; Confirmed with an advance reads "Advance Paid"."""
        if (
            self.status == BookingStatus.CONFIRMED
            and self.payment_status == PaymentStatus.PARTIAL
        ):
            return ADVANCE_PAID_LABEL
        return self.status.value

    @property
    def holds_vehicles(self) -> bool:
        return self.status not in RELEASED_STATUSES


@dataclass(slots=True)
class Payment:
    id: Optional[int]
    booking_id: int
    amount: float
    kind: PaymentKind
    method: Optional[PaymentMethod]
    paid_at: Optional[str]
    recorded_by: Optional[str] = None


@dataclass(slots=True)
class AvailabilityOverride:
    """A manual block of one vehicle (or the whole shop) on one date."""

    id: Optional[int]
    shop_id: int
    vehicle_id: Optional[int]
    day: date
    reason: Optional[str] = None
    created_at: Optional[str] = None
