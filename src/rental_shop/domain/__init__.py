"""Domain models for RentalShop."""

from rental_shop.domain.intents import (
    BookingIntent,
    CancelBooking,
    CreateBooking,
    DamageReport,
    DeleteBooking,
    MarkTaken,
    NewCustomer,
    RecordPayment,
    ReturnBooking,
    UpdateBooking,
)
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

__all__ = [
    "ADVANCE_PAID_LABEL",
    "AvailabilityOverride",
    "Booking",
    "BookingIntent",
    "BookingStatus",
    "CancelBooking",
    "CreateBooking",
    "Customer",
    "Damage",
    "DamageReport",
    "DamageSeverity",
    "DamageType",
    "DeleteBooking",
    "HistoryEntry",
    "MarkTaken",
    "NewCustomer",
    "Payment",
    "PaymentKind",
    "PaymentMethod",
    "PaymentStatus",
    "RecordPayment",
    "ReturnBooking",
    "Shop",
    "UpdateBooking",
    "Vehicle",
    "VehicleCategory",
    "VehicleStatus",
    "VerificationStatus",
]
