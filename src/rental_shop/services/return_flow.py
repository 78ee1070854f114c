"""Deposit, refund and invoice arithmetic for vehicle returns."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from rental_shop.domain.intents import ReturnBooking
from rental_shop.domain.models import Booking
from rental_shop.services.errors import ValidationError


@dataclass(frozen=True)
class InvoiceSummary:
    rent: float
    deposit: float
    total: float
    collected: float
    balance_due: float
    deposit_deduction: float
    refund: float

    @property
    def net_revenue(self) -> float:
        """Rent kept by the shop plus whatever was withheld from the deposit."""
        return self.rent + self.deposit_deduction


def refund_amount(deposit: float, deduction: float) -> float:
    return max(0.0, float(deposit) - float(deduction))


def validate_closing_odometer(value: Optional[int]) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError(
            "Closing odometer reading is required.", field="closing_odometer"
        )
    try:
        reading = int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(
            "Closing odometer must be a whole number.", field="closing_odometer"
        ) from exc
    if reading != value or reading < 0:
        raise ValidationError(
            "Closing odometer must be a non-negative whole number.",
            field="closing_odometer",
        )
    return reading


def validate_deduction(deposit: float, deduction: Optional[float]) -> float:
    if deduction is None:
        return 0.0
    try:
        amount = float(deduction)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(
            "Deposit deduction must be a number.", field="deposit_deduction"
        ) from exc
    if not math.isfinite(amount) or amount < 0 or amount > deposit:
        raise ValidationError(
            f"Deposit deduction must be between 0 and {deposit:g}.",
            field="deposit_deduction",
        )
    return amount


def summarize(booking: Booking, deduction: float = 0.0) -> InvoiceSummary:
    total = float(booking.total_amount)
    collected = float(booking.paid_amount)
    return InvoiceSummary(
        rent=float(booking.rent),
        deposit=float(booking.deposit),
        total=total,
        collected=collected,
        balance_due=max(total - collected, 0.0),
        deposit_deduction=float(deduction),
        refund=refund_amount(booking.deposit, deduction),
    )


def calculate_return(booking: Booking, intent: ReturnBooking) -> InvoiceSummary:
    """Validate the return inputs and compute the settlement for a booking."""
    validate_closing_odometer(intent.closing_odometer)
    deduction = validate_deduction(booking.deposit, intent.deposit_deduction)
    for report in intent.new_damages:
        if report.vehicle_id is not None and report.vehicle_id not in booking.vehicle_ids:
            raise ValidationError(
                f"Vehicle {report.vehicle_id} is not part of this booking.",
                field="new_damages",
            )
    return summarize(booking, deduction)
