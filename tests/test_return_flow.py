import pytest

from rental_shop.domain.intents import ReturnBooking
from rental_shop.domain.models import BookingStatus
from rental_shop.services.errors import ValidationError
from rental_shop.services.return_flow import (
    calculate_return,
    refund_amount,
    summarize,
    validate_closing_odometer,
    validate_deduction,
)


@pytest.fixture
def active_booking(make_booking):
    booking = make_booking(
        1, [1], "2024-01-01T10:00", "2024-01-03T10:00", BookingStatus.ACTIVE,
        rent=1000, deposit=2000,
    )
    booking.paid_amount = 3000
    return booking


def test_deduction_reduces_refund(active_booking):
    summary = calculate_return(
        active_booking, ReturnBooking(closing_odometer=1500, deposit_deduction=500)
    )
    assert summary.refund == 1500
    assert summary.deposit_deduction == 500
    assert summary.balance_due == 0
    assert summary.net_revenue == 1500


def test_deduction_above_deposit_is_rejected(active_booking):
    with pytest.raises(ValidationError) as excinfo:
        calculate_return(
            active_booking, ReturnBooking(closing_odometer=1500, deposit_deduction=2500)
        )
    assert excinfo.value.field == "deposit_deduction"


@pytest.mark.parametrize("deduction", [0, 0.5, 999.99, 1999, 2000])
def test_refund_stays_within_deposit(deduction):
    refund = refund_amount(2000, validate_deduction(2000, deduction))
    assert 0 <= refund <= 2000
    assert refund == pytest.approx(2000 - deduction)


@pytest.mark.parametrize(
    "deduction", [-0.01, 2000.01, float("nan"), float("inf"), "abc", 10**400]
)
def test_deduction_outside_deposit_fails(deduction):
    with pytest.raises(ValidationError):
        validate_deduction(2000, deduction)


@pytest.mark.parametrize(
    "reading", [None, -1, 10.5, True, "abc", float("nan"), float("inf")]
)
def test_closing_odometer_must_be_whole_and_non_negative(reading):
    with pytest.raises(ValidationError) as excinfo:
        validate_closing_odometer(reading)
    assert excinfo.value.field == "closing_odometer"


def test_zero_odometer_is_allowed():
    assert validate_closing_odometer(0) == 0


def test_summary_reports_outstanding_balance(make_booking):
    booking = make_booking(1, [1], "2024-01-01T10:00", "2024-01-02T10:00", rent=800, deposit=500)
    booking.paid_amount = 300
    summary = summarize(booking)
    assert summary.total == 1300
    assert summary.collected == 300
    assert summary.balance_due == 1000
    assert summary.refund == 500
