import logging
import sys

import pytest

from rental_shop.app import main
from rental_shop.db.connection import get_connection
from rental_shop.repositories import CustomerRepo, VehicleRepo
from rental_shop.services.booking_service import BookingService
from rental_shop.domain.intents import CreateBooking

from conftest import FixedClock, NOW


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _seed_booking(db_path):
    connection = get_connection(db_path)
    try:
        vehicle = VehicleRepo(connection).create(1, "Activa 6G", "KA01AB1234")
        customer = CustomerRepo(connection).create(1, "Asha Rao", "9800000001")
        BookingService(connection, clock=FixedClock(NOW)).create(
            1,
            CreateBooking(
                vehicle_ids=(vehicle.id,),
                start="2024-01-02T10:00",
                end="2024-01-03T10:00",
                rent=800,
                deposit=1000,
                customer_id=customer.id,
            ),
            "clerk-1",
        )
    finally:
        connection.close()


def test_init_db_creates_shop(db_path, capsys):
    assert main(["--db", str(db_path), "init-db", "--shop", "Koramangala"]) == 0
    out = capsys.readouterr().out
    assert "Created shop 1: Koramangala" in out
    assert "schema v3" in out


def test_calendar_prints_booking_numbers(db_path, capsys):
    main(["--db", str(db_path), "init-db", "--shop", "Koramangala"])
    _seed_booking(db_path)
    capsys.readouterr()
    assert main(["--db", str(db_path), "calendar", "--shop-id", "1", "--start", "2024-01-01", "--days", "4"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("Vehicle")
    row = lines[1].split()
    assert row[:2] == ["Activa", "6G"]
    assert row[2:] == [".", "BK-0001", "BK-0001", "."]


def test_revenue_report_and_csv(db_path, tmp_path, capsys):
    main(["--db", str(db_path), "init-db", "--shop", "Koramangala"])
    _seed_booking(db_path)
    capsys.readouterr()
    csv_path = tmp_path / "revenue.csv"
    code = main(
        [
            "--db", str(db_path), "revenue", "--shop-id", "1", "--period", "custom",
            "--start", "2024-01-01", "--end", "2024-01-03", "--csv", str(csv_path),
        ]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "Revenue: ₹ 1,800.00" in out
    assert csv_path.read_text(encoding="utf-8-sig").splitlines()[0] == "Period;Bookings;Rent;Deposit;Total"


def test_service_errors_exit_with_status_one(db_path, capsys):
    main(["--db", str(db_path), "init-db", "--shop", "Koramangala"])
    assert main(["--db", str(db_path), "invoice", "--shop-id", "1", "--booking-id", "99"]) == 1
    assert "Booking 99 not found." in capsys.readouterr().err
