from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from rental_shop.db.connection import get_connection
from rental_shop.db.migrations import apply_migrations
from rental_shop.domain.models import (
    Booking,
    BookingStatus,
    PaymentStatus,
    Vehicle,
    VehicleStatus,
)
from rental_shop.repositories import CustomerRepo, ShopRepo, VehicleRepo
from rental_shop.services.booking_service import BookingService
from rental_shop.utils.config_store import BookingSettings

NOW = datetime(2024, 1, 1, 9, 0)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(autouse=True)
def app_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv("RENTAL_SHOP_HOME", str(home))
    return home


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "rental_shop.db"


@pytest.fixture
def connection(db_path: Path):
    connection = get_connection(db_path)
    apply_migrations(connection)
    yield connection
    connection.close()


@pytest.fixture
def shop(connection):
    return ShopRepo(connection).create("Koramangala", city="Bengaluru")


@pytest.fixture
def other_shop(connection):
    return ShopRepo(connection).create("Indiranagar", city="Bengaluru")


@pytest.fixture
def vehicles(connection, shop) -> list[Vehicle]:
    repo = VehicleRepo(connection)
    return [
        repo.create(shop.id, "Activa 6G", "KA01AB1234", daily_price=500),
        repo.create(shop.id, "Classic 350", "KA01AB5678", daily_price=1200),
        repo.create(shop.id, "Dominar 400", "KA01AB9012", daily_price=1500),
    ]


@pytest.fixture
def customer(connection, shop):
    return CustomerRepo(connection).create(shop.id, "Asha Rao", "9800000001")


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def service(connection, clock) -> BookingService:
    return BookingService(connection, settings=BookingSettings(), clock=clock)


@pytest.fixture
def make_booking():
    """Build in-memory bookings for the pure calculators."""

    def factory(
        booking_id: int,
        vehicle_ids,
        start: str,
        end: str,
        status: BookingStatus = BookingStatus.BOOKED,
        rent: float = 1000.0,
        deposit: float = 2000.0,
        shop_id: int = 1,
    ) -> Booking:
        return Booking(
            id=booking_id,
            shop_id=shop_id,
            booking_number=booking_id,
            vehicle_ids=tuple(vehicle_ids),
            customer_id=1,
            start=datetime.fromisoformat(start),
            end=datetime.fromisoformat(end),
            rent=rent,
            deposit=deposit,
            total_amount=rent + deposit,
            status=status,
            payment_status=PaymentStatus.UNPAID,
            remaining_amount=rent + deposit,
        )

    return factory


@pytest.fixture
def make_vehicle():
    def factory(
        vehicle_id: int,
        status: VehicleStatus = VehicleStatus.AVAILABLE,
        archived: bool = False,
    ) -> Vehicle:
        return Vehicle(
            id=vehicle_id,
            shop_id=1,
            name=f"Bike {vehicle_id}",
            registration_number=f"KA01XX{vehicle_id:04d}",
            status=status,
            archived=archived,
        )

    return factory
