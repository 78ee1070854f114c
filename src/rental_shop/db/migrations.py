"""Database migrations for SQLite schema versioning."""

from __future__ import annotations

from dataclasses import dataclass
import sqlite3

from rental_shop.db.connection import transaction
from rental_shop.logging_config import get_logger


@dataclass(frozen=True)
class Migration:
    version: int
    script: str


MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        script="""
        CREATE TABLE IF NOT EXISTS shops (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            city TEXT,
            gst_number TEXT,
            created_at TEXT
        );

        CREATE TABLE IF NOT EXISTS vehicles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            shop_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            registration_number TEXT NOT NULL,
            category TEXT NOT NULL DEFAULT 'bike'
                CHECK (category IN ('bike', 'car')),
            daily_price REAL NOT NULL DEFAULT 0 CHECK (daily_price >= 0),
            status TEXT NOT NULL DEFAULT 'Available'
                CHECK (status IN ('Available', 'Booked', 'Maintenance')),
            last_closing_odometer INTEGER,
            archived INTEGER NOT NULL DEFAULT 0,
            created_at TEXT,
            updated_at TEXT,
            FOREIGN KEY (shop_id) REFERENCES shops(id),
            UNIQUE (shop_id, registration_number)
        );

        CREATE TABLE IF NOT EXISTS damages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            shop_id INTEGER NOT NULL,
            vehicle_id INTEGER NOT NULL,
            booking_id INTEGER,
            damage_type TEXT NOT NULL,
            severity TEXT NOT NULL CHECK (severity IN ('minor', 'major')),
            notes TEXT,
            photo_refs TEXT NOT NULL DEFAULT '[]',
            recorded_by TEXT,
            recorded_at TEXT,
            FOREIGN KEY (shop_id) REFERENCES shops(id),
            FOREIGN KEY (vehicle_id) REFERENCES vehicles(id)
        );

        CREATE TABLE IF NOT EXISTS customers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            shop_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            phone TEXT,
            id_proof_type TEXT,
            id_proof_number TEXT,
            verification_status TEXT NOT NULL DEFAULT 'Pending',
            notes TEXT,
            created_at TEXT,
            updated_at TEXT,
            FOREIGN KEY (shop_id) REFERENCES shops(id)
        );

        CREATE TABLE IF NOT EXISTS bookings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            shop_id INTEGER NOT NULL,
            booking_number INTEGER NOT NULL,
            customer_id INTEGER NOT NULL,
            start_at TEXT NOT NULL,
            end_at TEXT NOT NULL,
            rent REAL NOT NULL DEFAULT 0 CHECK (rent >= 0),
            deposit REAL NOT NULL DEFAULT 0 CHECK (deposit >= 0),
            total_amount REAL NOT NULL DEFAULT 0,
            status TEXT NOT NULL,
            payment_status TEXT NOT NULL,
            advance_amount REAL NOT NULL DEFAULT 0,
            paid_amount REAL NOT NULL DEFAULT 0,
            remaining_amount REAL NOT NULL DEFAULT 0,
            payment_method TEXT,
            paid_at TEXT,
            paid_by TEXT,
            opening_odometer INTEGER,
            taken_at TEXT,
            taken_by TEXT,
            closing_odometer INTEGER,
            deposit_deduction REAL,
            refund_amount REAL,
            damage_notes TEXT,
            returned_at TEXT,
            finalized INTEGER NOT NULL DEFAULT 0,
            cancelled_at TEXT,
            created_at TEXT,
            updated_at TEXT,
            FOREIGN KEY (shop_id) REFERENCES shops(id),
            FOREIGN KEY (customer_id) REFERENCES customers(id),
            UNIQUE (shop_id, booking_number),
            CHECK (end_at > start_at)
        );

        CREATE TABLE IF NOT EXISTS booking_vehicles (
            booking_id INTEGER NOT NULL,
            vehicle_id INTEGER NOT NULL,
            position INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (booking_id, vehicle_id),
            FOREIGN KEY (booking_id) REFERENCES bookings(id),
            FOREIGN KEY (vehicle_id) REFERENCES vehicles(id)
        );

        CREATE TABLE IF NOT EXISTS booking_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL,
            actor_id TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            description TEXT NOT NULL,
            FOREIGN KEY (booking_id) REFERENCES bookings(id)
        );

        CREATE TABLE IF NOT EXISTS payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL,
            amount REAL NOT NULL CHECK (amount > 0),
            kind TEXT NOT NULL CHECK (kind IN ('advance', 'full')),
            method TEXT,
            paid_at TEXT,
            recorded_by TEXT,
            FOREIGN KEY (booking_id) REFERENCES bookings(id)
        );

        CREATE INDEX IF NOT EXISTS idx_vehicles_shop_id
            ON vehicles(shop_id);
        CREATE INDEX IF NOT EXISTS idx_damages_vehicle_id
            ON damages(vehicle_id);
        CREATE INDEX IF NOT EXISTS idx_customers_shop_id
            ON customers(shop_id);
        CREATE INDEX IF NOT EXISTS idx_bookings_shop_start
            ON bookings(shop_id, start_at);
        CREATE INDEX IF NOT EXISTS idx_bookings_shop_end
            ON bookings(shop_id, end_at);
        CREATE INDEX IF NOT EXISTS idx_bookings_status
            ON bookings(status);
        CREATE INDEX IF NOT EXISTS idx_booking_vehicles_vehicle_id
            ON booking_vehicles(vehicle_id);
        CREATE INDEX IF NOT EXISTS idx_booking_history_booking_id
            ON booking_history(booking_id);
        CREATE INDEX IF NOT EXISTS idx_payments_booking_id
            ON payments(booking_id);
        """,
    ),
    Migration(
        version=2,
        script="""
        CREATE TABLE IF NOT EXISTS availability_overrides (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            shop_id INTEGER NOT NULL,
            vehicle_id INTEGER,
            day TEXT NOT NULL,
            reason TEXT,
            created_at TEXT,
            FOREIGN KEY (shop_id) REFERENCES shops(id),
            FOREIGN KEY (vehicle_id) REFERENCES vehicles(id)
        );

        CREATE UNIQUE INDEX IF NOT EXISTS idx_overrides_vehicle_day
            ON availability_overrides(shop_id, COALESCE(vehicle_id, 0), day);
        """,
    ),
    Migration(
        version=3,
        script="""
        ALTER TABLE bookings ADD COLUMN invoice_number TEXT;
        ALTER TABLE bookings ADD COLUMN invoice_pending INTEGER NOT NULL DEFAULT 0;
        ALTER TABLE bookings ADD COLUMN invoice_generated_at TEXT;

        CREATE UNIQUE INDEX IF NOT EXISTS idx_bookings_shop_invoice
            ON bookings(shop_id, invoice_number)
            WHERE invoice_number IS NOT NULL;
        """,
    ),
]


def _fetch_schema_version(connection: sqlite3.Connection) -> int:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS app_meta (
            schema_version INTEGER NOT NULL
        );
        """
    )
    row = connection.execute(
        "SELECT schema_version FROM app_meta LIMIT 1"
    ).fetchone()
    if row is None:
        connection.execute("INSERT INTO app_meta (schema_version) VALUES (0)")
        return 0
    return int(row[0])


def apply_migrations(connection: sqlite3.Connection) -> int:
    """Apply pending database migrations and return the resulting version."""
    logger = get_logger(__name__)
    with transaction(connection):
        current_version = _fetch_schema_version(connection)

    for migration in MIGRATIONS:
        if migration.version <= current_version:
            continue

        try:
            with transaction(connection, immediate=True):
                # executescript() would commit early; run statements one by one.
                for statement in _split_statements(migration.script):
                    connection.execute(statement)
                connection.execute(
                    "UPDATE app_meta SET schema_version = ?",
                    (migration.version,),
                )
        except Exception:
            logger.exception("Failed to apply migration version=%s", migration.version)
            raise

        logger.info("Applied schema migration version=%s", migration.version)
        current_version = migration.version
    return current_version


def _split_statements(script: str) -> list[str]:
    return [statement.strip() for statement in script.split(";") if statement.strip()]
