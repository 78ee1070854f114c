"""Repository helpers for booking persistence."""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence

from rental_shop.db.connection import transaction
from rental_shop.domain.models import Booking, HistoryEntry
from rental_shop.logging_config import get_logger
from rental_shop.repositories.mappers import (
    booking_from_row,
    booking_to_record,
    format_timestamp,
    history_from_row,
)

_COLUMNS = (
    "shop_id",
    "booking_number",
    "customer_id",
    "start_at",
    "end_at",
    "rent",
    "deposit",
    "total_amount",
    "status",
    "payment_status",
    "advance_amount",
    "paid_amount",
    "remaining_amount",
    "payment_method",
    "paid_at",
    "paid_by",
    "opening_odometer",
    "taken_at",
    "taken_by",
    "closing_odometer",
    "deposit_deduction",
    "refund_amount",
    "damage_notes",
    "returned_at",
    "finalized",
    "cancelled_at",
    "invoice_number",
    "invoice_pending",
    "invoice_generated_at",
    "created_at",
    "updated_at",
)


class BookingRepo:
    """Bookings with their vehicle links and history log, scoped by shop."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def next_booking_number(self, shop_id: int) -> int:
        try:
            row = self._connection.execute(
                "SELECT MAX(booking_number) FROM bookings WHERE shop_id = ?",
                (shop_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to read booking number shop_id=%s", shop_id)
            raise
        return int(row[0] or 0) + 1

    def next_invoice_sequence(self, shop_id: int, prefix: str) -> int:
        try:
            rows = self._connection.execute(
                """
                SELECT invoice_number
                FROM bookings
                WHERE shop_id = ? AND invoice_number IS NOT NULL
                """,
                (shop_id,),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to read invoice numbers shop_id=%s", shop_id)
            raise
        highest = 0
        for row in rows:
            _, _, suffix = str(row[0]).partition(f"{prefix}-")
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest + 1

    def insert(self, booking: Booking) -> Booking:
        record = booking_to_record(booking)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    f"INSERT INTO bookings ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                    tuple(record[column] for column in _COLUMNS),
                )
                booking_id = int(cursor.lastrowid)
                self._write_vehicles(booking_id, booking.vehicle_ids)
                self._append_history(booking_id, booking.history)
        except Exception:
            self._logger.exception(
                "Failed to insert booking shop_id=%s number=%s",
                booking.shop_id,
                booking.booking_number,
            )
            raise
        return replace(booking, id=booking_id)

    def save(self, booking: Booking) -> Booking:
        """Persist every column, relink vehicles and append unseen history."""
        if booking.id is None:
            raise ValueError("Cannot save a booking without an id")
        record = booking_to_record(booking)
        columns = [column for column in _COLUMNS if column not in ("shop_id", "created_at")]
        assignments = ", ".join(f"{column} = ?" for column in columns)
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    f"UPDATE bookings SET {assignments} WHERE id = ? AND shop_id = ?",
                    (*(record[column] for column in columns), booking.id, booking.shop_id),
                )
                if cursor.rowcount == 0:
                    raise LookupError(f"Booking {booking.id} not found")
                self._connection.execute(
                    "DELETE FROM booking_vehicles WHERE booking_id = ?",
                    (booking.id,),
                )
                self._write_vehicles(booking.id, booking.vehicle_ids)
                stored = self._connection.execute(
                    "SELECT COUNT(*) FROM booking_history WHERE booking_id = ?",
                    (booking.id,),
                ).fetchone()[0]
                self._append_history(booking.id, booking.history[int(stored):])
        except Exception:
            self._logger.exception("Failed to save booking id=%s", booking.id)
            raise
        return booking

    def get_by_id(self, shop_id: int, booking_id: int) -> Optional[Booking]:
        try:
            row = self._connection.execute(
                "SELECT * FROM bookings WHERE id = ? AND shop_id = ?",
                (booking_id, shop_id),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get booking id=%s", booking_id)
            raise
        if row is None:
            return None
        return self._hydrate([row])[0]

    def list_all(self, shop_id: int) -> List[Booking]:
        return self._query(
            "SELECT * FROM bookings WHERE shop_id = ? ORDER BY id",
            (shop_id,),
        )

    def list_overlapping(
        self, shop_id: int, start: datetime, end: datetime
    ) -> List[Booking]:
        """Bookings of any status touching ``[start, end]``."""
        return self._query(
            """
            SELECT *
            FROM bookings
            WHERE shop_id = ?
              AND start_at <= ?
              AND end_at > ?
            ORDER BY id
            """,
            (shop_id, format_timestamp(end), format_timestamp(start)),
        )

    def list_by_start_range(
        self, shop_id: int, first_day: date, last_day: date
    ) -> List[Booking]:
        """Bookings whose start date falls within the inclusive day range."""
        return self._query(
            """
            SELECT *
            FROM bookings
            WHERE shop_id = ?
              AND start_at >= ?
              AND start_at < ?
            ORDER BY start_at, id
            """,
            (
                shop_id,
                first_day.isoformat(),
                (last_day + timedelta(days=1)).isoformat(),
            ),
        )

    def _query(self, sql: str, params: Sequence[object]) -> List[Booking]:
        try:
            rows = self._connection.execute(sql, tuple(params)).fetchall()
        except Exception:
            self._logger.exception("Failed to list bookings")
            raise
        return self._hydrate(rows)

    def _hydrate(self, rows: List[sqlite3.Row]) -> List[Booking]:
        if not rows:
            return []
        ids = [row["id"] for row in rows]
        placeholders = ", ".join("?" for _ in ids)
        vehicles: Dict[int, List[int]] = defaultdict(list)
        history: Dict[int, List[HistoryEntry]] = defaultdict(list)
        try:
            for link in self._connection.execute(
                f"""
                SELECT booking_id, vehicle_id
                FROM booking_vehicles
                WHERE booking_id IN ({placeholders})
                ORDER BY booking_id, position
                """,
                ids,
            ):
                vehicles[link["booking_id"]].append(link["vehicle_id"])
            for entry in self._connection.execute(
                f"""
                SELECT *
                FROM booking_history
                WHERE booking_id IN ({placeholders})
                ORDER BY id
                """,
                ids,
            ):
                history[entry["booking_id"]].append(history_from_row(entry))
        except Exception:
            self._logger.exception("Failed to load booking details")
            raise
        return [
            booking_from_row(row, vehicles[row["id"]], history[row["id"]])
            for row in rows
        ]

    def _write_vehicles(self, booking_id: int, vehicle_ids: Sequence[int]) -> None:
        self._connection.executemany(
            """
            INSERT INTO booking_vehicles (booking_id, vehicle_id, position)
            VALUES (?, ?, ?)
            """,
            [
                (booking_id, vehicle_id, position)
                for position, vehicle_id in enumerate(vehicle_ids)
            ],
        )

    def _append_history(self, booking_id: int, entries: Sequence[HistoryEntry]) -> None:
        self._connection.executemany(
            """
            INSERT INTO booking_history (booking_id, actor_id, timestamp, description)
            VALUES (?, ?, ?, ?)
            """,
            [
                (booking_id, entry.actor_id, entry.timestamp, entry.description)
                for entry in entries
            ],
        )
