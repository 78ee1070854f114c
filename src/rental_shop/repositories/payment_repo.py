"""Repository for payments persistence."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from typing import Optional

from rental_shop.db.connection import transaction
from rental_shop.domain.models import Payment
from rental_shop.logging_config import get_logger
from rental_shop.repositories.mappers import payment_from_row


class PaymentRepository:
    """Ledger of amounts received against bookings."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def list_by_booking(self, booking_id: int) -> list[Payment]:
        try:
            rows = self._connection.execute(
                """
                SELECT *
                FROM payments
                WHERE booking_id = ?
                ORDER BY paid_at IS NULL, paid_at, id
                """,
                (booking_id,),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list payments booking_id=%s", booking_id)
            raise
        return [payment_from_row(row) for row in rows]

    def get_by_id(self, payment_id: int) -> Optional[Payment]:
        try:
            row = self._connection.execute(
                "SELECT * FROM payments WHERE id = ?",
                (payment_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to fetch payment id=%s", payment_id)
            raise
        return payment_from_row(row) if row else None

    def create(self, payment: Payment) -> Payment:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO payments (booking_id, amount, kind, method, paid_at, recorded_by)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        payment.booking_id,
                        payment.amount,
                        payment.kind.value,
                        payment.method.value if payment.method else None,
                        payment.paid_at,
                        payment.recorded_by,
                    ),
                )
        except Exception:
            self._logger.exception(
                "Failed to create payment booking_id=%s", payment.booking_id
            )
            raise
        return replace(payment, id=int(cursor.lastrowid))

    def total_for_booking(self, booking_id: int) -> float:
        try:
            row = self._connection.execute(
                "SELECT COALESCE(SUM(amount), 0) FROM payments WHERE booking_id = ?",
                (booking_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to sum payments booking_id=%s", booking_id)
            raise
        return float(row[0])
