"""Repository for customer persistence."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from rental_shop.db.connection import transaction
from rental_shop.domain.models import Customer, VerificationStatus
from rental_shop.logging_config import get_logger
from rental_shop.repositories.mappers import customer_from_row


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


class CustomerRepo:
    """CRUD operations for customers of one shop."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(
        self,
        shop_id: int,
        name: str,
        phone: Optional[str],
        id_proof_type: Optional[str] = None,
        id_proof_number: Optional[str] = None,
        verification_status: VerificationStatus = VerificationStatus.PENDING,
        notes: Optional[str] = None,
    ) -> Customer:
        created_at = _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO customers (
                        shop_id,
                        name,
                        phone,
                        id_proof_type,
                        id_proof_number,
                        verification_status,
                        notes,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        shop_id,
                        name,
                        phone,
                        id_proof_type,
                        id_proof_number,
                        verification_status.value,
                        notes,
                        created_at,
                        created_at,
                    ),
                )
        except Exception:
            self._logger.exception("Failed to create customer shop_id=%s", shop_id)
            raise

        return Customer(
            id=int(cursor.lastrowid),
            shop_id=shop_id,
            name=name,
            phone=phone,
            id_proof_type=id_proof_type,
            id_proof_number=id_proof_number,
            verification_status=verification_status,
            notes=notes,
            created_at=created_at,
            updated_at=created_at,
        )

    def set_verification(
        self, shop_id: int, customer_id: int, status: VerificationStatus
    ) -> Optional[Customer]:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE customers
                    SET verification_status = ?, updated_at = ?
                    WHERE id = ? AND shop_id = ?
                    """,
                    (status.value, _now_iso(), customer_id, shop_id),
                )
        except Exception:
            self._logger.exception(
                "Failed to update verification customer id=%s", customer_id
            )
            raise
        if cursor.rowcount == 0:
            return None
        return self.get_by_id(shop_id, customer_id)

    def list_all(self, shop_id: int) -> List[Customer]:
        try:
            rows = self._connection.execute(
                "SELECT * FROM customers WHERE shop_id = ? ORDER BY name",
                (shop_id,),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list customers shop_id=%s", shop_id)
            raise
        return [customer_from_row(row) for row in rows]

    def search(self, shop_id: int, term: str) -> List[Customer]:
        """Match on name or phone."""
        term = term.strip()
        if not term:
            return self.list_all(shop_id)
        try:
            rows = self._connection.execute(
                """
                SELECT *
                FROM customers
                WHERE shop_id = ?
                  AND (name LIKE ? OR phone LIKE ?)
                ORDER BY name
                """,
                (shop_id, f"%{term}%", f"%{term}%"),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to search customers term=%s", term)
            raise
        return [customer_from_row(row) for row in rows]

    def get_by_id(self, shop_id: int, customer_id: int) -> Optional[Customer]:
        try:
            row = self._connection.execute(
                "SELECT * FROM customers WHERE id = ? AND shop_id = ?",
                (customer_id, shop_id),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get customer id=%s", customer_id)
            raise
        return customer_from_row(row) if row else None
