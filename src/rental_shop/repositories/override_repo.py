"""Repository for manual availability blocks."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import List, Optional

from rental_shop.db.connection import transaction
from rental_shop.domain.models import AvailabilityOverride
from rental_shop.logging_config import get_logger
from rental_shop.repositories.mappers import override_from_row


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


class AvailabilityOverrideRepo:
    """Per-vehicle or shop-wide date blocks. A ``None`` vehicle blocks the shop."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def block(
        self,
        shop_id: int,
        day: date,
        vehicle_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> AvailabilityOverride:
        existing = self._find(shop_id, day, vehicle_id)
        if existing is not None:
            return existing
        created_at = _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO availability_overrides (
                        shop_id, vehicle_id, day, reason, created_at
                    )
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (shop_id, vehicle_id, day.isoformat(), reason, created_at),
                )
        except Exception:
            self._logger.exception(
                "Failed to block day=%s vehicle_id=%s", day, vehicle_id
            )
            raise
        return AvailabilityOverride(
            id=int(cursor.lastrowid),
            shop_id=shop_id,
            vehicle_id=vehicle_id,
            day=day,
            reason=reason,
            created_at=created_at,
        )

    def unblock(self, shop_id: int, day: date, vehicle_id: Optional[int] = None) -> bool:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    DELETE FROM availability_overrides
                    WHERE shop_id = ?
                      AND day = ?
                      AND vehicle_id IS ?
                    """,
                    (shop_id, day.isoformat(), vehicle_id),
                )
        except Exception:
            self._logger.exception(
                "Failed to unblock day=%s vehicle_id=%s", day, vehicle_id
            )
            raise
        return cursor.rowcount > 0

    def is_blocked(self, shop_id: int, vehicle_id: int, day: date) -> bool:
        try:
            row = self._connection.execute(
                """
                SELECT 1
                FROM availability_overrides
                WHERE shop_id = ?
                  AND day = ?
                  AND (vehicle_id IS NULL OR vehicle_id = ?)
                LIMIT 1
                """,
                (shop_id, day.isoformat(), vehicle_id),
            ).fetchone()
        except Exception:
            self._logger.exception(
                "Failed to check block day=%s vehicle_id=%s", day, vehicle_id
            )
            raise
        return row is not None

    def list_all(self, shop_id: int) -> List[AvailabilityOverride]:
        try:
            rows = self._connection.execute(
                """
                SELECT *
                FROM availability_overrides
                WHERE shop_id = ?
                ORDER BY day, vehicle_id
                """,
                (shop_id,),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list overrides shop_id=%s", shop_id)
            raise
        return [override_from_row(row) for row in rows]

    def _find(
        self, shop_id: int, day: date, vehicle_id: Optional[int]
    ) -> Optional[AvailabilityOverride]:
        try:
            row = self._connection.execute(
                """
                SELECT *
                FROM availability_overrides
                WHERE shop_id = ?
                  AND day = ?
                  AND vehicle_id IS ?
                """,
                (shop_id, day.isoformat(), vehicle_id),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to find override day=%s", day)
            raise
        return override_from_row(row) if row else None
