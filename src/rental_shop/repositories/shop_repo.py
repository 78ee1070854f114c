"""Repository for shop persistence."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from rental_shop.db.connection import transaction
from rental_shop.domain.models import Shop
from rental_shop.logging_config import get_logger
from rental_shop.repositories.mappers import shop_from_row


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


class ShopRepo:
    """Shops are the tenant boundary; every other table carries a shop id."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(
        self,
        name: str,
        city: Optional[str] = None,
        gst_number: Optional[str] = None,
    ) -> Shop:
        created_at = _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO shops (name, city, gst_number, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (name, city, gst_number, created_at),
                )
        except Exception:
            self._logger.exception("Failed to create shop name=%s", name)
            raise
        return Shop(
            id=int(cursor.lastrowid),
            name=name,
            city=city,
            gst_number=gst_number,
            created_at=created_at,
        )

    def get_by_id(self, shop_id: int) -> Optional[Shop]:
        try:
            row = self._connection.execute(
                "SELECT * FROM shops WHERE id = ?",
                (shop_id,),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get shop id=%s", shop_id)
            raise
        return shop_from_row(row) if row else None

    def list_all(self) -> List[Shop]:
        try:
            rows = self._connection.execute(
                "SELECT * FROM shops ORDER BY name"
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list shops")
            raise
        return [shop_from_row(row) for row in rows]
