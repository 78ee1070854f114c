"""Repository for vehicle damage records."""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List

from rental_shop.db.connection import transaction
from rental_shop.domain.models import Damage
from rental_shop.logging_config import get_logger
from rental_shop.repositories.mappers import damage_from_row, damage_to_record


class DamageRepo:
    """Append-only damage log; records are never updated or removed."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def add(self, shop_id: int, damage: Damage) -> Damage:
        record = damage_to_record(damage)
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO damages (
                        shop_id,
                        vehicle_id,
                        booking_id,
                        damage_type,
                        severity,
                        notes,
                        photo_refs,
                        recorded_by,
                        recorded_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        shop_id,
                        record["vehicle_id"],
                        record["booking_id"],
                        record["damage_type"],
                        record["severity"],
                        record["notes"],
                        record["photo_refs"],
                        record["recorded_by"],
                        record["recorded_at"],
                    ),
                )
        except Exception:
            self._logger.exception(
                "Failed to add damage vehicle_id=%s", damage.vehicle_id
            )
            raise
        return replace(damage, id=int(cursor.lastrowid))

    def list_for_vehicle(self, shop_id: int, vehicle_id: int) -> List[Damage]:
        return self.list_for_vehicles(shop_id, [vehicle_id]).get(vehicle_id, [])

    def list_for_vehicles(
        self, shop_id: int, vehicle_ids: Iterable[int]
    ) -> Dict[int, List[Damage]]:
        ids = list(vehicle_ids)
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        try:
            rows = self._connection.execute(
                f"""
                SELECT *
                FROM damages
                WHERE shop_id = ?
                  AND vehicle_id IN ({placeholders})
                ORDER BY id
                """,
                (shop_id, *ids),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to list damages shop_id=%s", shop_id)
            raise
        grouped: Dict[int, List[Damage]] = defaultdict(list)
        for row in rows:
            grouped[row["vehicle_id"]].append(damage_from_row(row))
        return dict(grouped)
