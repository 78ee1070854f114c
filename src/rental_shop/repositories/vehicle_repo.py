"""Repository for vehicle persistence."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from rental_shop.db.connection import transaction
from rental_shop.domain.models import Vehicle, VehicleCategory, VehicleStatus
from rental_shop.logging_config import get_logger
from rental_shop.repositories.damage_repo import DamageRepo
from rental_shop.repositories.mappers import vehicle_from_row


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


class VehicleRepo:
    """CRUD operations for vehicles. Vehicles are archived, never deleted."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)
        self._damages = DamageRepo(connection)

    def create(
        self,
        shop_id: int,
        name: str,
        registration_number: str,
        category: VehicleCategory = VehicleCategory.BIKE,
        daily_price: float = 0.0,
        status: VehicleStatus = VehicleStatus.AVAILABLE,
    ) -> Vehicle:
        created_at = _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    INSERT INTO vehicles (
                        shop_id,
                        name,
                        registration_number,
                        category,
                        daily_price,
                        status,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        shop_id,
                        name,
                        registration_number.strip().upper(),
                        category.value,
                        float(daily_price),
                        status.value,
                        created_at,
                        created_at,
                    ),
                )
        except Exception:
            self._logger.exception(
                "Failed to create vehicle registration=%s", registration_number
            )
            raise
        return Vehicle(
            id=int(cursor.lastrowid),
            shop_id=shop_id,
            name=name,
            registration_number=registration_number.strip().upper(),
            category=category,
            daily_price=float(daily_price),
            status=status,
            created_at=created_at,
            updated_at=created_at,
        )

    def save(self, vehicle: Vehicle) -> Optional[Vehicle]:
        """Write back editable columns. Damages are appended through DamageRepo."""
        updated_at = vehicle.updated_at or _now_iso()
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE vehicles
                    SET
                        name = ?,
                        registration_number = ?,
                        category = ?,
                        daily_price = ?,
                        status = ?,
                        last_closing_odometer = ?,
                        archived = ?,
                        updated_at = ?
                    WHERE id = ? AND shop_id = ?
                    """,
                    (
                        vehicle.name,
                        vehicle.registration_number,
                        vehicle.category.value,
                        vehicle.daily_price,
                        vehicle.status.value,
                        vehicle.last_closing_odometer,
                        int(vehicle.archived),
                        updated_at,
                        vehicle.id,
                        vehicle.shop_id,
                    ),
                )
        except Exception:
            self._logger.exception("Failed to save vehicle id=%s", vehicle.id)
            raise
        if cursor.rowcount == 0:
            return None
        return vehicle

    def set_status(
        self, shop_id: int, vehicle_id: int, status: VehicleStatus
    ) -> Optional[Vehicle]:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE vehicles
                    SET status = ?, updated_at = ?
                    WHERE id = ? AND shop_id = ?
                    """,
                    (status.value, _now_iso(), vehicle_id, shop_id),
                )
        except Exception:
            self._logger.exception(
                "Failed to set status vehicle id=%s status=%s", vehicle_id, status
            )
            raise
        if cursor.rowcount == 0:
            return None
        return self.get_by_id(shop_id, vehicle_id)

    def archive(self, shop_id: int, vehicle_id: int) -> bool:
        try:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    """
                    UPDATE vehicles
                    SET archived = 1, updated_at = ?
                    WHERE id = ? AND shop_id = ?
                    """,
                    (_now_iso(), vehicle_id, shop_id),
                )
        except Exception:
            self._logger.exception("Failed to archive vehicle id=%s", vehicle_id)
            raise
        return cursor.rowcount > 0

    def get_by_id(self, shop_id: int, vehicle_id: int) -> Optional[Vehicle]:
        try:
            row = self._connection.execute(
                "SELECT * FROM vehicles WHERE id = ? AND shop_id = ?",
                (vehicle_id, shop_id),
            ).fetchone()
        except Exception:
            self._logger.exception("Failed to get vehicle id=%s", vehicle_id)
            raise
        if row is None:
            return None
        damages = self._damages.list_for_vehicle(shop_id, vehicle_id)
        return vehicle_from_row(row, damages)

    def get_many(self, shop_id: int, vehicle_ids: Iterable[int]) -> Dict[int, Vehicle]:
        """Vehicles of this shop keyed by id, archived ones included."""
        ids = list(dict.fromkeys(vehicle_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        try:
            rows = self._connection.execute(
                f"""
                SELECT *
                FROM vehicles
                WHERE shop_id = ?
                  AND id IN ({placeholders})
                """,
                (shop_id, *ids),
            ).fetchall()
        except Exception:
            self._logger.exception("Failed to load vehicles shop_id=%s", shop_id)
            raise
        return {vehicle.id: vehicle for vehicle in self._with_damages(shop_id, rows)}

    def list_all(self, shop_id: int, include_archived: bool = False) -> List[Vehicle]:
        query = "SELECT * FROM vehicles WHERE shop_id = ?"
        if not include_archived:
            query += " AND archived = 0"
        query += " ORDER BY name, id"
        try:
            rows = self._connection.execute(query, (shop_id,)).fetchall()
        except Exception:
            self._logger.exception("Failed to list vehicles shop_id=%s", shop_id)
            raise
        return self._with_damages(shop_id, rows)

    def _with_damages(self, shop_id: int, rows: List[sqlite3.Row]) -> List[Vehicle]:
        damages = self._damages.list_for_vehicles(shop_id, [row["id"] for row in rows])
        return [vehicle_from_row(row, damages.get(row["id"], [])) for row in rows]
