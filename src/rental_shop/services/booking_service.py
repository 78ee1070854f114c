"""Booking service: runs lifecycle transitions against stored data."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from rental_shop.db.connection import transaction
from rental_shop.domain.intents import (
    BookingIntent,
    CancelBooking,
    CreateBooking,
    DeleteBooking,
    MarkTaken,
    NewCustomer,
    RecordPayment,
    ReturnBooking,
    UpdateBooking,
)
from rental_shop.domain.models import Booking, BookingStatus, HistoryEntry, Payment
from rental_shop.logging_config import get_logger
from rental_shop.paths import get_config_path
from rental_shop.repositories import (
    AvailabilityOverrideRepo,
    BookingRepo,
    CustomerRepo,
    DamageRepo,
    PaymentRepository,
    VehicleRepo,
)
from rental_shop.services.availability_service import AvailabilityService
from rental_shop.services.booking_lifecycle import (
    ACTION_NAMES,
    TransitionResult,
    apply_intent,
    create_booking,
)
from rental_shop.services.errors import NotFoundError, ServiceError, ValidationError
from rental_shop.services.invoice_service import InvoiceService
from rental_shop.services.locks import shop_lock
from rental_shop.utils.config_store import BookingSettings, load_booking_settings
from rental_shop.utils.time_intervals import parse_timestamp


class BookingService:
    """Service for booking business rules.

    Every write holds the shop lock and runs in one ``BEGIN IMMEDIATE``
    transaction covering the snapshot read, the conflict check and the
    commit, so two clerks cannot book the same vehicle concurrently.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        settings: Optional[BookingSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._settings = settings or load_booking_settings(get_config_path())
        self._clock = clock or datetime.now
        self._booking_repo = BookingRepo(connection)
        self._customer_repo = CustomerRepo(connection)
        self._vehicle_repo = VehicleRepo(connection)
        self._damage_repo = DamageRepo(connection)
        self._payment_repo = PaymentRepository(connection)
        self._availability = AvailabilityService(
            self._vehicle_repo,
            self._booking_repo,
            AvailabilityOverrideRepo(connection),
        )
        self._invoices = InvoiceService(connection, clock=self._clock)
        self._logger = get_logger(self.__class__.__name__)

    @property
    def settings(self) -> BookingSettings:
        return self._settings

    def get(self, shop_id: int, booking_id: int) -> Booking:
        booking = self._booking_repo.get_by_id(shop_id, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        return booking

    def list_bookings(self, shop_id: int, include_deleted: bool = False) -> list[Booking]:
        bookings = self._booking_repo.list_all(shop_id)
        if include_deleted:
            return bookings
        return [booking for booking in bookings if booking.status != BookingStatus.DELETED]

    def history(self, shop_id: int, booking_id: int) -> list[HistoryEntry]:
        return list(self.get(shop_id, booking_id).history)

    def payments(self, shop_id: int, booking_id: int) -> list[Payment]:
        booking = self.get(shop_id, booking_id)
        return self._payment_repo.list_by_booking(booking.id or booking_id)

    def create(self, shop_id: int, intent: CreateBooking, actor_id: str) -> Booking:
        with shop_lock(shop_id):
            try:
                with transaction(self._connection, immediate=True):
                    now = self._clock()
                    customer_id = self._resolve_customer(shop_id, intent)
                    start = parse_timestamp(intent.start)
                    end = parse_timestamp(intent.end)
                    booking = create_booking(
                        intent,
                        shop_id=shop_id,
                        booking_number=self._booking_repo.next_booking_number(shop_id),
                        customer_id=customer_id,
                        existing=self._booking_repo.list_overlapping(shop_id, start, end),
                        vehicles=self._vehicle_repo.get_many(shop_id, intent.vehicle_ids),
                        actor_id=actor_id,
                        now=now,
                        settings=self._settings,
                        is_blocked=self._availability.block_check(shop_id),
                    )
                    booking = self._booking_repo.insert(booking)
            except ServiceError as exc:
                self._logger.warning(
                    "Rejected booking creation shop_id=%s actor=%s: %s",
                    shop_id,
                    actor_id,
                    exc,
                )
                raise
        self._logger.info(
            "Created booking %s id=%s shop_id=%s vehicles=%s",
            booking.display_number,
            booking.id,
            shop_id,
            list(booking.vehicle_ids),
        )
        return booking

    def update(
        self, shop_id: int, booking_id: int, intent: UpdateBooking, actor_id: str
    ) -> Booking:
        return self.apply(shop_id, booking_id, intent, actor_id).booking

    def record_payment(
        self, shop_id: int, booking_id: int, intent: RecordPayment, actor_id: str
    ) -> Booking:
        return self.apply(shop_id, booking_id, intent, actor_id).booking

    def mark_taken(
        self, shop_id: int, booking_id: int, intent: MarkTaken, actor_id: str
    ) -> Booking:
        return self.apply(shop_id, booking_id, intent, actor_id).booking

    def return_booking(
        self, shop_id: int, booking_id: int, intent: ReturnBooking, actor_id: str
    ) -> TransitionResult:
        """Complete the rental; the invoice is numbered unless deferred."""
        return self.apply(shop_id, booking_id, intent, actor_id)

    def cancel(
        self,
        shop_id: int,
        booking_id: int,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> Booking:
        return self.apply(shop_id, booking_id, CancelBooking(reason), actor_id).booking

    def delete(
        self,
        shop_id: int,
        booking_id: int,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> Booking:
        return self.apply(shop_id, booking_id, DeleteBooking(reason), actor_id).booking

    def apply(
        self,
        shop_id: int,
        booking_id: int,
        intent: BookingIntent,
        actor_id: str,
    ) -> TransitionResult:
        action = ACTION_NAMES.get(type(intent), type(intent).__name__)
        with shop_lock(shop_id):
            try:
                with transaction(self._connection, immediate=True):
                    result = self._apply_locked(shop_id, booking_id, intent, actor_id)
            except ServiceError as exc:
                self._logger.warning(
                    "Rejected %s booking id=%s shop_id=%s actor=%s: %s",
                    action,
                    booking_id,
                    shop_id,
                    actor_id,
                    exc,
                )
                raise
        self._logger.info(
            "Booking %s id=%s shop_id=%s now %s (%s)",
            result.booking.display_number,
            booking_id,
            shop_id,
            result.booking.status_label,
            result.booking.history[-1].description,
        )
        return result

    def _apply_locked(
        self,
        shop_id: int,
        booking_id: int,
        intent: BookingIntent,
        actor_id: str,
    ) -> TransitionResult:
        if isinstance(intent, CreateBooking):
            raise TypeError("Use create() for new bookings.")
        booking = self.get(shop_id, booking_id)
        now = self._clock()
        vehicle_ids: Iterable[int] = booking.vehicle_ids
        existing: list[Booking] = []
        is_blocked = None
        invoice_number = None
        if isinstance(intent, ReturnBooking) and not intent.invoice_pending:
            invoice_number = self._invoices.next_invoice_number(shop_id)
        if isinstance(intent, UpdateBooking):
            if self._customer_repo.get_by_id(shop_id, intent.customer_id) is None:
                raise NotFoundError(f"Customer {intent.customer_id} not found.")
            vehicle_ids = (*booking.vehicle_ids, *intent.vehicle_ids)
            existing = self._booking_repo.list_overlapping(
                shop_id, parse_timestamp(intent.start), parse_timestamp(intent.end)
            )
            is_blocked = self._availability.block_check(shop_id)

        result = apply_intent(
            booking,
            intent,
            actor_id=actor_id,
            now=now,
            existing=existing,
            vehicles=self._vehicle_repo.get_many(shop_id, vehicle_ids),
            settings=self._settings,
            is_blocked=is_blocked,
            invoice_number=invoice_number,
        )
        return self._persist(shop_id, result)

    def _persist(self, shop_id: int, result: TransitionResult) -> TransitionResult:
        booking = self._booking_repo.save(result.booking)
        for vehicle in result.vehicles:
            self._vehicle_repo.save(vehicle)
        damages = [self._damage_repo.add(shop_id, damage) for damage in result.new_damages]
        payment = result.payment
        if payment is not None:
            payment = self._payment_repo.create(replace(payment, booking_id=booking.id))
        return replace(result, booking=booking, new_damages=damages, payment=payment)

    def _resolve_customer(self, shop_id: int, intent: CreateBooking) -> Optional[int]:
        if intent.customer_id is not None:
            if self._customer_repo.get_by_id(shop_id, intent.customer_id) is None:
                raise NotFoundError(f"Customer {intent.customer_id} not found.")
            return intent.customer_id
        if intent.new_customer is None:
            return None
        return self._create_customer(shop_id, intent.new_customer)

    def _create_customer(self, shop_id: int, details: NewCustomer) -> int:
        name = (details.name or "").strip()
        if not name:
            raise ValidationError("Customer name is required.", field="new_customer")
        customer = self._customer_repo.create(
            shop_id,
            name,
            (details.phone or "").strip() or None,
            id_proof_type=details.id_proof_type,
            id_proof_number=details.id_proof_number,
        )
        return int(customer.id)
