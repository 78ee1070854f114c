"""Invoice numbering and rendering for completed bookings."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from rental_shop.config import INVOICE_NUMBER_PREFIX
from rental_shop.db.connection import transaction
from rental_shop.domain.models import Booking, BookingStatus
from rental_shop.logging_config import get_logger
from rental_shop.paths import get_invoices_dir
from rental_shop.repositories import BookingRepo, CustomerRepo, ShopRepo, VehicleRepo
from rental_shop.services.booking_lifecycle import append_history
from rental_shop.services.errors import (
    InvalidTransitionError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from rental_shop.services.locks import shop_lock
from rental_shop.services.return_flow import summarize
from rental_shop.utils.pdf_generator import InvoiceDocument, generate_invoice_pdf


class InvoiceService:
    """Assigns shop-scoped invoice numbers and writes invoice PDFs."""

    def __init__(
        self,
        connection: sqlite3.Connection,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._connection = connection
        self._clock = clock or datetime.now
        self._booking_repo = BookingRepo(connection)
        self._customer_repo = CustomerRepo(connection)
        self._vehicle_repo = VehicleRepo(connection)
        self._shop_repo = ShopRepo(connection)
        self._logger = get_logger(self.__class__.__name__)

    def _require(self, shop_id: int, booking_id: int) -> Booking:
        booking = self._booking_repo.get_by_id(shop_id, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        return booking

    def next_invoice_number(self, shop_id: int) -> str:
        sequence = self._booking_repo.next_invoice_sequence(shop_id, INVOICE_NUMBER_PREFIX)
        return f"{INVOICE_NUMBER_PREFIX}-{sequence:04d}"

    def issue_for(self, booking: Booking, actor_id: str, now: datetime) -> Booking:
        """Number a loaded booking. The caller owns the transaction."""
        if booking.invoice_number:
            return booking
        if booking.status != BookingStatus.COMPLETED:
            raise InvalidTransitionError(booking.status_label, "invoice")
        number = self.next_invoice_number(booking.shop_id)
        numbered = replace(
            booking,
            invoice_number=number,
            invoice_pending=False,
            invoice_generated_at=now.isoformat(timespec="seconds"),
        )
        numbered = append_history(numbered, actor_id, now, f"Invoice {number} issued")
        return self._booking_repo.save(numbered)

    def issue_invoice(self, shop_id: int, booking_id: int, actor_id: str) -> Booking:
        with shop_lock(shop_id):
            try:
                with transaction(self._connection, immediate=True):
                    booking = self._require(shop_id, booking_id)
                    already_issued = bool(booking.invoice_number)
                    booking = self.issue_for(booking, actor_id, self._clock())
            except ServiceError as exc:
                self._logger.warning(
                    "Invoice rejected booking id=%s shop_id=%s: %s",
                    booking_id,
                    shop_id,
                    exc,
                )
                raise
        if not already_issued:
            self._logger.info(
                "Issued invoice %s for booking id=%s shop_id=%s",
                booking.invoice_number,
                booking_id,
                shop_id,
            )
        return booking

    def defer_invoice(self, shop_id: int, booking_id: int, actor_id: str) -> Booking:
        with shop_lock(shop_id):
            try:
                with transaction(self._connection, immediate=True):
                    booking = self._require(shop_id, booking_id)
                    if booking.status != BookingStatus.COMPLETED:
                        raise InvalidTransitionError(booking.status_label, "defer the invoice of")
                    if booking.invoice_number:
                        raise ValidationError(
                            f"Invoice {booking.invoice_number} was already issued.",
                            field="invoice_pending",
                        )
                    if booking.invoice_pending:
                        return booking
                    booking = append_history(
                        replace(booking, invoice_pending=True),
                        actor_id,
                        self._clock(),
                        "Invoice deferred",
                    )
                    booking = self._booking_repo.save(booking)
            except ServiceError as exc:
                self._logger.warning(
                    "Invoice deferral rejected booking id=%s: %s", booking_id, exc
                )
                raise
        self._logger.info("Deferred invoice for booking id=%s shop_id=%s", booking_id, shop_id)
        return booking

    def render_invoice_pdf(
        self,
        shop_id: int,
        booking_id: int,
        output_dir: Optional[Path] = None,
    ) -> Path:
        booking = self._require(shop_id, booking_id)
        if not booking.invoice_number:
            raise ValidationError(
                "Issue the invoice before generating the PDF.", field="invoice_number"
            )
        customer = self._customer_repo.get_by_id(shop_id, booking.customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {booking.customer_id} not found.")
        vehicles = self._vehicle_repo.get_many(shop_id, booking.vehicle_ids)
        document = InvoiceDocument(
            booking=booking,
            customer=customer,
            vehicles=[vehicles[vid] for vid in booking.vehicle_ids if vid in vehicles],
            summary=summarize(booking, booking.deposit_deduction or 0.0),
            shop=self._shop_repo.get_by_id(shop_id),
        )
        target_dir = output_dir or get_invoices_dir()
        output_path = target_dir / f"{booking.invoice_number}.pdf"
        try:
            generate_invoice_pdf(document, output_path)
        except Exception:
            self._logger.exception(
                "Failed to render invoice PDF booking id=%s", booking_id
            )
            raise
        self._logger.info("Invoice PDF written to %s", output_path)
        return output_path
