"""Application configuration."""

from __future__ import annotations

from dataclasses import dataclass

from rental_shop.version import __app_name__, __company__

APP_NAME = __app_name__
APP_DATA_DIRNAME = "RentalShop"
DB_FILENAME = "rental_shop.db"
LOGS_DIRNAME = "logs"
LOG_FILENAME = "app.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3
INVOICES_DIRNAME = "invoices"
CONFIG_FILENAME = "config.json"

# Booking rules
BACK_DATE_WINDOW_DAYS = 7
BOOKING_NUMBER_PREFIX = "BK"
INVOICE_NUMBER_PREFIX = "INV"

# Calendar layout
MINUTES_IN_DAY = 24 * 60
MAX_VISIBLE_STACKS = 3
MIN_SEGMENT_WIDTH_PCT = 5.0

CURRENCY_SYMBOL = "₹"


@dataclass(frozen=True)
class InvoiceIssuerInfo:
    """Issuer information printed on invoices."""

    name: str
    phone: str
    gst_number: str
    address: str


INVOICE_ISSUER = InvoiceIssuerInfo(
    name="Rento Bike Rentals",
    phone="+91 99999 99999",
    gst_number="GSTIN pending",
    address="MG Road, Bengaluru",
)


@dataclass(frozen=True)
class AppConfig:
    """Static configuration values for RentalShop."""

    app_name: str = APP_NAME
    organization_name: str = __company__
    back_date_window_days: int = BACK_DATE_WINDOW_DAYS
    max_visible_stacks: int = MAX_VISIBLE_STACKS
