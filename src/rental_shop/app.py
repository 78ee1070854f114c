"""Application entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Optional, Sequence

from rental_shop.config import AppConfig, CURRENCY_SYMBOL
from rental_shop.db.connection import get_connection
from rental_shop.db.migrations import apply_migrations
from rental_shop.domain.models import Vehicle
from rental_shop.logging_config import configure_logging, get_logger
from rental_shop.paths import get_db_path
from rental_shop.repositories import BookingRepo, ShopRepo, VehicleRepo
from rental_shop.services.calendar_service import CalendarLayout, CalendarService
from rental_shop.services.errors import ServiceError
from rental_shop.services.invoice_service import InvoiceService
from rental_shop.services.revenue_service import (
    AggregatedRevenue,
    RevenuePeriod,
    RevenueService,
    write_csv,
)
from rental_shop.utils.time_intervals import iter_days
from rental_shop.version import __version__


def _day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, use YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    config = AppConfig()
    parser = argparse.ArgumentParser(
        prog="rental-shop", description=f"{config.app_name} booking tools"
    )
    parser.add_argument("--db", type=Path, default=None, help="SQLite database file")
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    init_db = commands.add_parser("init-db", help="create or upgrade the database")
    init_db.add_argument("--shop", help="also create a shop with this name")
    init_db.add_argument("--city")

    calendar = commands.add_parser("calendar", help="print the occupancy grid")
    calendar.add_argument("--shop-id", type=int, required=True)
    calendar.add_argument("--start", type=_day, default=None)
    calendar.add_argument("--days", type=int, default=7)

    revenue = commands.add_parser("revenue", help="print a revenue report")
    revenue.add_argument("--shop-id", type=int, required=True)
    revenue.add_argument(
        "--period",
        choices=[period.value for period in RevenuePeriod],
        default=RevenuePeriod.DAILY.value,
    )
    revenue.add_argument("--start", type=_day, default=None)
    revenue.add_argument("--end", type=_day, default=None)
    revenue.add_argument("--csv", type=Path, default=None, help="also write CSV here")

    invoice = commands.add_parser("invoice", help="render an issued invoice as PDF")
    invoice.add_argument("--shop-id", type=int, required=True)
    invoice.add_argument("--booking-id", type=int, required=True)
    invoice.add_argument("--output-dir", type=Path, default=None)
    return parser


def render_calendar(layout: CalendarLayout, vehicles: Sequence[Vehicle]) -> str:
    """Plain-text grid: one row per vehicle, booking numbers per day."""
    header = ["Vehicle".ljust(18)] + [day.strftime("%a %d").ljust(14) for day in layout.days]
    lines = [" ".join(header)]
    for vehicle in vehicles:
        cells = []
        for day_index in range(len(layout.days)):
            shown = [
                segment.booking.display_number
                for segment in sorted(
                    layout.visible_segments(vehicle.id, day_index),
                    key=lambda segment: segment.stack_index,
                )
            ]
            hidden = layout.hidden_count(vehicle.id, day_index)
            if hidden:
                shown.append(f"+{hidden}")
            cells.append((",".join(shown) or ".").ljust(14))
        lines.append(" ".join([vehicle.name[:18].ljust(18), *cells]))
    return "\n".join(lines)


def render_revenue(report: AggregatedRevenue) -> str:
    lines = [f"{'Period':<12} {'Bookings':>8} {'Rent':>12} {'Deposit':>12} {'Total':>12}"]
    for point in report.data:
        lines.append(
            f"{point.label:<12} {point.bookings:>8} {point.rent:>12.2f} "
            f"{point.deposit:>12.2f} {point.total:>12.2f}"
        )
    lines.append(
        f"{'Total':<12} {report.total_bookings:>8} {report.total_rent:>12.2f} "
        f"{report.total_deposit:>12.2f} {report.total_revenue:>12.2f}"
    )
    lines.append(f"Revenue: {CURRENCY_SYMBOL} {report.total_revenue:,.2f}")
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the RentalShop command line."""
    args = build_parser().parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    logger = get_logger(__name__)
    db_path = args.db or get_db_path()
    connection = get_connection(db_path)
    try:
        version = apply_migrations(connection)
        logger.info("Starting %s (schema v%s, db=%s)", AppConfig().app_name, version, db_path)

        if args.command == "init-db":
            if args.shop:
                shop = ShopRepo(connection).create(args.shop, city=args.city)
                print(f"Created shop {shop.id}: {shop.name}")
            print(f"Database ready at {db_path} (schema v{version})")
            return 0

        if args.command == "calendar":
            start = args.start or date.today()
            days = list(iter_days(start, start + timedelta(days=max(args.days, 1) - 1)))
            vehicle_repo = VehicleRepo(connection)
            layout = CalendarService(vehicle_repo, BookingRepo(connection)).layout_for(
                args.shop_id, days
            )
            print(render_calendar(layout, vehicle_repo.list_all(args.shop_id)))
            return 0

        if args.command == "revenue":
            report = RevenueService(BookingRepo(connection)).report(
                args.shop_id, RevenuePeriod(args.period), args.start, args.end
            )
            print(render_revenue(report))
            if args.csv:
                print(f"CSV written to {write_csv(report, args.csv)}")
            return 0

        if args.command == "invoice":
            path = InvoiceService(connection).render_invoice_pdf(
                args.shop_id, args.booking_id, args.output_dir
            )
            print(f"Invoice written to {path}")
            return 0
    except ServiceError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        connection.close()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
