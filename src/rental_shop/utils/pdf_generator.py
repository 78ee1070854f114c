"""PDF generation for booking invoices."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from rental_shop.config import CURRENCY_SYMBOL, INVOICE_ISSUER, InvoiceIssuerInfo
from rental_shop.domain.models import Booking, Customer, Shop, Vehicle
from rental_shop.services.return_flow import InvoiceSummary


@dataclass(frozen=True)
class InvoiceDocument:
    booking: Booking
    customer: Customer
    vehicles: Sequence[Vehicle]
    summary: InvoiceSummary
    shop: Optional[Shop] = None


def _format_currency(value: float) -> str:
    return f"{CURRENCY_SYMBOL} {value:,.2f}"


def _format_moment(value: datetime) -> str:
    return value.strftime("%d %b %Y, %H:%M")


def _format_reading(value: Optional[int]) -> str:
    return f"{value} km" if value is not None else "-"


def _issuer_for(shop: Optional[Shop], issuer: InvoiceIssuerInfo) -> InvoiceIssuerInfo:
    if shop is None:
        return issuer
    return InvoiceIssuerInfo(
        name=shop.name,
        phone=issuer.phone,
        gst_number=shop.gst_number or issuer.gst_number,
        address=shop.city or issuer.address,
    )


def _grid_style(header_background: object) -> TableStyle:
    return TableStyle(
        [
            ("BACKGROUND", (0, 0), (-1, 0), header_background),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
        ]
    )


def generate_invoice_pdf(
    document: InvoiceDocument,
    output_path: Path,
    *,
    issuer: InvoiceIssuerInfo = INVOICE_ISSUER,
) -> Path:
    """Write an A4 invoice for a completed booking and return its path."""
    booking = document.booking
    customer = document.customer
    summary = document.summary
    issuer = _issuer_for(document.shop, issuer)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    title = f"Invoice {booking.invoice_number or ''}".strip()
    doc = SimpleDocTemplate(
        str(output_path),
        pagesize=A4,
        rightMargin=20 * mm,
        leftMargin=20 * mm,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=title,
        author=issuer.name,
    )

    styles = getSampleStyleSheet()
    styles.add(
        ParagraphStyle(
            name="SectionTitle",
            parent=styles["Heading3"],
            spaceBefore=12,
            spaceAfter=6,
        )
    )
    styles.add(
        ParagraphStyle(
            name="SmallText",
            parent=styles["Normal"],
            fontSize=9,
            leading=12,
        )
    )

    elements: list[object] = []
    elements.append(Paragraph(f"<b>{issuer.name}</b>", styles["Title"]))
    elements.append(
        Paragraph(f"{title} &middot; Booking {booking.display_number}", styles["Heading2"])
    )
    elements.append(Spacer(1, 8))

    issuer_lines = [
        f"<b>Phone:</b> {issuer.phone}",
        f"<b>GST:</b> {issuer.gst_number}",
        f"<b>Address:</b> {issuer.address}",
    ]
    elements.append(Paragraph("<br/>".join(issuer_lines), styles["Normal"]))
    elements.append(Spacer(1, 10))

    customer_lines = [
        "<b>Customer</b>",
        f"Name: {customer.name}",
        f"Phone: {customer.phone or '-'}",
    ]
    if customer.id_proof_type:
        customer_lines.append(
            f"ID: {customer.id_proof_type} {customer.id_proof_number or ''}".rstrip()
        )
    elements.append(Paragraph("<br/>".join(customer_lines), styles["Normal"]))
    elements.append(Spacer(1, 10))

    trip_rows = [
        ["Pickup", _format_moment(booking.start)],
        ["Return", _format_moment(booking.end)],
        ["Opening odometer", _format_reading(booking.opening_odometer)],
        ["Closing odometer", _format_reading(booking.closing_odometer)],
    ]
    trip_table = Table(trip_rows, colWidths=[45 * mm, 115 * mm])
    trip_table.setStyle(_grid_style(colors.whitesmoke))
    elements.append(Paragraph("Rental period", styles["SectionTitle"]))
    elements.append(trip_table)
    elements.append(Spacer(1, 12))

    vehicle_rows = [["Vehicle", "Registration", "Category"]]
    for vehicle in document.vehicles:
        vehicle_rows.append(
            [vehicle.name, vehicle.registration_number, vehicle.category.value.title()]
        )
    vehicles_table = Table(vehicle_rows, colWidths=[70 * mm, 55 * mm, 35 * mm])
    vehicles_table.setStyle(_grid_style(colors.lightgrey))
    elements.append(Paragraph("Vehicles", styles["SectionTitle"]))
    elements.append(vehicles_table)
    elements.append(Spacer(1, 12))

    values_table = Table(
        [
            ["Rent", _format_currency(summary.rent)],
            ["Deposit", _format_currency(summary.deposit)],
            ["Total", _format_currency(summary.total)],
            ["Collected", _format_currency(summary.collected)],
            ["Balance due", _format_currency(summary.balance_due)],
            ["Deposit deduction", _format_currency(summary.deposit_deduction)],
            ["Refund", _format_currency(summary.refund)],
        ],
        colWidths=[45 * mm, 50 * mm],
    )
    values_table.setStyle(_grid_style(colors.whitesmoke))
    elements.append(Paragraph("Charges", styles["SectionTitle"]))
    elements.append(values_table)

    if booking.damage_notes:
        elements.append(Paragraph("Damage notes", styles["SectionTitle"]))
        elements.append(Paragraph(booking.damage_notes, styles["SmallText"]))

    footer = f"Generated on {datetime.now().strftime('%d %b %Y %H:%M')}"
    elements.append(Spacer(1, 18))
    elements.append(Paragraph(footer, styles["SmallText"]))

    doc.build(elements)
    return output_path
