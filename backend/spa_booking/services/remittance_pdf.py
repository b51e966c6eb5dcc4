from __future__ import annotations

from io import BytesIO
from typing import Any, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.orm import Session

from .. import schemas
from ..core.config import settings
from .commission import get_payout, payout_response


def _money(v: Optional[Any]) -> str:
    return f"{settings.DEFAULT_CURRENCY} {float(v or 0):,.2f}"


def _cell(text: str, style) -> Paragraph:
    return Paragraph(text, style)


def render_remittance(payout: schemas.PayoutResponse) -> bytes:
    """Render a remittance statement listing every booking in the payout."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=f"Commission Payout {payout.id}",
    )
    muted = colors.HexColor("#6b7280")
    border = colors.HexColor("#e5e7eb")

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="TitleBrand", parent=styles["Heading1"], fontName="Helvetica-Bold", fontSize=18, spaceAfter=6))
    styles.add(ParagraphStyle(name="Muted", parent=styles["Normal"], fontName="Helvetica", fontSize=9, textColor=muted))
    styles.add(ParagraphStyle(name="Strong", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=10))
    styles.add(ParagraphStyle(name="NormalSmall", parent=styles["Normal"], fontName="Helvetica", fontSize=9))
    small = styles["NormalSmall"]

    story: list[Any] = [
        Paragraph("<b>Commission Remittance</b>", styles["TitleBrand"]),
        Spacer(1, 4),
    ]

    summary = [
        [_cell("<font color='#6b7280'>Payout #</font>", small), _cell(str(payout.id), styles["Strong"]),
         _cell("<font color='#6b7280'>Status</font>", small), _cell(payout.status.value.upper(), small)],
        [_cell("<font color='#6b7280'>Therapist</font>", small), _cell(payout.therapist_name or "-", small),
         _cell("<font color='#6b7280'>Processed by</font>", small), _cell(payout.processed_by or "-", small)],
        [_cell("<font color='#6b7280'>Period</font>", small),
         _cell(f"{payout.period_start.isoformat()} to {payout.period_end.isoformat()}", small),
         _cell("<font color='#6b7280'>Bookings</font>", small), _cell(str(len(payout.bookings)), small)],
    ]
    summary_tbl = Table(summary, colWidths=[doc.width * 0.15, doc.width * 0.35, doc.width * 0.15, doc.width * 0.35])
    summary_tbl.setStyle(TableStyle([
        ("INNERGRID", (0, 0), (-1, -1), 0.25, border),
        ("BOX", (0, 0), (-1, -1), 0.25, border),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("BACKGROUND", (0, 0), (-1, -1), colors.whitesmoke),
    ]))
    story.append(summary_tbl)
    story.append(Spacer(1, 8))

    rows = [[_cell(h, styles["Strong"]) for h in ("Date", "Guest", "Service", "Commission", "Tip", "Earnings")]]
    for line in payout.bookings:
        rows.append([
            _cell(f"{line.booking_date.isoformat()} {line.booking_time.strftime('%H:%M')}", small),
            _cell(line.guest_name or "Guest", small),
            _cell(line.service_title or "-", small),
            _cell(_money(line.commission_amount), small),
            _cell(_money(line.tip_amount) if line.tip_recipient == "therapist" else "-", small),
            _cell(_money(line.earnings), small),
        ])
    rows.append([
        _cell("Total", styles["Strong"]), "", "", "", "",
        _cell(_money(payout.amount), styles["Strong"]),
    ])
    widths = [0.2, 0.2, 0.2, 0.14, 0.12, 0.14]
    lines_tbl = Table(rows, colWidths=[doc.width * w for w in widths], repeatRows=1)
    lines_tbl.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.25, border),
        ("INNERGRID", (0, 0), (-1, -1), 0.25, border),
        ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
        ("BACKGROUND", (0, 0), (-1, 0), colors.whitesmoke),
        ("BACKGROUND", (0, len(rows) - 1), (-1, len(rows) - 1), colors.Color(0.95, 0.95, 0.97)),
    ]))
    story.append(lines_tbl)
    story.append(Spacer(1, 10))

    if payout.notes:
        story.append(Paragraph(f"Notes: {payout.notes}", small))
        story.append(Spacer(1, 6))
    story.append(Paragraph(
        "Earnings are the therapist's commission plus tips left for the therapist.",
        styles["Muted"],
    ))

    doc.build(story)
    buffer.seek(0)
    return buffer.read()


def generate_pdf(db: Session, payout_id: int) -> bytes:
    return render_remittance(payout_response(get_payout(db, payout_id)))
