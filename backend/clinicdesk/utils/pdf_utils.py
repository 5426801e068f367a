import logging
import os
from datetime import datetime
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..core.config import settings

log = logging.getLogger("clinicdesk.reports")

_LABELS = {
    "EXTERNAL_PRESCRIPTION": "External prescription",
    "OTC": "Over the counter",
    "ORDER": "Drug order",
}


def generate_sale_invoice_pdf(sale, reports_dir: Optional[str] = None) -> str:
    """
    Render a pharmacy invoice for a stored sale and return the file path.

    Amounts are printed exactly as captured on the sale; nothing is
    recomputed from current drug prices.
    """
    reports_dir = reports_dir or settings.REPORTS_DIR
    os.makedirs(reports_dir, exist_ok=True)
    pdf_path = os.path.join(reports_dir, f"invoice_{sale.sale_id}.pdf")
    styles = getSampleStyleSheet()
    story = []

    doc = SimpleDocTemplate(
        pdf_path,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=f"Invoice {sale.sale_id}",
    )

    # ---------------- Header ----------------
    story.append(Paragraph(f"<b>{escape(settings.PROJECT_NAME)} Pharmacy</b>", styles["Title"]))
    story.append(Spacer(1, 8))

    # ---------------- Invoice Info ----------------
    issued = sale.created_at or datetime.now()
    info = [
        ["Invoice No", sale.sale_id],
        ["Date", issued.strftime("%d-%b-%Y %H:%M")],
        ["Source", _LABELS.get(sale.source.value, sale.source.value)],
        ["Payment", f"{sale.payment_method} ({sale.payment_status})"],
        ["Recorded by", sale.recorded_by or "-"],
    ]
    if sale.drug_order_id:
        info.append(["Drug order", sale.drug_order_id])
    t = Table(info, colWidths=[100, 300])
    t.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.25, colors.black),
        ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    story.append(t)
    story.append(Spacer(1, 10))

    # ---------------- Patient Info ----------------
    if sale.patient_name or sale.patient_phone:
        pt = Table(
            [["Patient", sale.patient_name or "-"], ["Phone", sale.patient_phone or "-"]],
            colWidths=[100, 300],
        )
        pt.setStyle(TableStyle([
            ("BOX", (0, 0), (-1, -1), 0.25, colors.black),
            ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ]))
        story.append(pt)
        story.append(Spacer(1, 10))

    # ---------------- Items ----------------
    data = [["#", "Item", "Qty", "Unit price", "Total"]]
    for i, item in enumerate(sale.items, 1):
        data.append([i, item.drug_name, item.quantity, f"{item.unit_price:.2f}", f"{item.total_price:.2f}"])

    items_table = Table(data, repeatRows=1)
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightblue),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    story.append(items_table)
    story.append(Spacer(1, 10))

    # ---------------- Totals ----------------
    totals = [
        ["Subtotal", f"{sale.subtotal:.2f}"],
        ["Discount", f"-{sale.discount:.2f}"],
        ["Tax", f"{sale.tax:.2f}"],
        ["Total", f"{sale.total:.2f}"],
    ]
    totals_table = Table(totals, colWidths=[120, 100])
    totals_table.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica-Bold"),
    ]))
    story.append(totals_table)
    story.append(Spacer(1, 15))

    if sale.notes:
        story.append(Paragraph(f"Notes: {escape(sale.notes)}", styles["Normal"]))
        story.append(Spacer(1, 10))
    story.append(Paragraph("Medicines once dispensed are returned only through a voided sale.", styles["Normal"]))
    story.append(Spacer(1, 10))
    story.append(Paragraph("Dispensing pharmacist ___________________", styles["Normal"]))

    doc.build(story)
    log.info("invoice_generated sale_id=%s path=%s", sale.sale_id, pdf_path)
    return pdf_path
