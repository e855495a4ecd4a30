from __future__ import annotations

import os
import re
from datetime import date
from io import BytesIO

from flask import current_app
from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

TITLE_FONT = "Helvetica-Bold"
BODY_FONT = "Helvetica"
NAME_FONT = "Helvetica-Bold"
SIDE_MARGIN_MM = 20
NUMBER_BOTTOM_MM = 15


def mm(value: float) -> float:
    return value * 72.0 / 25.4


def slug_certificate_name(name: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9 ]+", "", name or "")
    slug = re.sub(r"\s+", "-", slug.strip()).lower()
    return slug or "name"


def certificate_filename(student_name: str, completed: date) -> str:
    return f"certificate_{slug_certificate_name(student_name)}_{completed.strftime('%Y-%m-%d')}.pdf"


def fit_text(text: str, font_name: str, max_pt: int, min_pt: int, max_width: float) -> int:
    pt = max_pt
    while pt > min_pt and stringWidth(text, font_name, pt) > max_width:
        pt -= 1
    return pt


def _draw(
    c: canvas.Canvas,
    w: float,
    h: float,
    *,
    org_name: str,
    student_name: str,
    training_title: str,
    completed: date,
    certificate_number: str,
) -> None:
    center_x = w / 2.0
    usable = w - mm(2 * SIDE_MARGIN_MM)

    c.setFillGray(0.2)
    c.setFont(BODY_FONT, 16)
    c.drawCentredString(center_x, h - mm(30), org_name)

    c.setFont(TITLE_FONT, 34)
    c.drawCentredString(center_x, h - mm(55), "Certificate of Completion")

    c.setFillGray(0.35)
    c.setFont(BODY_FONT, 16)
    c.drawCentredString(center_x, h - mm(80), "This certifies that")

    name_pt = fit_text(student_name, NAME_FONT, 44, 24, usable)
    c.setFillGray(0.2)
    c.setFont(NAME_FONT, name_pt)
    c.drawCentredString(center_x, h - mm(100), student_name)

    c.setFillGray(0.35)
    c.setFont(BODY_FONT, 16)
    c.drawCentredString(center_x, h - mm(118), "has successfully completed the training")

    title_pt = fit_text(training_title, TITLE_FONT, 30, 18, usable)
    c.setFillGray(0.25)
    c.setFont(TITLE_FONT, title_pt)
    c.drawCentredString(center_x, h - mm(136), training_title)

    c.setFillGray(0.3)
    c.setFont(BODY_FONT, 18)
    c.drawCentredString(
        center_x, h - mm(155), completed.strftime("%d %B %Y").lstrip("0")
    )

    c.setFont(BODY_FONT, 10)
    c.drawRightString(
        w - mm(SIDE_MARGIN_MM),
        mm(NUMBER_BOTTOM_MM),
        f"Certificate No. {certificate_number}",
    )


def render_certificate(
    student_name: str,
    training_title: str,
    completed: date,
    certificate_number: str,
) -> bytes:
    """Draw a completion certificate and return the PDF bytes.

    When ``CERTIFICATE_TEMPLATE`` names an existing PDF, the text is drawn as
    an overlay and merged onto the template's first page.
    """

    org_name = current_app.config.get("CERTIFICATE_ORG_NAME") or ""
    template_path = current_app.config.get("CERTIFICATE_TEMPLATE")
    base_page = None
    if template_path:
        if os.path.exists(template_path):
            base_page = PdfReader(template_path).pages[0]
        else:
            current_app.logger.warning(
                "[CERT-TEMPLATE] missing path=%s, drawing plain page", template_path
            )

    if base_page is not None:
        w = float(base_page.mediabox.width)
        h = float(base_page.mediabox.height)
    else:
        w, h = landscape(A4)

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=(w, h))
    c.setTitle(f"Certificate {certificate_number}")
    _draw(
        c,
        w,
        h,
        org_name=org_name,
        student_name=student_name,
        training_title=training_title,
        completed=completed,
        certificate_number=certificate_number,
    )
    c.showPage()
    c.save()
    if base_page is None:
        return buffer.getvalue()

    buffer.seek(0)
    overlay_page = PdfReader(buffer).pages[0]
    base_page.merge_page(overlay_page)
    writer = PdfWriter()
    writer.add_page(base_page)
    out_buf = BytesIO()
    writer.write(out_buf)
    return out_buf.getvalue()
