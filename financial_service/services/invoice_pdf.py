# financial_service/services/invoice_pdf.py
"""
Center invoice PDFs.

The invoice is drawn with ReportLab on top of the company letter pad (when
the image is available) and stored in the invoices bucket. Once an invoice is
paid, the stored copy is re-issued with a diagonal "PAID" stamp.
"""
from __future__ import annotations

import logging
import os
import re
import time
from datetime import date, datetime
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app
from pypdf import PdfReader, PdfWriter
from reportlab.lib.colors import HexColor
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from .storage import get_invoice_storage

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = (1240, 1754)
BASE_FONT_SIZE = 14
CHAR_SPACE = 1.5
BODY_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"
HEADING_FONT_NAME = "InvoiceHeading"

LEFT_MARGIN = 100
RIGHT_MARGIN = 100
TOP_MARGIN = 180
CELL_PADDING = 12

BILL_TO = (
    "IYAPAN EDUCATIONAL CENTRE PRIVATE LIMITED",
    "8/3, Athreyapuram 2nd Street,",
    "Choolaimedu, Chennai–600094.",
    "CIN: U85300TN2024PTC168304",
)

COLUMNS: List[Tuple[str, int]] = [
    ("sno", 55),
    ("studentInfo", 180),
    ("course", 150),
    ("date", 110),
    ("feeTerm", 90),
    ("eliteDiscount", 100),
    ("feePaid", 120),
    ("netAmount", 130),
    ("totalAmount", 130),
]

STORAGE_PREFIX = "invoices/"
_UNSAFE = re.compile(r"[^\w\-]")


# ---------------- formatting ----------------

def _as_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def format_date(value) -> str:
    """DD.MM.YYYY"""
    d = _as_date(value)
    return d.strftime("%d.%m.%Y") if d else ""


def format_inr(amount) -> str:
    """`INR 1,23,456.78`: Indian digit grouping, two decimals."""
    value = float(amount or 0)
    sign = "-" if value < 0 else ""
    whole, frac = f"{abs(value):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"INR {sign}{whole}.{frac}"


def safe_storage_path(invoice_id) -> str:
    return f"{STORAGE_PREFIX}{_UNSAFE.sub('_', str(invoice_id))}.pdf"


def _cache_busted(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    ts = int(time.time() * 1000)
    return f"{url.rstrip('?')}?v={ts}&t={ts}"


# ---------------- assets ----------------

def _asset_path(configured: Optional[str]) -> Optional[str]:
    """Config paths are relative to the project root."""
    if not configured:
        return None
    if os.path.isabs(configured):
        return configured
    return os.path.join(os.path.dirname(current_app.root_path), configured)


def _heading_font(font_path: Optional[str]) -> str:
    if not font_path or not os.path.exists(font_path):
        return BOLD_FONT
    if HEADING_FONT_NAME not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(HEADING_FONT_NAME, font_path))
    return HEADING_FONT_NAME


# ---------------- rendering ----------------

class _Page:
    """Top-down drawing helpers; ReportLab's origin is bottom-left."""

    def __init__(self, c: canvas.Canvas, width: float, height: float, heading_font: str):
        self.c = c
        self.width = width
        self.height = height
        self.heading_font = heading_font
        self.y = TOP_MARGIN

    def text_width(self, text: str, font: str = BODY_FONT, size: float = BASE_FONT_SIZE) -> float:
        return pdfmetrics.stringWidth(text, font, size) + CHAR_SPACE * max(len(text) - 1, 0)

    def text(self, text: str, x: float, top: float, font: str = BODY_FONT,
             size: float = BASE_FONT_SIZE, color: str = "#0f172a"):
        self.c.setFont(font, size)
        self.c.setFillColor(HexColor(color))
        self.c.drawString(x, self.height - top - size, text, charSpace=CHAR_SPACE)

    def text_in_box(self, text: str, x: float, top: float, box_width: float, align: str = "center",
                    font: str = BODY_FONT, size: float = BASE_FONT_SIZE, color: str = "#0f172a"):
        w = self.text_width(text, font, size)
        if align == "center":
            x += (box_width - w) / 2
        elif align == "right":
            x += box_width - w
        self.text(text, x, top, font, size, color)

    def centered_line(self, text: str, font: str = BODY_FONT, size: float = BASE_FONT_SIZE,
                      color: str = "#0f172a", spacing: float = 1.5):
        self.text(text, (self.width - self.text_width(text, font, size)) / 2, self.y, font, size, color)
        self.y += size * spacing

    def right_line(self, text: str, font: str = BODY_FONT, color: str = "#000000"):
        self.text(text, self.width - RIGHT_MARGIN - self.text_width(text, font), self.y, font, color=color)
        self.y += BASE_FONT_SIZE * 1.5

    def label_value(self, label: str, value: str):
        label = f"{label} "
        label_w = self.text_width(label, BOLD_FONT)
        start = self.width - RIGHT_MARGIN - label_w - self.text_width(value)
        self.text(label, start, self.y, BOLD_FONT)
        self.text(value, start + label_w, self.y)
        self.y += BASE_FONT_SIZE * 1.5

    def box(self, x: float, top: float, w: float, h: float, stroke: str, fill: Optional[str] = None):
        self.c.setLineWidth(0.5)
        self.c.setStrokeColor(HexColor(stroke))
        if fill:
            self.c.setFillColor(HexColor(fill))
        self.c.rect(x, self.height - top - h, w, h, stroke=1, fill=1 if fill else 0)


def _cell_values(index: int, item: Dict[str, Any]) -> Dict[str, Any]:
    discount = item.get("discount_percentage")
    return {
        "sno": str(index + 1),
        "studentInfo": [item.get("student_name") or "N/A", item.get("registration_number") or "N/A"],
        "course": item.get("course_name") or "N/A",
        "date": format_date(item.get("transaction_date")),
        "feeTerm": item.get("fee_term") or "Full",
        "eliteDiscount": f"{discount:g}%" if isinstance(discount, (int, float)) else f"{discount or 0}%",
        "feePaid": format_inr(item.get("fee_paid")),
        "netAmount": format_inr(item.get("net_amount")),
        "totalAmount": format_inr(item.get("total_amount")),
    }


def _wrap(value, width: float) -> List[str]:
    parts = value if isinstance(value, list) else [value]
    lines: List[str] = []
    for part in parts:
        lines.extend(simpleSplit(str(part), BODY_FONT, BASE_FONT_SIZE, width) or [""])
    return lines


def _draw_table(page: _Page, invoice_data: Dict[str, Any]):
    table_width = sum(w for _, w in COLUMNS)
    left = (page.width - table_width) / 2
    xs = []
    x = left
    for _, w in COLUMNS:
        xs.append(x)
        x += w

    payout_owner = invoice_data.get("center_admin_name") or invoice_data.get("center_name")
    headers = {
        "sno": ["S.No"],
        "studentInfo": ["Student Info"],
        "course": ["Course"],
        "date": ["Transaction", "Date"],
        "feeTerm": ["Fee Term"],
        "eliteDiscount": ["Elite", "Discount"],
        "feePaid": ["Fee Paid"],
        "netAmount": ["Net Amount", "(Excl. GST)"],
        "totalAmount": ["20% & 80%", "Payout"] + ([f"({payout_owner})"] if payout_owner else []),
    }

    header_h = BASE_FONT_SIZE * 3.8
    top = page.y
    page.box(left, top, table_width, header_h, "#d1d5db", fill="#e5e7eb")
    for (key, w), cx in zip(COLUMNS, xs):
        page.box(cx, top, w, header_h, "#d1d5db")
        lines = headers[key]
        block = len(lines) * BASE_FONT_SIZE + (len(lines) - 1) * 3
        line_top = top + (header_h - block) / 2
        for line in lines:
            page.text_in_box(line, cx, line_top, w, font=page.heading_font, size=BASE_FONT_SIZE, color="#111827")
            line_top += BASE_FONT_SIZE + 3

    row_top = top + header_h
    min_row_h = BASE_FONT_SIZE * 2
    for index, item in enumerate(invoice_data.get("items") or []):
        cells = _cell_values(index, item)
        wrapped = {key: _wrap(cells[key], w - CELL_PADDING * 2) for key, w in COLUMNS}
        tallest = max(len(lines) for lines in wrapped.values())
        row_h = max(min_row_h, tallest * (BASE_FONT_SIZE + 4) - 4 + CELL_PADDING * 1.5)
        for (key, w), cx in zip(COLUMNS, xs):
            page.box(cx, row_top, w, row_h, "#e5e7eb")
            lines = wrapped[key]
            block = len(lines) * (BASE_FONT_SIZE + 4) - 4
            line_top = row_top + (row_h - block) / 2
            for line in lines:
                page.text_in_box(line, cx, line_top, w, color="#1f2937")
                line_top += BASE_FONT_SIZE + 4
        row_top += row_h

    total_h = 32
    page.box(left, row_top, table_width, total_h, "#d1d5db", fill="#f9f9f9")
    for (_, w), cx in zip(COLUMNS, xs):
        page.box(cx, row_top, w, total_h, "#d1d5db")
    text_top = row_top + (total_h - BASE_FONT_SIZE) / 2
    net_x, net_w = xs[7], COLUMNS[7][1]
    page.text_in_box("Total:", net_x + CELL_PADDING, text_top, net_w - CELL_PADDING * 2,
                     align="right", font=page.heading_font, color="#111827")
    page.text_in_box(format_inr(invoice_data.get("total_center_share")), xs[8], text_top, COLUMNS[8][1],
                     font=page.heading_font, color="#111827")
    page.y = row_top + total_h


def render_invoice_pdf(invoice_data: Dict[str, Any], template_path: Optional[str] = None,
                       font_path: Optional[str] = None) -> bytes:
    """Draw one invoice page and return the PDF bytes."""
    background = None
    width, height = DEFAULT_PAGE_SIZE
    if template_path and os.path.exists(template_path):
        background = ImageReader(template_path)
        width, height = background.getSize()
    else:
        logger.warning("Invoice template not found (%s); rendering on a blank page", template_path)

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    c.setTitle(f"Invoice {invoice_data.get('invoice_number') or invoice_data.get('invoice_id') or ''}".strip())
    if background is not None:
        c.drawImage(background, 0, 0, width=width, height=height)

    page = _Page(c, width, height, _heading_font(font_path))
    advance = BASE_FONT_SIZE * 1.5

    page.y += advance * 4
    page.centered_line("INVOICE BILL", page.heading_font, BASE_FONT_SIZE + 12, "#1e3a8a", spacing=1.1)
    cycle = invoice_data.get("cycle_number")
    page.centered_line(f"Cycle {cycle}" if cycle else "Cycle", page.heading_font, BASE_FONT_SIZE + 6, spacing=1.2)

    page.label_value("Date:", format_date(invoice_data.get("invoice_date")) or "-")
    page.label_value("Invoice No:", str(invoice_data.get("invoice_number") or "-").upper())

    page.text("To:", LEFT_MARGIN, page.y, BOLD_FONT)
    page.y += advance
    for line in BILL_TO:
        page.text(line, LEFT_MARGIN, page.y)
        page.y += advance

    page.centered_line(
        f"Payment Period: {format_date(invoice_data.get('period_start'))} - {format_date(invoice_data.get('period_end'))}"
    )
    page.y += advance

    _draw_table(page, invoice_data)

    page.y += advance * 3
    page.right_line("Authorized Signature")
    page.right_line(f" {invoice_data.get('center_name') or ''}")
    page.centered_line("Digital Invoice - Computer Generated", color="#4b5563")

    c.showPage()
    c.save()
    return buf.getvalue()


# ---------------- PAID watermark ----------------

def _watermark_overlay(width: float, height: float) -> bytes:
    size = max(width, height) * 0.15
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    c.saveState()
    c.setFillColorRGB(1, 0, 0, alpha=0.4)
    c.translate(width / 2, height / 2)
    c.rotate(45)
    c.setFont(BOLD_FONT, size)
    c.drawCentredString(0, -size / 3, "PAID")
    c.restoreState()
    c.showPage()
    c.save()
    return buf.getvalue()


def add_paid_watermark(pdf_bytes: bytes) -> bytes:
    reader = PdfReader(BytesIO(pdf_bytes))
    writer = PdfWriter()
    for page in reader.pages:
        width = float(page.mediabox.width)
        height = float(page.mediabox.height)
        stamp = PdfReader(BytesIO(_watermark_overlay(width, height))).pages[0]
        page.merge_page(stamp)
        writer.add_page(page)
    out = BytesIO()
    writer.write(out)
    return out.getvalue()


# ---------------- storage round trips ----------------

def _remove_stale_copies(storage, invoice_id) -> None:
    safe_id = _UNSAFE.sub("_", str(invoice_id))
    try:
        existing = storage.list(STORAGE_PREFIX.rstrip("/"), search=safe_id)
        stale = [
            f"{STORAGE_PREFIX}{f['name']}"
            for f in existing
            if safe_id in f.get("name", "") and f.get("name", "").endswith(".pdf")
        ]
        if stale:
            storage.remove(stale)
    except Exception:
        logger.warning("Could not remove old PDF copies for invoice %s", invoice_id, exc_info=True)


def generate_and_upload_invoice_pdf(invoice_data: Dict[str, Any]) -> Tuple[str, Optional[str]]:
    """Render, store under `invoices/<invoice_id>.pdf`, return (path, cache-busted public URL)."""
    pdf = render_invoice_pdf(
        invoice_data,
        template_path=_asset_path(current_app.config.get("INVOICE_TEMPLATE")),
        font_path=_asset_path(current_app.config.get("INVOICE_FONT")),
    )
    storage = get_invoice_storage()
    path = safe_storage_path(invoice_data["invoice_id"])
    _remove_stale_copies(storage, invoice_data["invoice_id"])
    storage.upload(path, pdf)
    url = _cache_busted(storage.public_url(path))
    logger.info("Uploaded invoice PDF %s (%d bytes)", path, len(pdf))
    return path, url


def watermark_stored_invoice(invoice_id) -> Tuple[str, Optional[str]]:
    storage = get_invoice_storage()
    path = safe_storage_path(invoice_id)
    original = storage.download(path)
    if not original:
        raise FileNotFoundError(f"Invoice PDF not found in storage: {path}")
    storage.upload(path, add_paid_watermark(original))
    logger.info("Stamped PAID on %s", path)
    return path, _cache_busted(storage.public_url(path))
