# financial_service/services/invoice_numbering.py
"""
Invoice numbers look like ``ABC/INV/25-26/007``: a center code, the fiscal
year label (April 1 - March 31) and a per-center sequence that restarts every
fiscal year.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func

from ..extensions import db
from ..models import CenterInvoice

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class FiscalYear:
    label: str
    start: date
    end: date


def fiscal_year_for(d: date) -> FiscalYear:
    start_year = d.year if d.month >= 4 else d.year - 1
    end_year = start_year + 1
    return FiscalYear(
        label=f"{str(start_year)[-2:]}-{str(end_year)[-2:]}",
        start=date(start_year, 4, 1),
        end=date(end_year, 3, 31),
    )


def sanitize_code(value) -> str:
    if value is None:
        return ""
    return _NON_ALNUM.sub("", str(value)).upper()


def initials(name: Optional[str]) -> str:
    return "".join(word[0] for word in str(name or "").split()).upper()


def center_code(candidates: Iterable, center_name: Optional[str] = None) -> str:
    for candidate in candidates:
        code = sanitize_code(candidate)
        if code:
            return code
    return initials(center_name) or "INV"


def format_invoice_number(code: str, fy_label: str, sequence: int) -> str:
    return f"{code}/INV/{fy_label}/{sequence:03d}"


def count_fiscal_year_invoices(center_id: str, fy: FiscalYear) -> int:
    return (
        db.session.query(func.count(CenterInvoice.invoice_id))
        .filter(
            CenterInvoice.center_id == center_id,
            CenterInvoice.invoice_date >= fy.start,
            CenterInvoice.invoice_date <= fy.end,
        )
        .scalar()
    ) or 0
