# financial_service/services/invoice_cycle.py
"""
Invoice cycle calendar.

Each month has three billing cycles. Payments collected in a cycle's payment
period are invoiced during the three days that follow it:

    cycle 1: payments 1-10,    invoice 11-13
    cycle 2: payments 11-20,   invoice 21-23
    cycle 3: payments 21-end,  invoice 1-3 of the next month

On days 1-3 the open cycle is therefore cycle 3 of the *previous* month.
"""
from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Optional

GENERATION_DAYS = 3


@dataclass(frozen=True)
class InvoiceCycle:
    cycle_number: int
    period_start: date
    period_end: date
    generation_start: date
    generation_end: date
    year: int   # year/month the payment period belongs to
    month: int  # 1..12

    def to_json(self) -> Dict[str, Any]:
        return {
            "cycleNumber": self.cycle_number,
            "periodStart": self.period_start.isoformat(),
            "periodEnd": self.period_end.isoformat(),
            "generationStart": self.generation_start.isoformat(),
            "generationEnd": self.generation_end.isoformat(),
            "year": self.year,
            "month": self.month,
        }


def _prev_month(y: int, m: int):
    return (y - 1, 12) if m == 1 else (y, m - 1)


def _last_day_of_month(y: int, m: int) -> int:
    return monthrange(y, m)[1]


def _cycle(number: int, start: date, end: date) -> InvoiceCycle:
    gen_start = end + timedelta(days=1)
    return InvoiceCycle(
        cycle_number=number,
        period_start=start,
        period_end=end,
        generation_start=gen_start,
        generation_end=gen_start + timedelta(days=GENERATION_DAYS - 1),
        year=start.year,
        month=start.month,
    )


def get_current_invoice_cycle(today: Optional[date] = None) -> InvoiceCycle:
    """Return the cycle that `today` is collecting for or generating invoices for."""
    today = today or date.today()
    y, m, d = today.year, today.month, today.day

    if d <= 3:
        py, pm = _prev_month(y, m)
        return _cycle(3, date(py, pm, 21), date(py, pm, _last_day_of_month(py, pm)))
    if d <= 13:
        return _cycle(1, date(y, m, 1), date(y, m, 10))
    if d <= 23:
        return _cycle(2, date(y, m, 11), date(y, m, 20))
    return _cycle(3, date(y, m, 21), date(y, m, _last_day_of_month(y, m)))


def can_generate_invoice(cycle: InvoiceCycle, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return cycle.generation_start <= today <= cycle.generation_end


def format_display_date(d: Optional[date]) -> str:
    """DD/MM/YYYY"""
    return d.strftime("%d/%m/%Y") if d else ""


def generation_window_message(cycle: InvoiceCycle) -> str:
    return (
        f"Invoice for Cycle {cycle.cycle_number} "
        f"(Payment Period: {format_display_date(cycle.period_start)} – {format_display_date(cycle.period_end)}) "
        f"can only be generated during the generation period: "
        f"{format_display_date(cycle.generation_start)} – {format_display_date(cycle.generation_end)}"
    )
