# financial_service/services/revenue.py
"""
Revenue dashboard aggregation.

Pure over payment rows: callers load the rows, this module only counts.
"""
from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

RECENT_LIMIT = 10
MONTHS_SHOWN = 12


def _round_half_up(x: float, places: int = 0):
    q = Decimal(str(x)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return int(q) if places == 0 else float(q)


def _local(created: datetime, tz: Optional[tzinfo]) -> datetime:
    # rows hold naive UTC
    if tz is None:
        return created
    return created.replace(tzinfo=timezone.utc).astimezone(tz)


def _month_key(d) -> tuple:
    return (d.year, d.month)


def _months_back(today: date, n: int) -> tuple:
    y, m = today.year, today.month - n
    while m <= 0:
        m += 12
        y -= 1
    return (y, m)


def _fees(p) -> float:
    return float(p.final_fees or 0)


def empty_stats() -> Dict[str, Any]:
    return {
        "totalRevenue": 0,
        "monthlyRevenue": 0,
        "courseRevenue": [],
        "totalTransactions": 0,
        "monthlyTransactions": 0,
        "monthlyRevenueData": [],
        "paymentMethods": {"emi": 0, "full": 0},
        "paymentStatus": {"approved": 0, "pending": 0},
        "recentTransactions": [],
        "revenueGrowth": 0,
        "averageTransactionValue": 0,
        "topPerformingCourse": None,
    }


def _recent_transaction(p) -> Dict[str, Any]:
    return {
        "id": p.payment_id,
        "studentName": p.student_name,
        "courseName": p.course_name,
        "amount": _fees(p),
        "paymentType": p.payment_type,
        "status": "Approved" if p.status else "Pending",
        "date": p.created_at.isoformat() if p.created_at else None,
    }


def compute_revenue_stats(all_payments: Sequence, today: date, tz: Optional[tzinfo] = None) -> Dict[str, Any]:
    """
    `all_payments` newest first. Revenue figures count approved payments only;
    the status split and recent list look at every payment.

    Payments are bucketed by the month of `created_at` seen in `tz` (the zone
    `today` was taken in). Without `tz` the stored timestamp is used as is.
    """
    approved = [p for p in all_payments if p.status]
    if not approved:
        return empty_stats()

    months = {id(p): _month_key(_local(p.created_at, tz)) for p in approved if p.created_at}

    total_revenue = sum(_fees(p) for p in approved)

    this_month = _month_key(today)
    last_month = _months_back(today, 1)
    current = [p for p in approved if months.get(id(p)) == this_month]
    previous = [p for p in approved if months.get(id(p)) == last_month]
    monthly_revenue = sum(_fees(p) for p in current)
    previous_revenue = sum(_fees(p) for p in previous)

    by_course: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for p in approved:
        name = p.course_name or "Unknown Course"
        entry = by_course.setdefault(name, {"course": name, "revenue": 0.0, "count": 0})
        entry["revenue"] += _fees(p)
        entry["count"] += 1
    course_revenue: List[Dict[str, Any]] = []
    for entry in by_course.values():
        pct = entry["revenue"] / total_revenue * 100 if total_revenue else 0
        course_revenue.append({**entry, "percentage": f"{pct:.1f}"})
    course_revenue.sort(key=lambda c: c["revenue"], reverse=True)

    monthly_data = []
    for back in range(MONTHS_SHOWN - 1, -1, -1):
        y, m = _months_back(today, back)
        rows = [p for p in approved if months.get(id(p)) == (y, m)]
        monthly_data.append({
            "month": date(y, m, 1).strftime("%b %Y"),
            "revenue": sum(_fees(p) for p in rows),
            "transactions": len(rows),
        })

    growth = 0
    if previous_revenue > 0:
        growth = _round_half_up((monthly_revenue - previous_revenue) / previous_revenue * 100, 1)

    top: Optional[Dict[str, Any]] = course_revenue[0] if course_revenue else None

    return {
        "totalRevenue": total_revenue,
        "monthlyRevenue": monthly_revenue,
        "courseRevenue": course_revenue,
        "totalTransactions": len(approved),
        "monthlyTransactions": len(current),
        "monthlyRevenueData": monthly_data,
        "paymentMethods": {
            "emi": sum(_fees(p) for p in approved if p.payment_type == "emi"),
            "full": sum(_fees(p) for p in approved if p.payment_type == "full"),
        },
        "paymentStatus": {
            "approved": len(approved),
            "pending": sum(1 for p in all_payments if not p.status),
        },
        "recentTransactions": [_recent_transaction(p) for p in list(all_payments)[:RECENT_LIMIT]],
        "revenueGrowth": growth,
        "averageTransactionValue": _round_half_up(total_revenue / len(approved)),
        "topPerformingCourse": top,
    }
