# financial_service/blueprints/revenue.py
from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import Blueprint, current_app

from ..auth_utils import finance_auth
from ..models import StudentCoursePayment
from ..services.revenue import compute_revenue_stats
from ..utils.tz import get_zoneinfo, local_today

bp = Blueprint("revenue", __name__)
logger = logging.getLogger(__name__)


@bp.get("/revenue/test")
def revenue_test():
    return {
        "success": True,
        "message": "Revenue routes are working",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }, 200


@bp.get("/revenue/stats")
@finance_auth
def revenue_stats():
    payments = StudentCoursePayment.query.order_by(StudentCoursePayment.created_at.desc()).all()
    tz = get_zoneinfo(current_app.config.get("TIMEZONE"))
    stats = compute_revenue_stats(payments, local_today(), tz)
    logger.debug("Revenue stats over %d payment(s)", len(payments))
    return {"success": True, "data": stats}, 200
