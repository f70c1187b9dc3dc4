# financial_service/services/enrollments.py
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import or_

from ..extensions import db
from ..models import Enrollment

logger = logging.getLogger(__name__)


def expire_enrollments(today: date) -> int:
    """
    Switch off access for enrollments whose end date has passed.
    Permanent enrollments are never touched. Returns the number of rows updated.
    """
    count = (
        Enrollment.query
        .filter(
            Enrollment.end_date < today,
            or_(Enrollment.is_permanent.is_(None), Enrollment.is_permanent.is_(False)),
        )
        .update({Enrollment.status: False}, synchronize_session=False)
    )
    db.session.commit()
    logger.info("Expired %d enrollment(s) with end_date before %s", count, today.isoformat())
    return count
