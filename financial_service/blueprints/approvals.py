# financial_service/blueprints/approvals.py
from __future__ import annotations

import logging

from flask import Blueprint, request

from ..auth_utils import academic_auth, center_auth, current_user, finance_auth
from ..errors import problem
from ..extensions import db
from ..models import Enrollment, Notification, Student, StudentCoursePayment, StudentPaymentLock
from ..services.centers import CenterLookupError, resolve_center_id
from ..services.payments import (
    approval_message,
    belongs_to_center_dashboard,
    emi_summary,
    flatten_payment,
    payment_history_json,
    payments_with_relations,
    plan_enrollment_extension,
)
from ..utils.tz import local_today, utcnow

bp = Blueprint("approvals", __name__)
logger = logging.getLogger(__name__)


def _notify_student(enrollment: Enrollment, payment: StudentCoursePayment, plan) -> None:
    """Best effort: the approval is already committed."""
    if not enrollment or not enrollment.student_id:
        return
    batch = enrollment.batch
    batch_name = (batch.batch_name if batch else None) or "your course"
    course_name = (batch.course.course_name if batch and batch.course else None) or "course"
    try:
        db.session.add(Notification(
            student_id=enrollment.student_id,
            message=approval_message(payment.payment_type, plan, course_name, batch_name),
            is_read=False,
            created_at=utcnow(),
        ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Approval notification failed for payment %s", payment.payment_id)


# -------------------- POST /approve --------------------
@bp.post("/approve")
@finance_auth
def approve_payment():
    data = request.get_json(silent=True) or {}
    payment_id = data.get("payment_id")
    if not payment_id:
        return problem(400, "validation_error", "Payment ID is required")

    payment = StudentCoursePayment.query.filter_by(payment_id=payment_id).first()
    if not payment:
        return problem(404, "not_found", "Payment not found")

    today = local_today()
    enrollment = db.session.get(Enrollment, payment.enrollment_id) if payment.enrollment_id else None
    plan = plan_enrollment_extension(payment, enrollment.end_date if enrollment else None, today)

    # a regular EMI extends an existing end date, so the row must exist
    if enrollment is None and payment.payment_type == "emi" and not plan.permanent:
        db.session.rollback()
        return problem(404, "not_found", "Enrollment not found")

    payment.status = True
    payment.approved_at = utcnow()
    if plan.next_emi_due:
        payment.next_emi_due_date = plan.next_emi_due

    if enrollment is not None:
        enrollment.status = True
        enrollment.end_date = plan.end_date
        if plan.permanent:
            enrollment.is_permanent = True

    db.session.commit()
    logger.info(
        "Payment %s approved by %s (type=%s, end_date=%s)",
        payment.payment_id, current_user().get("id"), payment.payment_type, plan.end_date,
    )

    _notify_student(enrollment, payment, plan)
    return {"message": "Payment approved successfully"}, 200


# -------------------- GET /payments --------------------
@bp.get("/payments")
@finance_auth
def list_payments():
    rows = payments_with_relations().order_by(StudentCoursePayment.created_at.desc()).all()
    return {"success": True, "data": [flatten_payment(p) for p in rows]}, 200


# -------------------- PUT /payment/edit --------------------
@bp.put("/payment/edit")
@finance_auth
def edit_payment_duration():
    data = request.get_json(silent=True) or {}
    payment_id = data.get("payment_id")
    raw = data.get("new_course_duration")
    if not payment_id or raw in (None, ""):
        return problem(400, "validation_error", "Payment ID and new course duration are required")
    try:
        duration = int(raw)
    except (TypeError, ValueError):
        return problem(400, "validation_error", "new_course_duration must be a number")

    payment = StudentCoursePayment.query.filter_by(payment_id=payment_id).first()
    if not payment:
        return problem(404, "not_found", "Payment not found")

    payment.course_duration = duration
    db.session.commit()
    return {
        "success": True,
        "message": "Course duration updated successfully",
        "data": payment_history_json(payment),
    }, 200


# -------------------- GET /center/payments --------------------
@bp.get("/center/payments")
@center_auth
def center_payments():
    try:
        center_id = resolve_center_id(current_user())
    except CenterLookupError as e:
        return problem(e.status, "center_lookup", e.detail)

    rows = payments_with_relations().order_by(StudentCoursePayment.created_at.desc()).all()
    return {
        "success": True,
        "data": [flatten_payment(p) for p in rows if belongs_to_center_dashboard(p, center_id)],
    }, 200


# ---------- GET /students/<reg>/batches/<batch_id>/payments ----------
@bp.get("/students/<registration_number>/batches/<batch_id>/payments")
@academic_auth
def student_batch_payments(registration_number: str, batch_id: str):
    student = Student.query.filter_by(registration_number=registration_number).first()
    if not student:
        return problem(404, "not_found", "Student not found")

    enrollment = Enrollment.query.filter_by(student_id=student.student_id, batch_id=batch_id).first()
    if not enrollment:
        return problem(404, "not_found", "Student not enrolled in this batch")

    payments = (
        StudentCoursePayment.query
        .filter_by(enrollment_id=enrollment.enrollment_id)
        .order_by(StudentCoursePayment.created_at.desc())
        .all()
    )
    lock = StudentPaymentLock.query.filter_by(register_number=registration_number, batch_id=batch_id).first()
    latest = payments[0] if payments else None

    return {
        "success": True,
        "data": {
            "registration_number": registration_number,
            "batch_id": batch_id,
            "payment_type": (lock.payment_type if lock else None) or (latest.payment_type if latest else None),
            "locked_at": lock.locked_at.isoformat() if lock and lock.locked_at else None,
            "payment_history": [payment_history_json(p) for p in payments],
            "student_info": {"name": student.name, "email": student.email, "contact": student.phone},
            "emi_summary": emi_summary(latest),
        },
    }, 200
