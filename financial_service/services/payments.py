# financial_service/services/payments.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import joinedload

from ..models import Batch, Enrollment, Student, StudentCoursePayment
from ..utils.serialize import row_json

EMI_EXTENSION_DAYS = 30
PERMANENT_YEARS = 100


def payments_with_relations(approved_only: bool = False):
    """Payments with enrollment → student/batch → center/course eagerly loaded."""
    q = StudentCoursePayment.query.options(
        joinedload(StudentCoursePayment.enrollment).joinedload(Enrollment.student).joinedload(Student.referring_center),
        joinedload(StudentCoursePayment.enrollment).joinedload(Enrollment.batch).joinedload(Batch.center),
        joinedload(StudentCoursePayment.enrollment).joinedload(Enrollment.batch).joinedload(Batch.course),
    )
    if approved_only:
        q = q.filter(StudentCoursePayment.status.is_(True))
    return q


def flatten_payment(p: StudentCoursePayment) -> Dict[str, Any]:
    """Payment row plus the student/batch/center fields the dashboards show."""
    enrollment = p.enrollment
    student = enrollment.student if enrollment else None
    batch = enrollment.batch if enrollment else None
    center = batch.center if batch else None
    course = batch.course if batch else None
    referring = student.referring_center if student else None

    data = row_json(p)
    data.update({
        "student_email": student.email if student else None,
        "student_name": student.name if student else p.student_name,
        "registration_number": student.registration_number if student else None,
        "course_name": course.course_name if course else p.course_name,
        "batch_name": batch.batch_name if batch else None,
        "batch_id": batch.batch_id if batch else None,
        "batch_center_id": center.center_id if center else None,
        "batch_center_name": center.center_name if center else None,
        "is_referred": bool(student.is_referred) if student else False,
        "referring_center_name": referring.center_name if referring else None,
    })
    return data


def belongs_to_center_dashboard(p: StudentCoursePayment, center_id: str) -> bool:
    """Batch run by this center, or student referred by it."""
    enrollment = p.enrollment
    if not enrollment:
        return False
    batch = enrollment.batch
    student = enrollment.student
    if batch and batch.center_id == center_id:
        return True
    return bool(student and student.is_referred and student.referred_by_center == center_id)


# ---------------- approval rules ----------------

@dataclass
class EnrollmentExtension:
    end_date: Optional[date]
    permanent: bool
    final_emi: bool = False
    next_emi_due: Optional[date] = None


def _add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:  # Feb 29 -> Feb 28
        return d.replace(year=d.year + years, day=28)


def is_final_emi(payment: StudentCoursePayment) -> bool:
    return bool(
        payment.current_emi and payment.emi_duration and payment.current_emi >= payment.emi_duration
    )


def plan_enrollment_extension(payment: StudentCoursePayment, current_end: Optional[date], today: date) -> EnrollmentExtension:
    """
    New enrollment expiry for an approved payment.

    full payment / final EMI → permanent, end date 100 years out
    regular EMI              → +30 days from the later of (current end, today)
    anything else            → end date untouched
    """
    if payment.payment_type == "full":
        return EnrollmentExtension(end_date=_add_years(today, PERMANENT_YEARS), permanent=True)

    if payment.payment_type == "emi":
        if is_final_emi(payment):
            return EnrollmentExtension(
                end_date=_add_years(today, PERMANENT_YEARS), permanent=True, final_emi=True
            )
        base = current_end if (current_end and current_end > today) else today
        return EnrollmentExtension(
            end_date=base + timedelta(days=EMI_EXTENSION_DAYS),
            permanent=False,
            next_emi_due=today + timedelta(days=EMI_EXTENSION_DAYS),
        )

    return EnrollmentExtension(end_date=current_end, permanent=False)


def _short_date(d: date) -> str:
    return f"{d:%b} {d.day}, {d.year}"


def approval_message(payment_type: Optional[str], plan: EnrollmentExtension, course_name: str, batch_name: str) -> str:
    head = f"Your payment has been approved! 🎉\n\nCourse: {course_name}\nBatch: {batch_name}\n\n"
    if payment_type == "full":
        return head + "Your enrollment is now active with lifelong access."
    if payment_type == "emi":
        if plan.final_emi:
            return head + "Congratulations! All EMI payments completed. Your enrollment is now active with lifelong access."
        due = _short_date(plan.next_emi_due) if plan.next_emi_due else "N/A"
        return head + f"Next EMI Due: {due}"
    return head + "Your enrollment is now active."


def payment_history_json(p: StudentCoursePayment) -> Dict[str, Any]:
    return row_json(p, exclude=("enrollment_id",))


def emi_summary(latest: Optional[StudentCoursePayment]) -> Optional[Dict[str, Any]]:
    if not latest or latest.payment_type != "emi":
        return None
    total = latest.emi_duration or 0
    paid = latest.current_emi or 0
    return {
        "total_emis": total,
        "paid_emis": paid,
        "remaining_emis": total - paid,
        "next_due_date": latest.next_emi_due_date.isoformat() if latest.next_emi_due_date else None,
    }
