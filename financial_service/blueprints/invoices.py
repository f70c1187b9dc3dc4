# financial_service/blueprints/invoices.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from flask import Blueprint, request

from ..auth_utils import center_auth, current_user, finance_auth, invoice_auth, state_auth
from ..errors import problem
from ..extensions import db
from ..models import (
    Center,
    CenterInvoice,
    CenterInvoiceItem,
    INVOICE_STATUSES,
    InvoiceStatusHistory,
    StudentCoursePayment,
    User,
)
from ..services.centers import (
    CenterLookupError,
    center_ids_in_state,
    resolve_center_id,
    resolve_state_id,
)
from ..services.invoice_cycle import (
    InvoiceCycle,
    can_generate_invoice,
    generation_window_message,
    get_current_invoice_cycle,
)
from ..services.invoice_numbering import (
    center_code,
    count_fiscal_year_invoices,
    fiscal_year_for,
    format_invoice_number,
)
from ..services.invoice_pdf import generate_and_upload_invoice_pdf, watermark_stored_invoice
from ..services.payments import payments_with_relations
from ..services.revenue_share import calculate_center_share, calculate_net_amount, fee_term
from ..utils.serialize import row_json
from ..utils.tz import local_today, utcnow

bp = Blueprint("invoices", __name__)
logger = logging.getLogger(__name__)

# status -> the one status it may move to
_NEXT_STATUS = dict(zip(INVOICE_STATUSES, INVOICE_STATUSES[1:]))
_SETTABLE = INVOICE_STATUSES[1:]
_ROLE_MAY_SET = {
    "state": "MF Verified",
    "financial": "Finance Accepted",
    "manager": "Invoice Paid",
    "admin": "Invoice Paid",
}


# -------------------- helpers --------------------

def _center_or_problem():
    try:
        return resolve_center_id(current_user()), None
    except CenterLookupError as e:
        return None, problem(e.status, "center_lookup", e.detail)


def _cycle_items(center_id: str, cycle: InvoiceCycle) -> List[Dict[str, Any]]:
    """
    Approved payments of the center's direct or referred students, paid inside
    the cycle's payment period and not on any invoice yet, as invoice lines.
    """
    candidates: List[Tuple[StudentCoursePayment, Any, bool]] = []
    for p in payments_with_relations(approved_only=True).order_by(StudentCoursePayment.created_at.asc()):
        student = p.enrollment.student if p.enrollment else None
        if student is None:
            continue
        is_direct = student.center_id == center_id
        is_referred = bool(student.is_referred) and student.referred_by_center == center_id
        if not (is_direct or is_referred):
            continue
        # created_at is stored in UTC
        paid_on = p.created_at.date()
        if paid_on < cycle.period_start or paid_on > cycle.period_end:
            continue
        candidates.append((p, student, is_direct))

    if not candidates:
        return []

    invoiced = {
        row.payment_id
        for row in db.session.query(CenterInvoiceItem.payment_id)
        .filter(CenterInvoiceItem.payment_id.in_([p.payment_id for p, _, _ in candidates]))
    }

    items = []
    for p, student, is_direct in candidates:
        if p.payment_id in invoiced:
            continue
        batch = p.enrollment.batch
        course = batch.course if batch else None
        fee_paid = float(p.final_fees or 0)
        items.append({
            "payment_id": p.payment_id,
            "student_id": student.student_id,
            "student_name": student.name or "N/A",
            "registration_number": student.registration_number or "N/A",
            "course_name": (course.course_name if course else None) or "N/A",
            "course_mode": (course.mode if course else None) or "Online",
            "transaction_date": p.created_at.date(),
            "fee_term": fee_term(p.payment_type, p.current_emi),
            "discount_percentage": float(p.discount_percentage or 0),
            "fee_paid": fee_paid,
            "net_amount": calculate_net_amount(fee_paid),
            "total_amount": calculate_center_share(fee_paid, is_direct),
        })
    logger.debug(
        "Center %s cycle %s: %d candidate payment(s), %d available",
        center_id, cycle.cycle_number, len(candidates), len(items),
    )
    return items


def _summary(items: List[Dict[str, Any]]) -> Dict[str, float]:
    return {
        "totalNetAmount": sum(i["net_amount"] for i in items),
        "totalCenterShare": sum(i["total_amount"] for i in items),
    }


def _item_json(item: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(item)
    out["transaction_date"] = item["transaction_date"].isoformat()
    out.pop("student_id", None)
    return out


def _admin_names(claims: Dict[str, Any], center: Center) -> Tuple[Optional[str], Optional[str]]:
    name = claims.get("name")
    full_name = claims.get("full_name")
    if name and full_name:
        return name, full_name
    lookup_id = claims.get("id") or center.center_admin
    user = db.session.get(User, lookup_id) if lookup_id else None
    if user:
        name = name or user.name or user.full_name
        full_name = full_name or user.full_name or user.name
    return name, full_name


def _invoice_with_center(inv: CenterInvoice) -> Dict[str, Any]:
    data = row_json(inv)
    data["centers"] = (
        {"center_id": inv.center.center_id, "center_name": inv.center.center_name}
        if inv.center else None
    )
    return data


def _queue(statuses, center_ids=None):
    q = CenterInvoice.query.filter(CenterInvoice.status.in_(statuses))
    if center_ids is not None:
        q = q.filter(CenterInvoice.center_id.in_(center_ids))
    rows = q.order_by(CenterInvoice.created_at.desc()).all()
    return {"success": True, "data": [_invoice_with_center(inv) for inv in rows]}, 200


def _state_queue(statuses):
    try:
        state_id = resolve_state_id(current_user().get("id"))
    except CenterLookupError as e:
        return problem(e.status, "state_lookup", e.detail)
    center_ids = center_ids_in_state(state_id)
    if not center_ids:
        return {"success": True, "data": []}, 200
    return _queue(statuses, center_ids)


# -------------------- GET /cycle-payments --------------------
@bp.get("/cycle-payments")
@center_auth
def cycle_payments():
    center_id, err = _center_or_problem()
    if err:
        return err

    today = local_today()
    cycle = get_current_invoice_cycle(today)
    items = _cycle_items(center_id, cycle)
    return {
        "success": True,
        "data": {
            "cycle": cycle.to_json(),
            "canGenerate": can_generate_invoice(cycle, today),
            "payments": [_item_json(i) for i in items],
            "summary": {"totalPayments": len(items), **_summary(items)},
        },
    }, 200


# -------------------- POST /generate --------------------
@bp.post("/generate")
@center_auth
def generate_invoice():
    center_id, err = _center_or_problem()
    if err:
        return err
    claims = current_user()

    today = local_today()
    cycle = get_current_invoice_cycle(today)
    if not can_generate_invoice(cycle, today):
        return problem(400, "outside_generation_window", generation_window_message(cycle))

    exists = CenterInvoice.query.filter_by(
        center_id=center_id, cycle_number=cycle.cycle_number, period_start=cycle.period_start
    ).first()
    if exists:
        return problem(400, "already_generated", "Invoice already generated for this cycle")

    items = _cycle_items(center_id, cycle)
    if not items:
        return problem(400, "no_payments", "No payments available for invoice generation")

    center = db.session.get(Center, center_id)
    if not center:
        return problem(404, "not_found", "Center not found")

    admin_name, admin_full_name = _admin_names(claims, center)
    totals = _summary(items)

    invoice = CenterInvoice(
        center_id=center_id,
        invoice_date=today,
        period_start=cycle.period_start,
        period_end=cycle.period_end,
        cycle_number=cycle.cycle_number,
        total_net_amount=totals["totalNetAmount"],
        total_center_share=totals["totalCenterShare"],
        status="Pending",
        created_by=claims.get("id"),
        created_at=utcnow(),
    )
    db.session.add(invoice)
    db.session.flush()

    # the new row is already counted, so the first invoice of a fiscal year is 001
    fy = fiscal_year_for(today)
    sequence = count_fiscal_year_invoices(center_id, fy)
    code = center_code(
        [
            admin_name,
            admin_full_name,
            claims.get("name"),
            claims.get("full_name"),
            center.center_username,
            center.center_shortcode,
            center.center_code,
            claims.get("center_username"),
            claims.get("center_shortcode"),
            claims.get("center_code"),
        ],
        center.center_name,
    )
    invoice.invoice_number = format_invoice_number(code, fy.label, sequence)

    for item in items:
        db.session.add(CenterInvoiceItem(
            invoice_id=invoice.invoice_id,
            payment_id=item["payment_id"],
            student_id=item["student_id"],
            student_name=item["student_name"],
            registration_number=item["registration_number"],
            course_name=item["course_name"],
            transaction_date=item["transaction_date"],
            fee_term=item["fee_term"],
            fee_paid=item["fee_paid"],
            net_amount=item["net_amount"],
            center_share=item["total_amount"],
            created_at=utcnow(),
        ))
    db.session.commit()
    logger.info(
        "Invoice %s generated for center %s: %d item(s), share %.2f",
        invoice.invoice_number, center_id, len(items), totals["totalCenterShare"],
    )

    try:
        _, pdf_url = generate_and_upload_invoice_pdf({
            "invoice_id": invoice.invoice_id,
            "invoice_number": invoice.invoice_number,
            "invoice_date": invoice.invoice_date,
            "cycle_number": cycle.cycle_number,
            "period_start": cycle.period_start,
            "period_end": cycle.period_end,
            "center_name": center.center_name,
            "center_admin_name": admin_name,
            "total_net_amount": totals["totalNetAmount"],
            "total_center_share": totals["totalCenterShare"],
            "items": items,
        })
        invoice.pdf_url = pdf_url
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Invoice %s saved without PDF", invoice.invoice_id)

    data = row_json(invoice)
    data.update({"sequence_number": sequence, "fiscal_year": fy.label})
    return {
        "success": True,
        "data": {"invoice": data, "itemsCount": len(items), "summary": totals},
    }, 201


# -------------------- GET / --------------------
@bp.get("/")
@center_auth
def center_invoices():
    center_id, err = _center_or_problem()
    if err:
        return err
    rows = (
        CenterInvoice.query.filter_by(center_id=center_id)
        .order_by(CenterInvoice.created_at.desc())
        .all()
    )
    return {"success": True, "data": [row_json(inv) for inv in rows]}, 200


# -------------------- GET /<invoice_id>/items --------------------
@bp.get("/<invoice_id>/items")
@invoice_auth
def invoice_items(invoice_id: str):
    invoice = db.session.get(CenterInvoice, invoice_id)
    if not invoice:
        return problem(404, "not_found", "Invoice not found")

    claims = current_user()
    role = claims.get("role")
    if role == "center":
        center_id, err = _center_or_problem()
        if err:
            return err
        if invoice.center_id != center_id:
            return problem(403, "forbidden", "Access denied. This invoice does not belong to your center.")
    elif role == "state":
        try:
            state_id = resolve_state_id(claims.get("id"))
        except CenterLookupError as e:
            return problem(e.status, "state_lookup", e.detail)
        center = db.session.get(Center, invoice.center_id)
        if not center:
            return problem(404, "not_found", "Center not found for this invoice")
        if center.state_id != state_id:
            return problem(403, "forbidden", "Access denied. This invoice does not belong to a center in your state.")

    items = (
        CenterInvoiceItem.query.filter_by(invoice_id=invoice_id)
        .order_by(CenterInvoiceItem.created_at.asc())
        .all()
    )
    return {"success": True, "data": [row_json(i) for i in items]}, 200


# -------------------- review queues --------------------
@bp.get("/state-admin/pending")
@state_auth
def state_admin_pending():
    if current_user().get("role") != "state":
        return problem(403, "forbidden", "Access denied. Only State Admin can view pending invoices.")
    return _state_queue(["Pending"])


@bp.get("/state-admin/verified")
@state_auth
def state_admin_verified():
    if current_user().get("role") != "state":
        return problem(403, "forbidden", "Access denied. Only State Admin can view approved invoices.")
    return _state_queue(["MF Verified", "Finance Accepted", "Invoice Paid"])


@bp.get("/finance-admin/verified")
@finance_auth
def finance_admin_verified():
    if current_user().get("role") != "financial":
        return problem(403, "forbidden", "Access denied. Only Finance Admin can view verified invoices.")
    return _queue(["MF Verified"])


@bp.get("/finance-admin/accepted")
@finance_auth
def finance_admin_accepted():
    if current_user().get("role") != "financial":
        return problem(403, "forbidden", "Access denied. Only Finance Admin can view approved invoices.")
    return _queue(["Finance Accepted", "Invoice Paid"])


@bp.get("/manager-admin/accepted")
@center_auth
def manager_admin_accepted():
    if current_user().get("role") not in ("manager", "admin"):
        return problem(403, "forbidden", "Access denied. Only Manager or Admin can view finance accepted invoices.")
    return _queue(["Finance Accepted"])


@bp.get("/manager-admin/paid")
@center_auth
def manager_admin_paid():
    if current_user().get("role") not in ("manager", "admin"):
        return problem(403, "forbidden", "Access denied. Only Manager or Admin can view approved invoices.")
    return _queue(["Invoice Paid"])


# -------------------- PATCH /<invoice_id>/status --------------------
@bp.patch("/<invoice_id>/status")
@state_auth
def update_invoice_status(invoice_id: str):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    notes = data.get("notes")
    claims = current_user()
    role = claims.get("role")

    if status not in _SETTABLE:
        return problem(400, "validation_error", f"Invalid status. Must be one of: {', '.join(_SETTABLE)}")
    if _ROLE_MAY_SET.get(role) != status:
        return problem(403, "forbidden", f"Access denied. {role} cannot set status to {status}")

    invoice = db.session.get(CenterInvoice, invoice_id)
    if not invoice:
        return problem(404, "not_found", "Invoice not found")

    old_status = invoice.status
    if _NEXT_STATUS.get(old_status) != status:
        return problem(400, "invalid_transition", f"Invalid status transition from {old_status} to {status}")

    invoice.status = status
    db.session.commit()
    logger.info("Invoice %s: %s -> %s by %s", invoice_id, old_status, status, claims.get("id"))

    try:
        db.session.add(InvoiceStatusHistory(
            invoice_id=invoice_id,
            old_status=old_status,
            new_status=status,
            changed_by=claims.get("id"),
            notes=notes or f"Status changed by {role}",
            changed_at=utcnow(),
        ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Could not record status history for invoice %s", invoice_id)

    if status == "Invoice Paid" and invoice.pdf_url:
        try:
            _, new_url = watermark_stored_invoice(invoice_id)
            if new_url and new_url != invoice.pdf_url:
                invoice.pdf_url = new_url
                db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception("Invoice %s marked paid but the PAID watermark failed", invoice_id)

    return {
        "success": True,
        "data": row_json(invoice),
        "message": f"Invoice status updated to {status}",
    }, 200
