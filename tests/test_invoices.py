from datetime import date, datetime

import pytest

from financial_service.extensions import db
from financial_service.models import INVOICE_STATUSES, CenterInvoice, CenterInvoiceItem, InvoiceStatusHistory
from financial_service.services.invoice_pdf import render_invoice_pdf, safe_storage_path

# cycle 3 of March 2026 is generated on April 1-3
GENERATION_DAY = date(2026, 4, 2)
BASE = "/api/financial/invoices"


@pytest.fixture
def center_headers(auth_header, world):
    return auth_header("center", id=world.center_admin.id, center_id=world.center.center_id, name="annanagar")


@pytest.fixture
def march_payments(world, make_payment):
    return {
        "direct": make_payment(world.enrollments["direct"], datetime(2026, 3, 25, 9), payment_id="pay_direct",
                               discount_percentage=10),
        "referred": make_payment(world.enrollments["referred"], datetime(2026, 3, 28, 9), payment_id="pay_ref",
                                 payment_type="emi", current_emi=2, emi_duration=4),
        "unrelated": make_payment(world.enrollments["unrelated"], datetime(2026, 3, 26), payment_id="pay_other"),
        "earlier_cycle": make_payment(world.enrollments["direct"], datetime(2026, 3, 15), payment_id="pay_early"),
        "unapproved": make_payment(world.enrollments["direct"], datetime(2026, 3, 27), payment_id="pay_pending",
                                   approved=False),
    }


def _invoice(center, status="Pending", invoice_date=date(2026, 3, 5), cycle=1, period_start=date(2026, 2, 21),
             **fields):
    inv = CenterInvoice(
        center_id=center.center_id,
        invoice_date=invoice_date,
        period_start=period_start,
        period_end=period_start,
        cycle_number=cycle,
        status=status,
        created_at=fields.pop("created_at", datetime(2026, 3, 5)),
        **fields,
    )
    db.session.add(inv)
    db.session.commit()
    return inv


# -------------------- cycle payments --------------------

def test_cycle_payments_lists_direct_and_referred(client, world, march_payments, pin_today, center_headers):
    pin_today(GENERATION_DAY)
    res = client.get(f"{BASE}/cycle-payments", headers=center_headers)
    assert res.status_code == 200
    data = res.get_json()["data"]

    assert data["cycle"]["cycleNumber"] == 3
    assert data["cycle"]["periodStart"] == "2026-03-21"
    assert data["canGenerate"] is True

    rows = {p["payment_id"]: p for p in data["payments"]}
    assert set(rows) == {"pay_direct", "pay_ref"}
    assert rows["pay_direct"]["total_amount"] == pytest.approx(800)
    assert rows["pay_direct"]["course_mode"] == "Online"
    assert rows["pay_direct"]["transaction_date"] == "2026-03-25"
    assert rows["pay_ref"]["total_amount"] == pytest.approx(200)
    assert rows["pay_ref"]["fee_term"] == "EMI - 2"

    assert data["summary"]["totalPayments"] == 2
    assert data["summary"]["totalNetAmount"] == pytest.approx(2000)
    assert data["summary"]["totalCenterShare"] == pytest.approx(1000)


def test_cycle_payments_skip_already_invoiced(client, world, march_payments, pin_today, center_headers):
    pin_today(GENERATION_DAY)
    inv = _invoice(world.center)
    db.session.add(CenterInvoiceItem(invoice_id=inv.invoice_id, payment_id="pay_direct"))
    db.session.commit()

    data = client.get(f"{BASE}/cycle-payments", headers=center_headers).get_json()["data"]
    assert [p["payment_id"] for p in data["payments"]] == ["pay_ref"]


def test_center_admin_without_center_claim_is_resolved(client, world, march_payments, pin_today, auth_header):
    pin_today(GENERATION_DAY)
    res = client.get(f"{BASE}/cycle-payments", headers=auth_header("center", id=world.center_admin.id))
    assert res.status_code == 200
    assert res.get_json()["data"]["summary"]["totalPayments"] == 2


# -------------------- generation --------------------

def test_generate_persists_invoice_items_and_pdf(client, world, march_payments, pin_today, center_headers, storage):
    pin_today(GENERATION_DAY)
    res = client.post(f"{BASE}/generate", headers=center_headers)
    assert res.status_code == 201
    body = res.get_json()["data"]

    invoice = body["invoice"]
    assert invoice["invoice_number"] == "ANNANAGAR/INV/26-27/001"
    assert invoice["sequence_number"] == 1
    assert invoice["fiscal_year"] == "26-27"
    assert invoice["status"] == "Pending"
    assert invoice["invoice_date"] == "2026-04-02"
    assert invoice["cycle_number"] == 3
    assert invoice["created_by"] == world.center_admin.id
    assert body["itemsCount"] == 2
    assert body["summary"]["totalCenterShare"] == pytest.approx(1000)

    path = safe_storage_path(invoice["invoice_id"])
    assert storage.files[path].startswith(b"%PDF")
    assert invoice["pdf_url"].startswith(f"https://storage.test/invoices/{path}?v=")

    items = CenterInvoiceItem.query.filter_by(invoice_id=invoice["invoice_id"]).all()
    assert {i.payment_id for i in items} == {"pay_direct", "pay_ref"}

    again = client.post(f"{BASE}/generate", headers=center_headers)
    assert again.status_code == 400
    assert again.get_json()["error"] == "Invoice already generated for this cycle"


def test_sequence_restarts_each_fiscal_year(client, world, march_payments, pin_today, center_headers):
    _invoice(world.center, invoice_date=date(2026, 3, 12), cycle=1, period_start=date(2026, 3, 1))
    _invoice(world.center, invoice_date=date(2026, 3, 22), cycle=2, period_start=date(2026, 3, 11))
    pin_today(GENERATION_DAY)

    invoice = client.post(f"{BASE}/generate", headers=center_headers).get_json()["data"]["invoice"]
    assert invoice["invoice_number"].endswith("/26-27/001")


def test_sequence_counts_earlier_invoices_of_the_same_fiscal_year(client, world, march_payments, pin_today,
                                                                  center_headers):
    _invoice(world.center, invoice_date=date(2026, 4, 1), cycle=2, period_start=date(2026, 3, 11))
    pin_today(GENERATION_DAY)

    invoice = client.post(f"{BASE}/generate", headers=center_headers).get_json()["data"]["invoice"]
    assert invoice["sequence_number"] == 2
    assert invoice["invoice_number"] == "ANNANAGAR/INV/26-27/002"


def test_center_code_falls_back_to_center_fields(client, world, march_payments, pin_today, auth_header):
    world.center_admin.name = None
    world.center_admin.full_name = None
    world.center.center_shortcode = "an-01"
    db.session.commit()
    pin_today(GENERATION_DAY)

    headers = auth_header("center", id=world.center_admin.id, center_id=world.center.center_id)
    invoice = client.post(f"{BASE}/generate", headers=headers).get_json()["data"]["invoice"]
    assert invoice["invoice_number"] == "AN01/INV/26-27/001"


def test_generate_outside_window(client, world, march_payments, pin_today, center_headers):
    pin_today(date(2026, 4, 5))
    res = client.post(f"{BASE}/generate", headers=center_headers)
    assert res.status_code == 400
    assert res.get_json()["error"] == (
        "Invoice for Cycle 1 (Payment Period: 01/04/2026 – 10/04/2026) can only be generated during the "
        "generation period: 11/04/2026 – 13/04/2026"
    )


def test_generate_without_payments(client, world, pin_today, center_headers):
    pin_today(GENERATION_DAY)
    res = client.post(f"{BASE}/generate", headers=center_headers)
    assert res.status_code == 400
    assert res.get_json()["error"] == "No payments available for invoice generation"
    assert CenterInvoice.query.count() == 0


def test_generate_survives_storage_failure(client, world, march_payments, pin_today, center_headers, storage):
    storage.fail_uploads = True
    pin_today(GENERATION_DAY)

    res = client.post(f"{BASE}/generate", headers=center_headers)
    assert res.status_code == 201
    invoice = res.get_json()["data"]["invoice"]
    assert invoice["pdf_url"] is None
    assert CenterInvoiceItem.query.filter_by(invoice_id=invoice["invoice_id"]).count() == 2


def test_center_invoice_listing_newest_first(client, world, center_headers):
    _invoice(world.center, created_at=datetime(2026, 3, 5), invoice_number="A")
    _invoice(world.center, created_at=datetime(2026, 3, 25), invoice_number="B", cycle=2)
    _invoice(world.other_center, invoice_number="C")

    res = client.get(f"{BASE}/", headers=center_headers)
    assert [i["invoice_number"] for i in res.get_json()["data"]] == ["B", "A"]


# -------------------- items access --------------------

def test_invoice_items_access_rules(client, world, auth_header, center_headers):
    inv = _invoice(world.center)
    db.session.add_all([
        CenterInvoiceItem(invoice_id=inv.invoice_id, payment_id="p2", created_at=datetime(2026, 3, 6)),
        CenterInvoiceItem(invoice_id=inv.invoice_id, payment_id="p1", created_at=datetime(2026, 3, 5)),
    ])
    db.session.commit()
    url = f"{BASE}/{inv.invoice_id}/items"

    res = client.get(url, headers=center_headers)
    assert res.status_code == 200
    assert [i["payment_id"] for i in res.get_json()["data"]] == ["p1", "p2"]

    other = auth_header("center", center_id=world.other_center.center_id)
    assert client.get(url, headers=other).status_code == 403

    assert client.get(url, headers=auth_header("state", id=world.state_admin.id)).status_code == 200
    res = client.get(url, headers=auth_header("state", id=world.other_state_admin.id))
    assert res.status_code == 403
    assert client.get(url, headers=auth_header("state", id="nobody")).status_code == 404

    assert client.get(url, headers=auth_header("financial")).status_code == 200
    assert client.get(f"{BASE}/missing/items", headers=auth_header("financial")).status_code == 404
    assert client.get(url, headers=auth_header("academic")).status_code == 403


# -------------------- review queues --------------------

def test_state_queue_only_shows_own_state(client, world, auth_header):
    mine = _invoice(world.center)
    _invoice(world.other_center)
    _invoice(world.center, status="MF Verified", cycle=2)

    res = client.get(f"{BASE}/state-admin/pending", headers=auth_header("state", id=world.state_admin.id))
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert [i["invoice_id"] for i in data] == [mine.invoice_id]
    assert data[0]["centers"] == {"center_id": world.center.center_id, "center_name": "Anna Nagar Learning Hub"}

    res = client.get(f"{BASE}/state-admin/verified", headers=auth_header("state", id=world.state_admin.id))
    assert [i["status"] for i in res.get_json()["data"]] == ["MF Verified"]

    assert client.get(f"{BASE}/state-admin/pending", headers=auth_header("financial")).status_code == 403
    assert client.get(f"{BASE}/state-admin/pending", headers=auth_header("state", id="nobody")).status_code == 404


def test_state_without_centers_gets_empty_queue(client, world, auth_header):
    world.other_center.state_id = None
    db.session.commit()
    res = client.get(f"{BASE}/state-admin/pending", headers=auth_header("state", id=world.other_state_admin.id))
    assert res.status_code == 200
    assert res.get_json()["data"] == []


def test_finance_and_manager_queues(client, world, auth_header):
    _invoice(world.center, status="MF Verified", created_at=datetime(2026, 3, 1))
    _invoice(world.other_center, status="Finance Accepted", created_at=datetime(2026, 3, 2))
    _invoice(world.center, status="Invoice Paid", cycle=2, created_at=datetime(2026, 3, 3))

    def statuses(path, headers):
        res = client.get(f"{BASE}/{path}", headers=headers)
        assert res.status_code == 200
        return [i["status"] for i in res.get_json()["data"]]

    fin = auth_header("financial")
    assert statuses("finance-admin/verified", fin) == ["MF Verified"]
    assert statuses("finance-admin/accepted", fin) == ["Invoice Paid", "Finance Accepted"]
    assert statuses("manager-admin/accepted", auth_header("manager")) == ["Finance Accepted"]
    assert statuses("manager-admin/paid", auth_header("admin")) == ["Invoice Paid"]

    assert client.get(f"{BASE}/finance-admin/verified", headers=auth_header("admin")).status_code == 403
    assert client.get(f"{BASE}/manager-admin/paid", headers=auth_header("center")).status_code == 403


# -------------------- status machine --------------------

def _patch(client, headers, invoice_id, status, **extra):
    return client.patch(f"{BASE}/{invoice_id}/status", json={"status": status, **extra}, headers=headers)


def test_status_walks_through_review_chain(client, world, auth_header):
    inv = _invoice(world.center)
    state = auth_header("state", id=world.state_admin.id)

    res = _patch(client, state, inv.invoice_id, "MF Verified")
    assert res.status_code == 200
    assert res.get_json()["data"]["status"] == "MF Verified"
    assert res.get_json()["message"] == "Invoice status updated to MF Verified"

    assert _patch(client, auth_header("financial", id="fin-1"), inv.invoice_id, "Finance Accepted",
                  notes="checked").status_code == 200
    assert _patch(client, auth_header("manager", id="mgr-1"), inv.invoice_id, "Invoice Paid").status_code == 200

    history = (
        InvoiceStatusHistory.query.filter_by(invoice_id=inv.invoice_id)
        .order_by(InvoiceStatusHistory.changed_at.asc())
        .all()
    )
    assert [(h.old_status, h.new_status) for h in history] == [
        ("Pending", "MF Verified"),
        ("MF Verified", "Finance Accepted"),
        ("Finance Accepted", "Invoice Paid"),
    ]
    assert history[0].notes == "Status changed by state"
    assert history[1].notes == "checked"
    assert history[1].changed_by == "fin-1"


def test_status_rejections(client, world, auth_header):
    inv = _invoice(world.center)

    res = _patch(client, auth_header("state", id=world.state_admin.id), inv.invoice_id, "Finance Accepted")
    assert res.status_code == 403
    assert res.get_json()["error"] == "Access denied. state cannot set status to Finance Accepted"

    res = _patch(client, auth_header("financial"), inv.invoice_id, "Finance Accepted")
    assert res.status_code == 400
    assert res.get_json()["error"] == "Invalid status transition from Pending to Finance Accepted"

    res = _patch(client, auth_header("financial"), inv.invoice_id, "Pending")
    assert res.status_code == 400

    res = _patch(client, auth_header("state", id=world.state_admin.id), "missing", "MF Verified")
    assert res.status_code == 404


def test_unknown_status_lists_the_settable_chain(client, world, auth_header):
    inv = _invoice(world.center)

    res = _patch(client, auth_header("financial"), inv.invoice_id, "Approved")
    assert res.status_code == 400
    assert res.get_json()["error"] == (
        "Invalid status. Must be one of: MF Verified, Finance Accepted, Invoice Paid"
    )
    assert INVOICE_STATUSES[0] == "Pending"


def test_paid_invoice_gets_watermarked(client, world, auth_header, storage):
    inv = _invoice(world.center, status="Finance Accepted", pdf_url="https://storage.test/old.pdf")
    path = safe_storage_path(inv.invoice_id)
    original = render_invoice_pdf({"invoice_id": inv.invoice_id, "items": []})
    storage.files[path] = original

    res = _patch(client, auth_header("admin"), inv.invoice_id, "Invoice Paid")
    assert res.status_code == 200
    assert storage.files[path] != original
    assert storage.files[path].startswith(b"%PDF")
    assert res.get_json()["data"]["pdf_url"].startswith(f"https://storage.test/invoices/{path}?v=")


def test_paid_status_sticks_when_watermark_fails(client, world, auth_header):
    inv = _invoice(world.center, status="Finance Accepted", pdf_url="https://storage.test/gone.pdf")

    res = _patch(client, auth_header("manager"), inv.invoice_id, "Invoice Paid")
    assert res.status_code == 200
    db.session.expire_all()
    invoice = db.session.get(CenterInvoice, inv.invoice_id)
    assert invoice.status == "Invoice Paid"
    assert invoice.pdf_url == "https://storage.test/gone.pdf"
