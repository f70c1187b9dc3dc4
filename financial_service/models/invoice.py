# financial_service/models/invoice.py
from ..extensions import db
from ._base import new_id

INVOICE_STATUSES = ("Pending", "MF Verified", "Finance Accepted", "Invoice Paid")


class CenterInvoice(db.Model):
    __tablename__ = "center_invoices"

    invoice_id = db.Column(db.String(36), primary_key=True, default=new_id)
    center_id = db.Column(db.String(36), db.ForeignKey("centers.center_id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_number = db.Column(db.String(80), index=True)
    invoice_date = db.Column(db.Date, nullable=False, index=True)

    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    cycle_number = db.Column(db.SmallInteger, nullable=False)

    total_net_amount = db.Column(db.Numeric(14, 4, asdecimal=False), nullable=False, default=0)
    total_center_share = db.Column(db.Numeric(14, 4, asdecimal=False), nullable=False, default=0)

    status = db.Column(db.String(32), nullable=False, default="Pending")
    pdf_url = db.Column(db.String(500))
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    center = db.relationship("Center", backref=db.backref("invoices", passive_deletes=True))

    def __repr__(self):
        return f"<CenterInvoice {self.invoice_number or self.invoice_id} {self.status}>"


class CenterInvoiceItem(db.Model):
    __tablename__ = "center_invoice_items"

    item_id = db.Column(db.String(36), primary_key=True, default=new_id)
    invoice_id = db.Column(db.String(36), db.ForeignKey("center_invoices.invoice_id", ondelete="CASCADE"), nullable=False, index=True)
    # one payment is invoiced at most once
    payment_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    student_id = db.Column(db.String(36))
    student_name = db.Column(db.String(200))
    registration_number = db.Column(db.String(64))
    course_name = db.Column(db.String(200))
    transaction_date = db.Column(db.Date)
    fee_term = db.Column(db.String(32))
    fee_paid = db.Column(db.Numeric(12, 2, asdecimal=False))
    net_amount = db.Column(db.Numeric(14, 4, asdecimal=False))
    center_share = db.Column(db.Numeric(14, 4, asdecimal=False))
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    invoice = db.relationship("CenterInvoice", backref=db.backref("items", passive_deletes=True))

    def __repr__(self):
        return f"<InvoiceItem invoice={self.invoice_id} payment={self.payment_id}>"


class InvoiceStatusHistory(db.Model):
    __tablename__ = "invoice_status_history"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    invoice_id = db.Column(db.String(36), db.ForeignKey("center_invoices.invoice_id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = db.Column(db.String(32))
    new_status = db.Column(db.String(32), nullable=False)
    changed_by = db.Column(db.String(36))
    notes = db.Column(db.String(500))
    changed_at = db.Column(db.DateTime, nullable=False)

    def __repr__(self):
        return f"<InvoiceStatusHistory {self.invoice_id} {self.old_status}->{self.new_status}>"
