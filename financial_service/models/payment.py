# financial_service/models/payment.py
from ..extensions import db
from ._base import new_id


class StudentCoursePayment(db.Model):
    __tablename__ = "student_course_payment"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    # gateway-side identifier; what the dashboard and invoice items refer to
    payment_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    order_id = db.Column(db.String(64))
    bank_rrn = db.Column(db.String(64))

    enrollment_id = db.Column(db.String(36), db.ForeignKey("enrollment.enrollment_id", ondelete="SET NULL"), index=True)
    student_name = db.Column(db.String(200))
    course_name = db.Column(db.String(200))

    original_fees = db.Column(db.Numeric(12, 2, asdecimal=False))
    discount_percentage = db.Column(db.Numeric(5, 2, asdecimal=False))
    final_fees = db.Column(db.Numeric(12, 2, asdecimal=False))

    payment_type = db.Column(db.String(16))  # "full" | "emi"
    emi_duration = db.Column(db.Integer)
    current_emi = db.Column(db.Integer)
    course_duration = db.Column(db.Integer)

    status = db.Column(db.Boolean, nullable=False, default=False)  # approved?
    approved_at = db.Column(db.DateTime)
    next_emi_due_date = db.Column(db.Date)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    enrollment = db.relationship("Enrollment", backref=db.backref("payments", passive_deletes=True))

    def __repr__(self):
        return f"<Payment {self.payment_id} {self.payment_type} {self.final_fees} approved={self.status}>"


class StudentPaymentLock(db.Model):
    __tablename__ = "student_payment_lock"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    register_number = db.Column(db.String(64), nullable=False, index=True)
    batch_id = db.Column(db.String(36), nullable=False, index=True)
    payment_type = db.Column(db.String(16))
    locked_at = db.Column(db.DateTime)

    def __repr__(self):
        return f"<PaymentLock reg={self.register_number!r} batch={self.batch_id} {self.payment_type}>"
