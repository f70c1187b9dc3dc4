# financial_service/models/enrollment.py
from ..extensions import db
from ._base import new_id


class Enrollment(db.Model):
    __tablename__ = "enrollment"

    enrollment_id = db.Column(db.String(36), primary_key=True, default=new_id)
    student_id = db.Column("student", db.String(36), db.ForeignKey("students.student_id", ondelete="CASCADE"), index=True)
    batch_id = db.Column("batch", db.String(36), db.ForeignKey("batches.batch_id", ondelete="CASCADE"), index=True)

    # course access flag; flipped off by the daily expiry sweep
    status = db.Column(db.Boolean, nullable=False, default=False)
    end_date = db.Column(db.Date, nullable=True, index=True)
    # lifelong access (full payment or final EMI); never expired
    is_permanent = db.Column(db.Boolean, nullable=True)

    student = db.relationship("Student", backref=db.backref("enrollments", passive_deletes=True))
    batch = db.relationship("Batch", backref=db.backref("enrollments", passive_deletes=True))

    def __repr__(self):
        return f"<Enrollment id={self.enrollment_id} status={self.status} end={self.end_date}>"
