from ..extensions import db
from ._base import new_id


class Student(db.Model):
    __tablename__ = "students"

    student_id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200))
    email = db.Column(db.String(190), index=True)
    phone = db.Column(db.String(32))
    registration_number = db.Column(db.String(64), unique=True, index=True)

    # home center ("direct" students of that center)
    center_id = db.Column("center", db.String(36), db.ForeignKey("centers.center_id", ondelete="SET NULL"), index=True)
    is_referred = db.Column(db.Boolean, nullable=False, default=False)
    referred_by_center = db.Column(db.String(36), db.ForeignKey("centers.center_id", ondelete="SET NULL"), index=True)

    center = db.relationship("Center", foreign_keys=[center_id])
    referring_center = db.relationship("Center", foreign_keys=[referred_by_center])

    def __repr__(self):
        return f"<Student id={self.student_id} reg={self.registration_number!r}>"
