from ..extensions import db
from ._base import new_id


class Course(db.Model):
    __tablename__ = "courses"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    course_name = db.Column(db.String(200), nullable=False)
    mode = db.Column(db.String(40))

    def __repr__(self):
        return f"<Course id={self.id} name={self.course_name!r}>"


class Batch(db.Model):
    __tablename__ = "batches"

    batch_id = db.Column(db.String(36), primary_key=True, default=new_id)
    batch_name = db.Column(db.String(200))
    center_id = db.Column("center", db.String(36), db.ForeignKey("centers.center_id", ondelete="SET NULL"), index=True)
    course_id = db.Column("course", db.String(36), db.ForeignKey("courses.id", ondelete="SET NULL"), index=True)

    center = db.relationship("Center", backref=db.backref("batches", passive_deletes=True))
    course = db.relationship("Course", backref=db.backref("batches", passive_deletes=True))

    def __repr__(self):
        return f"<Batch id={self.batch_id} name={self.batch_name!r}>"
