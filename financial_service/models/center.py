# financial_service/models/center.py
from ..extensions import db
from ._base import new_id


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(120))
    full_name = db.Column(db.String(200))
    role = db.Column(db.String(32))

    def __repr__(self):
        return f"<User id={self.id} name={self.name!r} role={self.role}>"


class State(db.Model):
    __tablename__ = "states"

    state_id = db.Column(db.String(36), primary_key=True, default=new_id)
    state_name = db.Column(db.String(120), nullable=False)
    state_admin = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), index=True)

    def __repr__(self):
        return f"<State id={self.state_id} name={self.state_name!r}>"


class Center(db.Model):
    __tablename__ = "centers"

    center_id = db.Column(db.String(36), primary_key=True, default=new_id)
    center_name = db.Column(db.String(200), nullable=False)
    center_admin = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), index=True)
    state_id = db.Column("state", db.String(36), db.ForeignKey("states.state_id", ondelete="SET NULL"), index=True)

    # optional short identifiers used for invoice numbering
    center_username = db.Column(db.String(80))
    center_shortcode = db.Column(db.String(40))
    center_code = db.Column(db.String(40))

    state = db.relationship("State", backref=db.backref("centers", passive_deletes=True))

    def __repr__(self):
        return f"<Center id={self.center_id} name={self.center_name!r}>"
