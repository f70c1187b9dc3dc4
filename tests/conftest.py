from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from financial_service import create_app
from financial_service.auth_utils import mint_access
from financial_service.extensions import db
from financial_service.models import (
    Batch,
    Center,
    Course,
    Enrollment,
    State,
    Student,
    StudentCoursePayment,
    User,
)

TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test-secret",
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "JWT_ISS": None,
    "TIMEZONE": "Asia/Kolkata",
    "INVOICE_TEMPLATE": None,
    "INVOICE_FONT": None,
    "LOG_LEVEL": "WARNING",
    "LOG_FORMAT": "simple",
}


class FakeStorage:
    """In-memory stand-in for the Supabase invoice bucket."""

    def __init__(self, bucket: str = "invoices"):
        self.bucket = bucket
        self.files: Dict[str, bytes] = {}
        self.fail_uploads = False
        self.buckets: List[str] = []

    def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> None:
        if self.fail_uploads:
            raise RuntimeError("storage unavailable")
        self.files[path] = data

    def download(self, path: str) -> bytes:
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def remove(self, paths: List[str]) -> None:
        for p in paths:
            self.files.pop(p, None)

    def list(self, folder: str = "", search: Optional[str] = None) -> List[Dict[str, Any]]:
        prefix = f"{folder}/" if folder else ""
        names = [p[len(prefix):] for p in self.files if p.startswith(prefix)]
        return [{"name": n} for n in names if not search or search in n]

    def public_url(self, path: str) -> str:
        return f"https://storage.test/{self.bucket}/{path}"

    def ensure_bucket(self) -> bool:
        if self.bucket in self.buckets:
            return False
        self.buckets.append(self.bucket)
        return True


@pytest.fixture
def app():
    app = create_app(TEST_CONFIG)
    app.extensions["invoice_storage"] = FakeStorage()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(app) -> FakeStorage:
    return app.extensions["invoice_storage"]


@pytest.fixture
def auth_header(app):
    def make(role: str, **claims) -> Dict[str, str]:
        token = mint_access({"id": claims.pop("id", f"{role}-user"), "role": role, **claims})
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def world(app):
    """
    Two states, a center in each, one batch run by the first center and three
    students: one direct, one referred by the first center, one unrelated.
    """
    center_admin = User(name="annanagar", full_name="Anna Nagar Admin", role="center")
    state_admin = User(name="tn-admin", full_name="Tamil Nadu Admin", role="state")
    other_state_admin = User(name="ka-admin", role="state")
    db.session.add_all([center_admin, state_admin, other_state_admin])
    db.session.flush()

    tn = State(state_name="Tamil Nadu", state_admin=state_admin.id)
    ka = State(state_name="Karnataka", state_admin=other_state_admin.id)
    db.session.add_all([tn, ka])
    db.session.flush()

    center = Center(center_name="Anna Nagar Learning Hub", center_admin=center_admin.id, state_id=tn.state_id)
    other_center = Center(center_name="Jayanagar Centre", state_id=ka.state_id)
    db.session.add_all([center, other_center])
    db.session.flush()

    course = Course(course_name="Full Stack Python", mode=None)
    db.session.add(course)
    db.session.flush()
    batch = Batch(batch_name="FSP-Jan", center_id=center.center_id, course_id=course.id)
    db.session.add(batch)
    db.session.flush()

    direct = Student(name="Priya", email="priya@example.com", phone="900", registration_number="REG001",
                     center_id=center.center_id)
    referred = Student(name="Arun", email="arun@example.com", registration_number="REG002",
                       center_id=other_center.center_id, is_referred=True,
                       referred_by_center=center.center_id)
    unrelated = Student(name="Meena", registration_number="REG003", center_id=other_center.center_id)
    db.session.add_all([direct, referred, unrelated])
    db.session.flush()

    enrollments = {}
    for key, s in (("direct", direct), ("referred", referred), ("unrelated", unrelated)):
        e = Enrollment(student_id=s.student_id, batch_id=batch.batch_id, status=False)
        db.session.add(e)
        enrollments[key] = e
    db.session.commit()

    return SimpleNamespace(
        center_admin=center_admin,
        state_admin=state_admin,
        other_state_admin=other_state_admin,
        state=tn,
        other_state=ka,
        center=center,
        other_center=other_center,
        course=course,
        batch=batch,
        direct=direct,
        referred=referred,
        unrelated=unrelated,
        enrollments=enrollments,
    )


@pytest.fixture
def make_payment(app):
    counter = {"n": 0}

    def make(enrollment: Optional[Enrollment], created_at: datetime, *, fees: float = 1180.0,
             payment_type: str = "full", approved: bool = True, **fields) -> StudentCoursePayment:
        counter["n"] += 1
        p = StudentCoursePayment(
            payment_id=fields.pop("payment_id", f"pay_{counter['n']:04d}"),
            enrollment_id=enrollment.enrollment_id if enrollment else None,
            student_name=fields.pop("student_name", "Student"),
            course_name=fields.pop("course_name", "Full Stack Python"),
            original_fees=fees,
            discount_percentage=fields.pop("discount_percentage", 0),
            final_fees=fees,
            payment_type=payment_type,
            status=approved,
            created_at=created_at,
            **fields,
        )
        db.session.add(p)
        db.session.commit()
        return p

    return make


@pytest.fixture
def pin_today(monkeypatch):
    """Pin `local_today` in the modules that read it."""
    def pin(d: date):
        for target in (
            "financial_service.blueprints.approvals.local_today",
            "financial_service.blueprints.invoices.local_today",
            "financial_service.blueprints.revenue.local_today",
            "financial_service.commands.local_today",
        ):
            monkeypatch.setattr(target, lambda d=d: d)
    return pin
