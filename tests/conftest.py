# tests/conftest.py

from datetime import datetime, timedelta

import pytest
from sqlalchemy import text

from app import create_app
from config import Config
from enrollment import sections
from models import db
from models.enrollment import Enrollment, PaymentStatus, Plan
from models.section import Section, SectionStatus
from security.password import hash_password

ADMIN_PASSWORD = "correct horse battery staple"
ADMIN_PASSWORD_HASH = hash_password(ADMIN_PASSWORD, rounds=4)


@pytest.fixture
def app(tmp_path):
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "ledger_test.db")
        STRIPE_SECRET_KEY = "sk_test_123"
        STRIPE_WEBHOOK_SECRET = "whsec_test"
        STRIPE_PRICE_FULL = "price_full_test"
        STRIPE_PRICE_DEPOSIT = "price_deposit_test"
        SITE_URL = "https://courses.example.test"
        ADMIN_PASSWORD_HASH = ADMIN_PASSWORD_HASH
        LEDGER_RETRY_BACKOFF_SECONDS = 0
        RATE_LIMIT_ENABLED = False
        SMTP_HOST = None

    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_section(app):
    def _make(label="Section A", max_capacity=5, enrolled_count=0):
        section = Section(
            label=label,
            max_capacity=max_capacity,
            enrolled_count=enrolled_count,
            status=SectionStatus.FULL if enrolled_count >= max_capacity else SectionStatus.OPEN,
        )
        db.session.add(section)
        db.session.commit()
        return section
    return _make


@pytest.fixture
def add_waitlisted(app):
    """Insert WAITLISTED rows directly, bypassing the reconciler."""
    counter = {"n": 0}

    def _add(section, position, email=None, created_at=None):
        counter["n"] += 1
        n = counter["n"]
        row = Enrollment(
            section_id=section.id,
            email=email or f"waiting{n}@example.test",
            plan=Plan.FULL,
            payment_status=PaymentStatus.WAITLISTED,
            external_session_id=f"cs_test_waitlisted_{n}",
            waitlist_position=position,
            created_at=created_at or datetime(2026, 1, 1) + timedelta(minutes=n),
        )
        db.session.add(row)
        db.session.commit()
        return row
    return _add


class AdminClient:
    """Test client logged in as admin that echoes the CSRF cookie back."""

    def __init__(self, client):
        self.client = client
        resp = client.post("/admin/login", json={"password": ADMIN_PASSWORD})
        assert resp.status_code == 200
        self.csrf = client.get_cookie("seatledger_csrf").value

    def get(self, *args, **kwargs):
        return self.client.get(*args, **kwargs)

    def post(self, *args, **kwargs):
        kwargs.setdefault("headers", {})["X-CSRF-Token"] = self.csrf
        return self.client.post(*args, **kwargs)

    def patch(self, *args, **kwargs):
        kwargs.setdefault("headers", {})["X-CSRF-Token"] = self.csrf
        return self.client.patch(*args, **kwargs)

    def put(self, *args, **kwargs):
        kwargs.setdefault("headers", {})["X-CSRF-Token"] = self.csrf
        return self.client.put(*args, **kwargs)

    def delete(self, *args, **kwargs):
        kwargs.setdefault("headers", {})["X-CSRF-Token"] = self.csrf
        return self.client.delete(*args, **kwargs)


@pytest.fixture
def admin(client):
    return AdminClient(client)


@pytest.fixture
def delete_before_lock(monkeypatch):
    """Make the next section lock wait behind another connection that deletes an enrollment."""
    def _arm(enrollment_id):
        real_lock = sections.lock_section

        def lock_after_delete(section_id):
            with db.engine.begin() as conn:
                conn.execute(text("DELETE FROM enrollments WHERE id = :id"), {"id": enrollment_id})
            monkeypatch.setattr(sections, "lock_section", real_lock)
            return real_lock(section_id)

        monkeypatch.setattr(sections, "lock_section", lock_after_delete)
    return _arm
