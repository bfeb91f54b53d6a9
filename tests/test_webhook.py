import pytest
import stripe
from sqlalchemy.exc import OperationalError

import routes.stripe_webhook as webhook_module
from enrollment import sections
from models.audit_log import AuditLog
from models.enrollment import Enrollment, PaymentStatus

HEADERS = {"Stripe-Signature": "t=1,v1=test"}


def completed_event(session_id, section_id, plan="full", email="buyer@example.test"):
    return {
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "customer": "cus_123",
                "payment_intent": "pi_123",
                "customer_details": {"email": email},
                "metadata": {"sectionId": section_id, "plan": plan},
            },
        },
    }


@pytest.fixture
def deliver(client, monkeypatch):
    def _deliver(event):
        monkeypatch.setattr(webhook_module, "construct_event", lambda payload, sig, secret: event)
        return client.post("/webhooks/stripe", data=b"{}", headers=HEADERS)
    return _deliver


def test_completed_checkout_confirms_a_seat(deliver, make_section):
    section = make_section(max_capacity=2)

    resp = deliver(completed_event("cs_hook_1", section.id))

    assert resp.status_code == 200
    assert resp.get_json() == {"received": True, "outcome": "CONFIRMED"}
    row = Enrollment.query.filter_by(external_session_id="cs_hook_1").one()
    assert row.payment_status == PaymentStatus.COMPLETED
    assert row.email == "buyer@example.test"
    assert row.external_customer_id == "cus_123"
    assert AuditLog.query.filter_by(action="ENROLLMENT_CONFIRMED").count() == 1


def test_redelivery_is_acknowledged_without_double_counting(deliver, make_section):
    section = make_section(max_capacity=2)
    event = completed_event("cs_hook_dup", section.id)

    deliver(event)
    resp = deliver(event)

    assert resp.get_json()["outcome"] == "ALREADY_PROCESSED"
    assert sections.get_section(section.id).enrolled_count == 1
    assert AuditLog.query.filter_by(action="ENROLLMENT_CONFIRMED").count() == 1


def test_payment_for_a_full_section_lands_on_the_waitlist(deliver, make_section):
    section = make_section(max_capacity=1, enrolled_count=1)

    resp = deliver(completed_event("cs_hook_late", section.id, plan="deposit"))

    assert resp.get_json()["outcome"] == "WAITLISTED"
    row = Enrollment.query.filter_by(external_session_id="cs_hook_late").one()
    assert row.waitlist_position == 1
    assert AuditLog.query.filter_by(action="ENROLLMENT_WAITLISTED_REFUND_NEEDED").count() == 1


def test_unknown_section_is_acknowledged_and_audited(deliver):
    resp = deliver(completed_event("cs_hook_orphan", "gone"))

    assert resp.status_code == 200
    assert Enrollment.query.count() == 0
    audit = AuditLog.query.filter_by(action="ENROLLMENT_UNRECORDED").one()
    assert audit.entity_id == "cs_hook_orphan"


def test_other_events_and_incomplete_sessions_are_ignored(deliver, make_section):
    section = make_section()

    assert deliver({"type": "payment_intent.created", "data": {"object": {}}}).get_json() == {"received": True}

    event = completed_event("cs_hook_nocust", section.id)
    event["data"]["object"]["customer"] = None
    assert deliver(event).get_json() == {"received": True}

    assert Enrollment.query.count() == 0


def test_expanded_customer_object_is_accepted(deliver, make_section):
    section = make_section()
    event = completed_event("cs_hook_expanded", section.id)
    event["data"]["object"]["customer"] = {"id": "cus_expanded", "object": "customer"}

    deliver(event)

    assert Enrollment.query.one().external_customer_id == "cus_expanded"


def test_signature_checks(client, monkeypatch):
    resp = client.post("/webhooks/stripe", data=b"{}")
    assert resp.status_code == 400

    def reject(payload, sig, secret):
        raise stripe.SignatureVerificationError("No signatures found", sig)

    monkeypatch.setattr(webhook_module, "construct_event", reject)
    resp = client.post("/webhooks/stripe", data=b"{}", headers=HEADERS)
    assert resp.status_code == 400


def test_missing_webhook_secret_is_a_server_error(app, client):
    app.config["STRIPE_WEBHOOK_SECRET"] = None

    resp = client.post("/webhooks/stripe", data=b"{}", headers=HEADERS)

    assert resp.status_code == 500


def test_lock_exhaustion_asks_stripe_to_retry(deliver, make_section, monkeypatch):
    section = make_section()

    def always_locked(section_id):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(sections, "lock_section", always_locked)

    resp = deliver(completed_event("cs_hook_busy", section.id))

    assert resp.status_code == 503
    assert Enrollment.query.count() == 0
