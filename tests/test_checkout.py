import pytest
import stripe

from enrollment import make_initiator
from enrollment.checkout import CheckoutSettings, ReservationInitiator, idempotency_token
from enrollment.errors import (
    CheckoutUnavailable, ConfigurationError, EnrollmentClosed, InvalidPlan, SectionFull, SectionNotFound,
)
from models import db
from models.audit_log import AuditLog
from models.course_setting import CourseSetting


class FakeGateway:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def create_session(self, params, idempotency_key):
        self.calls.append((params, idempotency_key))
        if self.error is not None:
            raise self.error
        return {"id": f"cs_test_{len(self.calls)}", "client_secret": f"secret_{len(self.calls)}"}


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def initiator(app, gateway):
    return ReservationInitiator(CheckoutSettings.from_config(app.config), gateway=gateway, clock=lambda: 1000.0)


def test_idempotency_token_is_stable_within_a_bucket():
    first = idempotency_token("1.2.3.4", "sec", "FULL", now=1000.0)
    assert first == idempotency_token("1.2.3.4", "sec", "FULL", now=1009.9)
    assert first.startswith("checkout_")

    assert first != idempotency_token("1.2.3.4", "sec", "FULL", now=1010.0)
    assert first != idempotency_token("1.2.3.4", "sec", "DEPOSIT", now=1000.0)
    assert first != idempotency_token("5.6.7.8", "sec", "FULL", now=1000.0)


def test_initiate_builds_an_embedded_checkout_session(initiator, gateway, make_section):
    section = make_section(max_capacity=5, enrolled_count=2)

    handle = initiator.initiate(section.id, "Full", client_key="1.2.3.4")

    assert handle.session_id == "cs_test_1"
    assert handle.client_secret == "secret_1"
    params, key = gateway.calls[0]
    assert key == handle.idempotency_key == idempotency_token("1.2.3.4", section.id, "FULL", 1000.0)
    assert params["ui_mode"] == "embedded"
    assert params["line_items"] == [{"price": "price_full_test", "quantity": 1}]
    assert params["metadata"]["sectionId"] == section.id
    assert params["metadata"]["plan"] == "full"
    assert params["return_url"] == "https://courses.example.test/success?session_id={CHECKOUT_SESSION_ID}"
    assert "setup_future_usage" not in params["payment_intent_data"]


def test_deposit_plan_saves_the_card(initiator, gateway, make_section):
    section = make_section()

    initiator.initiate(section.id, "deposit")

    params, _ = gateway.calls[0]
    assert params["line_items"][0]["price"] == "price_deposit_test"
    assert params["payment_intent_data"]["setup_future_usage"] == "off_session"


def test_repeated_click_reuses_the_key(initiator, gateway, make_section):
    section = make_section()

    a = initiator.initiate(section.id, "full", client_key="1.2.3.4")
    b = initiator.initiate(section.id, "full", client_key="1.2.3.4")

    assert a.idempotency_key == b.idempotency_key


def test_full_section_is_refused_before_payment(initiator, gateway, make_section):
    section = make_section(max_capacity=2, enrolled_count=2)

    with pytest.raises(SectionFull):
        initiator.initiate(section.id, "full")
    assert gateway.calls == []


def test_unknown_section_and_bad_plan(initiator, gateway, make_section):
    section = make_section()

    with pytest.raises(SectionNotFound):
        initiator.initiate("missing", "full")
    with pytest.raises(InvalidPlan):
        initiator.initiate(section.id, "weekly")
    with pytest.raises(InvalidPlan):
        initiator.initiate(section.id, None)
    assert gateway.calls == []


def test_closed_enrollment_is_refused(initiator, gateway, make_section):
    section = make_section()
    db.session.add(CourseSetting(key="enrollment.enabled", value="false"))
    db.session.commit()

    with pytest.raises(EnrollmentClosed):
        initiator.initiate(section.id, "full")
    assert gateway.calls == []


def test_missing_price_is_a_configuration_error(app, gateway, make_section):
    section = make_section()
    settings = CheckoutSettings(secret_key="sk_test", price_full=None, price_deposit="p", site_url="https://x.test")

    with pytest.raises(ConfigurationError) as excinfo:
        ReservationInitiator(settings, gateway=gateway).initiate(section.id, "full")

    assert "STRIPE_PRICE_FULL" in excinfo.value.detail
    assert "STRIPE_PRICE_FULL" not in str(excinfo.value)


def test_stripe_failure_becomes_checkout_unavailable(app, make_section):
    section = make_section()
    failing = FakeGateway(error=stripe.APIConnectionError("network down"))
    initiator = make_initiator(app.config, gateway=failing)

    with pytest.raises(CheckoutUnavailable):
        initiator.initiate(section.id, "full")


# ---------- HTTP ----------
def test_checkout_route_returns_client_secret(client, make_section, monkeypatch):
    section = make_section()
    seen = {}

    def fake_create(**kwargs):
        seen.update(kwargs)
        return {"id": "cs_test_route", "client_secret": "secret_route"}

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    resp = client.post("/checkout", json={"sectionId": section.id, "plan": "full"},
                       headers={"X-Forwarded-For": "9.9.9.9"})

    assert resp.status_code == 200
    assert resp.get_json() == {"clientSecret": "secret_route", "sessionId": "cs_test_route"}
    assert seen["api_key"] == "sk_test_123"
    assert seen["idempotency_key"].startswith("checkout_")
    assert AuditLog.query.filter_by(action="CHECKOUT_SESSION_CREATED").count() == 1


def test_checkout_route_maps_ledger_errors(client, make_section):
    full = make_section(max_capacity=1, enrolled_count=1)

    resp = client.post("/checkout", json={"sectionId": full.id, "plan": "full"})
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "SectionFull"

    resp = client.post("/checkout", json={"sectionId": full.id, "plan": "yearly"})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "InvalidPlan"

    resp = client.post("/checkout", json={"plan": "full"})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "InvalidRequest"


def test_checkout_route_hides_configuration_detail(app, client, make_section):
    section = make_section()
    app.config["STRIPE_PRICE_DEPOSIT"] = None

    resp = client.post("/checkout", json={"sectionId": section.id, "plan": "deposit"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Server configuration error", "code": "ConfigurationError"}


def test_public_section_listing_and_status(client, make_section, add_waitlisted):
    section = make_section(label="Section A", max_capacity=1, enrolled_count=1)
    add_waitlisted(section, 1)

    listing = client.get("/sections").get_json()
    assert listing == [{
        "id": section.id, "label": "Section A", "maxCapacity": 1, "enrolledCount": 1, "status": "FULL",
    }]

    status = client.get("/enrollment-status?session_id=cs_test_waitlisted_1").get_json()
    assert status == {"found": True, "status": "WAITLISTED", "waitlistPosition": 1, "section": "Section A"}

    assert client.get("/enrollment-status?session_id=cs_unknown").get_json() == {"found": False}
    assert client.get("/enrollment-status").status_code == 400


def test_rate_limit_answers_429_with_retry_after(app, client):
    app.config["RATE_LIMIT_ENABLED"] = True
    app.config["RATE_LIMITS"] = {"sections": 2}

    codes = [client.get("/sections").status_code for _ in range(3)]

    assert codes == [200, 200, 429]
    resp = client.get("/sections")
    assert int(resp.headers["Retry-After"]) >= 1
