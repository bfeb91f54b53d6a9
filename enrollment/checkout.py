"""
Reservation initiator.

Gives a fast "section full" answer before sending the buyer to Stripe. The
capacity read here takes no lock and may be stale; the reconciler re-checks
under the section lock once money has actually moved.
"""
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Optional

import stripe

from models.course_setting import load_settings
from models.enrollment import Plan
from enrollment import ledger, sections
from enrollment.errors import CheckoutUnavailable, ConfigurationError, EnrollmentClosed, SectionFull
from utils.stripe_gateway import StripeCheckoutGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSettings:
    secret_key: Optional[str] = None
    price_full: Optional[str] = None
    price_deposit: Optional[str] = None
    site_url: Optional[str] = None
    idempotency_window_seconds: int = 10

    @classmethod
    def from_config(cls, config) -> "CheckoutSettings":
        return cls(
            secret_key=config.get("STRIPE_SECRET_KEY"),
            price_full=config.get("STRIPE_PRICE_FULL"),
            price_deposit=config.get("STRIPE_PRICE_DEPOSIT"),
            site_url=config.get("SITE_URL"),
            idempotency_window_seconds=int(config.get("CHECKOUT_IDEMPOTENCY_WINDOW_SECONDS", 10)),
        )

    def price_for(self, plan: str) -> str:
        price = self.price_full if plan == Plan.FULL else self.price_deposit
        if not price:
            raise ConfigurationError(f"Missing STRIPE_PRICE_{plan} setting")
        if not self.secret_key:
            raise ConfigurationError("Missing STRIPE_SECRET_KEY setting")
        if not self.site_url:
            raise ConfigurationError("Missing SITE_URL setting")
        return price


@dataclass
class CheckoutHandle:
    session_id: str
    client_secret: str
    idempotency_key: str


def idempotency_token(client_key: str, section_id: str, plan: str, now: float, window_seconds: int = 10) -> str:
    """Same buyer, section and plan inside one time bucket -> same token."""
    bucket = int(now // window_seconds)
    raw = f"{client_key}|{section_id}|{plan}|{bucket}"
    return "checkout_" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:40]


class ReservationInitiator:
    def __init__(self, settings: CheckoutSettings, gateway=None, clock=time.time):
        self.settings = settings
        self.gateway = gateway or StripeCheckoutGateway(settings.secret_key)
        self.clock = clock

    def initiate(self, section_id: str, plan, client_key: str = "anonymous") -> CheckoutHandle:
        plan = ledger.normalize_plan(plan)
        price = self.settings.price_for(plan)

        section = sections.get_section(section_id)
        if not section.has_capacity:
            raise SectionFull()

        course_settings = load_settings()
        if course_settings.get("enrollment.enabled", "true") != "true":
            raise EnrollmentClosed()
        course_name = course_settings.get("course.name")

        key = idempotency_token(client_key, section.id, plan, self.clock(), self.settings.idempotency_window_seconds)
        params = {
            "mode": "payment",
            "ui_mode": "embedded",
            "customer_creation": "always",
            "line_items": [{"price": price, "quantity": 1}],
            "metadata": {
                "sectionId": section.id,
                "plan": plan.lower(),
                "course": course_name,
            },
            "payment_intent_data": {
                "metadata": {"course": course_name, "type": plan.lower(), "sectionId": section.id},
                "description": f"{course_name} - {section.label}",
            },
            "return_url": self.settings.site_url.rstrip("/") + "/success?session_id={CHECKOUT_SESSION_ID}",
        }
        if plan == Plan.DEPOSIT:
            params["payment_intent_data"]["setup_future_usage"] = "off_session"

        try:
            session = self.gateway.create_session(params, idempotency_key=key)
        except stripe.StripeError as exc:
            logger.error("Checkout session creation failed for section %s: %s", section.id, exc)
            raise CheckoutUnavailable() from exc

        logger.info("Checkout session %s started for section %s (%s)", session["id"], section.id, plan)
        return CheckoutHandle(
            session_id=session["id"],
            client_secret=session.get("client_secret"),
            idempotency_key=key,
        )
