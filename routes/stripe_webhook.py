import stripe
from flask import Blueprint, request, jsonify, current_app

from enrollment import make_reconciler, Outcome
from enrollment.errors import InvalidPlan, SectionNotFound, TransactionFailed
from utils.audit import log_event_quietly
from utils.stripe_gateway import construct_event

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


def _id_of(value):
    # Stripe sends either the id string or an expanded object
    if value is None or isinstance(value, str):
        return value
    return value.get("id")


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.get_data()

    if not endpoint_secret:
        current_app.logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        return jsonify(error="Server configuration error"), 500
    if not sig_header:
        return jsonify(error="Missing stripe-signature header"), 400

    try:
        event = construct_event(payload, sig_header, endpoint_secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        current_app.logger.warning("Webhook signature verification failed: %s", exc)
        return jsonify(error="Invalid webhook signature"), 400

    if event.get("type") != "checkout.session.completed":
        return jsonify(received=True), 200

    session = event["data"]["object"]
    meta = session.get("metadata") or {}
    section_id = meta.get("sectionId")
    customer_id = _id_of(session.get("customer"))

    if not section_id or not customer_id or not session.get("payment_intent"):
        current_app.logger.info("Ignoring checkout session %s without enrollment data", session.get("id"))
        return jsonify(received=True), 200

    email = (session.get("customer_details") or {}).get("email")
    reconciler = make_reconciler(current_app.config)
    try:
        result = reconciler.reconcile(
            external_session_id=session["id"],
            section_id=section_id,
            plan=meta.get("plan") or "full",
            email=email,
            customer_id=customer_id,
        )
    except (SectionNotFound, InvalidPlan) as exc:
        # Redelivery cannot fix this; acknowledge and leave it for manual follow-up.
        current_app.logger.error(
            "Payment %s for section %s could not be recorded (%s), manual follow-up needed",
            session["id"], section_id, exc.code,
        )
        log_event_quietly(
            "ENROLLMENT_UNRECORDED", actor="stripe", entity="checkout_session", entity_id=session["id"],
            metadata={"section_id": section_id, "reason": exc.code},
        )
        return jsonify(received=True), 200
    except TransactionFailed:
        return jsonify(error="Could not record enrollment, retry later"), 503

    if result.outcome is not Outcome.ALREADY_PROCESSED:
        action = "ENROLLMENT_CONFIRMED" if result.outcome is Outcome.CONFIRMED else "ENROLLMENT_WAITLISTED_REFUND_NEEDED"
        log_event_quietly(
            action, actor="stripe", entity="enrollment", entity_id=result.enrollment_id,
            metadata={
                "stripe_session_id": session["id"],
                "section_id": result.section_id,
                "waitlist_position": result.waitlist_position,
            },
        )

    return jsonify(received=True, outcome=result.outcome.value), 200
