from flask import Blueprint, request, jsonify, current_app

from enrollment import make_initiator, sections
from enrollment.ledger import find_by_session
from security.rate_limit import rate_limited, client_ip
from utils.audit import log_event

checkout_bp = Blueprint("checkout", __name__)


@checkout_bp.post("/checkout")
@rate_limited("checkout")
def start_checkout():
    data = request.get_json(silent=True) or {}
    section_id = data.get("sectionId")
    plan = data.get("plan")

    if not section_id or not isinstance(section_id, str):
        return jsonify(error="Missing or invalid sectionId", code="InvalidRequest"), 400

    initiator = make_initiator(current_app.config)
    handle = initiator.initiate(section_id, plan, client_key=client_ip())

    log_event(
        "CHECKOUT_SESSION_CREATED",
        entity="section",
        entity_id=section_id,
        metadata={"stripe_session_id": handle.session_id, "plan": str(plan).upper()},
    )
    return jsonify(clientSecret=handle.client_secret, sessionId=handle.session_id), 200


@checkout_bp.get("/sections")
@rate_limited("sections")
def list_sections():
    return jsonify([s.to_dict() for s in sections.list_sections()]), 200


@checkout_bp.get("/enrollment-status")
@rate_limited("enrollment-status")
def enrollment_status():
    session_id = request.args.get("session_id")
    if not session_id:
        return jsonify(found=False), 400

    enrollment = find_by_session(session_id)
    if not enrollment:
        # webhook may not have landed yet; the success page polls
        return jsonify(found=False), 200

    return jsonify(
        found=True,
        status=enrollment.payment_status,
        waitlistPosition=enrollment.waitlist_position,
        section=enrollment.section.label,
    ), 200
