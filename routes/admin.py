from flask import Blueprint, jsonify, request, current_app

from enrollment import make_waitlist, sections
from models.course_setting import load_settings, reset_settings, save_settings
from security.csrf import issue_csrf_token, clear_csrf_token
from security.password import verify_admin_password
from security.rate_limit import rate_limited
from security.session import create_admin_session, revoke_admin_session
from utils.audit import log_event, log_event_quietly
from utils.auth_context import admin_required

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


# ---------- session ----------
@admin_bp.post("/login")
@rate_limited("admin-login")
def login():
    data = request.get_json(silent=True) or {}
    password = data.get("password") or ""

    if not verify_admin_password(password, current_app.config.get("ADMIN_PASSWORD_HASH")):
        log_event("ADMIN_LOGIN_FAIL")
        return jsonify(error="Invalid password"), 401

    raw_token = create_admin_session()
    resp = jsonify(success=True)
    resp.set_cookie(
        current_app.config.get("ADMIN_COOKIE_NAME", "seatledger_admin"),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Strict"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 86400),
        path="/",
    )
    issue_csrf_token(resp)
    log_event("ADMIN_LOGIN_SUCCESS", actor="admin")
    return resp, 200


@admin_bp.post("/logout")
@admin_required
def logout():
    cookie_name = current_app.config.get("ADMIN_COOKIE_NAME", "seatledger_admin")
    revoke_admin_session(request.cookies.get(cookie_name))

    resp = jsonify(success=True)
    resp.delete_cookie(cookie_name, path="/")
    clear_csrf_token(resp)
    log_event("ADMIN_LOGOUT", actor="admin")
    return resp, 200


# ---------- sections ----------
@admin_bp.get("/sections")
@admin_required
def list_sections():
    return jsonify([s.to_dict() for s in sections.list_sections()]), 200


@admin_bp.post("/sections")
@admin_required
def create_section():
    data = request.get_json(silent=True) or {}
    section = sections.create_section(data.get("label"), data.get("maxCapacity"))
    log_event("SECTION_CREATE", actor="admin", entity="section", entity_id=section.id,
              metadata={"label": section.label, "max_capacity": section.max_capacity})
    return jsonify(section.to_dict()), 201


# ---------- course settings ----------
def _setting_value(value):
    # booleans are stored the way load_settings() readers compare them: "true" / "false"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


@admin_bp.get("/settings")
@admin_required
def get_settings():
    return jsonify(settings=load_settings()), 200


@admin_bp.put("/settings")
@admin_required
def update_settings():
    data = request.get_json(silent=True) or {}
    settings = data.get("settings")
    if not isinstance(settings, dict) or not settings:
        return jsonify(error="settings object is required", code="InvalidRequest"), 400

    values = {}
    for key, value in settings.items():
        stored = _setting_value(value)
        if not key or len(key) > 120 or stored is None:
            return jsonify(error=f"Invalid setting {key!r}", code="InvalidRequest"), 400
        values[key] = stored

    merged = save_settings(values)
    log_event("SETTINGS_UPDATE", actor="admin", entity="course_settings", metadata=values)
    return jsonify(settings=merged), 200


@admin_bp.delete("/settings")
@admin_required
def delete_settings():
    deleted = reset_settings()
    log_event("SETTINGS_RESET", actor="admin", entity="course_settings", metadata={"deleted": deleted})
    return jsonify(success=True, settings=load_settings()), 200


# ---------- waitlist ----------
@admin_bp.get("/waitlist")
@admin_required
def list_waitlist():
    manager = make_waitlist(current_app.config)
    section_id = request.args.get("section_id")
    rows = manager.list_waitlist(section_id) if section_id else manager.list_all()
    return jsonify(waitlisted=[r.to_dict(include_section=True) for r in rows]), 200


@admin_bp.post("/waitlist/promote")
@admin_required
def promote():
    data = request.get_json(silent=True) or {}
    enrollment_id = data.get("enrollmentId")
    if not enrollment_id:
        return jsonify(error="enrollmentId is required", code="InvalidRequest"), 400

    result = make_waitlist(current_app.config).promote(enrollment_id)
    log_event_quietly("WAITLIST_PROMOTE", actor="admin", entity="enrollment", entity_id=result.enrollment_id,
                      metadata={"section_id": result.section_id, "new_count": result.new_section_count})
    return jsonify(
        success=True,
        promoted=result.promoted_email,
        newSectionCount=result.new_section_count,
        sectionStatus=result.section_status,
    ), 200


@admin_bp.post("/waitlist/remove")
@admin_required
def remove():
    data = request.get_json(silent=True) or {}
    enrollment_id = data.get("enrollmentId")
    if not enrollment_id:
        return jsonify(error="enrollmentId is required", code="InvalidRequest"), 400

    removed = make_waitlist(current_app.config).remove(enrollment_id)
    log_event_quietly("WAITLIST_REMOVE_REFUND_NEEDED", actor="admin", entity="enrollment", entity_id=removed["id"],
                      metadata=removed)
    return jsonify(
        success=True,
        removed=removed,
        warning="This student already paid, consider issuing a refund via Stripe.",
    ), 200


@admin_bp.patch("/waitlist/reorder")
@admin_required
def reorder():
    data = request.get_json(silent=True) or {}
    section_id = data.get("sectionId")
    if not section_id:
        return jsonify(error="sectionId is required", code="InvalidRequest"), 400

    moved = make_waitlist(current_app.config).reorder(section_id, data.get("orderedIds"))
    log_event_quietly("WAITLIST_REORDER", actor="admin", entity="section", entity_id=section_id,
                      metadata={"moved": moved})
    return jsonify(success=True, moved=moved), 200
