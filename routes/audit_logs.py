from flask import Blueprint, jsonify, request
from models.audit_log import AuditLog
from utils.auth_context import admin_required

audit_bp = Blueprint("audit", __name__, url_prefix="/admin")


@audit_bp.get("/audit-logs")
@admin_required
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action == action)
    entity_id = request.args.get("entity_id")
    if entity_id:
        # e.g. every event for one enrollment or stripe session
        q = q.filter(AuditLog.entity_id == entity_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([r.to_dict() for r in rows]), 200
