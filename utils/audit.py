import json
from flask import request, has_request_context, current_app
from sqlalchemy.exc import SQLAlchemyError
from models import db
from models.audit_log import AuditLog

def log_event(action: str, actor=None, entity=None, entity_id=None, metadata=None):
    # CLI commands have no request to take the client details from
    ip = user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = request.headers.get("User-Agent", "")

    row = AuditLog(
        actor=actor,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata, default=str) if metadata else None
    )
    db.session.add(row)
    db.session.commit()

def log_event_quietly(action: str, **kwargs):
    """log_event for post-commit paths where an audit failure must not fail the request."""
    try:
        log_event(action, **kwargs)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Audit log write failed for %s", action)
