import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.admin_session import AdminSession

def _token_digest(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()

def _admin_cookie() -> str:
    return current_app.config.get("ADMIN_COOKIE_NAME", "seatledger_admin")

def create_admin_session() -> str:
    """Store a new admin session and return the raw token for the cookie."""
    raw_token = secrets.token_urlsafe(32)
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 86400)

    db.session.add(AdminSession(
        token_hash=_token_digest(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime),
        ip=request.headers.get("X-Forwarded-For", request.remote_addr),
        user_agent=(request.headers.get("User-Agent") or "")[:255],
    ))
    db.session.commit()
    return raw_token

def get_admin_session_from_request():
    """The live AdminSession behind the request cookie, or None. Touches last_seen_at."""
    raw_token = request.cookies.get(_admin_cookie())
    if not raw_token:
        return None

    sess = AdminSession.query.filter_by(token_hash=_token_digest(raw_token)).first()
    now = datetime.utcnow()
    if sess is None or not sess.is_active(now, current_app.config.get("IDLE_TIMEOUT_SECONDS", 3600)):
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess

def revoke_admin_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    sess = AdminSession.query.filter_by(token_hash=_token_digest(raw_token)).first()
    if sess is None:
        return False
    sess.revoked = True
    db.session.commit()
    return True
