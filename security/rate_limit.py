from datetime import datetime
from functools import wraps
from flask import request, current_app, jsonify

from models import db
from models.ip_rate_limit import IpRateLimit

def client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    return forwarded.split(",")[0].strip() or request.remote_addr or "unknown"

def _limit_for(scope: str) -> int:
    limits = current_app.config.get("RATE_LIMITS", {})
    return limits.get(scope, current_app.config.get("RATE_LIMIT_DEFAULT_MAX", 5))

def check_and_increment_rate(scope: str) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    Fixed window per scope and client IP, shared by every worker through the DB.
    """
    key = f"{scope}:{client_ip()}"[:128]
    now = datetime.utcnow()
    window_seconds = current_app.config.get("RATE_LIMIT_WINDOW_SECONDS", 900)

    row = IpRateLimit.query.filter_by(key=key).first()
    if not row:
        row = IpRateLimit(key=key, window_start=now, count=0)
        db.session.add(row)

    count = row.hit(now, window_seconds)
    window_end = row.window_end(window_seconds)
    db.session.commit()

    if count > _limit_for(scope):
        retry_after = int((window_end - now).total_seconds())
        return False, max(retry_after, 1)

    return True, 0

def rate_limited(scope: str):
    """
    Usage: @rate_limited("checkout")
    Limits per scope come from RATE_LIMITS; RATE_LIMIT_ENABLED=False turns them off.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_app.config.get("RATE_LIMIT_ENABLED", True):
                allowed, retry_after = check_and_increment_rate(scope)
                if not allowed:
                    current_app.logger.warning("Rate limit hit on %s from %s", scope, client_ip())
                    resp = jsonify(error="Too many requests. Please try again later.", retry_after_seconds=retry_after)
                    resp.headers["Retry-After"] = str(retry_after)
                    return resp, 429
            return fn(*args, **kwargs)
        return wrapper
    return decorator
