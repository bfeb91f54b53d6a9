import hmac
import secrets
from flask import request, jsonify, current_app

CSRF_COOKIE = "seatledger_csrf"
CSRF_HEADER = "X-CSRF-Token"

def issue_csrf_token(resp):
    """Double-submit cookie: the admin UI echoes this value back in X-CSRF-Token."""
    token = secrets.token_urlsafe(32)
    resp.set_cookie(
        CSRF_COOKIE,
        token,
        httponly=False,  # must be readable by client JS
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Strict"),
        path="/",
    )
    return resp

def clear_csrf_token(resp):
    resp.delete_cookie(CSRF_COOKIE, path="/")
    return resp

def require_csrf():
    cookie_token = request.cookies.get(CSRF_COOKIE) or ""
    header_token = request.headers.get(CSRF_HEADER) or ""
    if not cookie_token or not hmac.compare_digest(cookie_token, header_token):
        return jsonify(error="CSRF validation failed"), 403
    return None
