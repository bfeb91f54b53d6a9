from functools import wraps
from flask import g, jsonify
from security.session import get_admin_session_from_request

def load_current_admin():
    g.admin_session = get_admin_session_from_request()

def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "admin_session", None) is None:
            return jsonify(error="Unauthorized"), 401
        return fn(*args, **kwargs)
    return wrapper
