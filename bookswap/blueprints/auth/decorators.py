from functools import wraps
from flask import session, jsonify, abort

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not session.get("user_id"):
            return jsonify(error="auth_required"), 401
        return fn(*args, **kwargs)
    return wrapper


def current_user_id() -> int:
    """Acting user of the current request, as stored in the session at login."""
    uid = session.get("user_id")
    if not uid:
        abort(401, description="auth_required")
    return int(uid)
