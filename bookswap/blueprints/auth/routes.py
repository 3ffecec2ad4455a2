import secrets
from datetime import timedelta

from flask import Blueprint, current_app, jsonify, session

from ...extensions import db
from ...models import User
from ...services import notifications
from ...timeutil import utcnow, isoformat
from ..common import _json, _str_field

bp = Blueprint("auth", __name__, url_prefix="/auth")

MIN_PASSWORD_LENGTH = 6
OTP_LENGTH = 6
MAX_OTP_ATTEMPTS = 5


def _generate_otp() -> str:
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def _open_session(user: User) -> None:
    session.clear()
    session["user_id"] = user.id


# ---------- SIGNUP (paso 1: enviar OTP) ----------
@bp.post("/signup")
def signup():
    data = _json()

    email = _str_field(data, "email").lower()
    name = _str_field(data, "name")

    if not email or not name:
        return jsonify(
            error="missing_fields",
            required=["email", "name"]
        ), 400

    if "@" not in email:
        return jsonify(error="invalid_field", field="email"), 400

    if len(name) < 2:
        return jsonify(error="invalid_field", field="name", min_length=2), 400

    user = User.query.filter_by(email=email).first()
    if user and user.is_verified:
        return jsonify(error="user_exists"), 409

    if user is None:
        user = User(email=email, name=name, is_verified=False)
        db.session.add(user)
    else:
        user.name = name

    code = _generate_otp()
    ttl = current_app.config["OTP_TTL_MINUTES"]
    expires_at = utcnow() + timedelta(minutes=ttl)
    user.set_otp(code, expires_at)

    try:
        notifications.send_otp(email, code, name, ttl)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("OTP email failed: email=%s", email)
        return jsonify(error="email_send_failed"), 502

    db.session.commit()
    current_app.logger.info("OTP sent: email=%s user_id=%s", email, user.id)

    return jsonify(
        message="otp_sent",
        email=email,
        otp_expires_at=isoformat(expires_at),
    ), 200


# ---------- VERIFY OTP (paso 2: crear cuenta) ----------
@bp.post("/verify-otp")
def verify_otp():
    data = _json()

    email = _str_field(data, "email").lower()
    otp = _str_field(data, "otp")
    password = _str_field(data, "password", strip=False)

    if not email or not otp or not password:
        return jsonify(
            error="missing_fields",
            required=["email", "otp", "password"]
        ), 400

    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify(
            error="weak_password",
            min_length=MIN_PASSWORD_LENGTH
        ), 400

    user = User.query.filter_by(email=email).first()
    if not user or user.is_verified or not user.otp_hash:
        return jsonify(error="invalid_otp"), 400

    if not user.check_otp(otp, utcnow()):
        locked = user.register_failed_otp(MAX_OTP_ATTEMPTS)
        db.session.commit()
        if locked:
            current_app.logger.info("OTP locked after failed attempts: email=%s", email)
            return jsonify(error="otp_attempts_exceeded"), 400
        return jsonify(error="invalid_otp"), 400

    user.set_password(password)
    user.is_verified = True
    user.clear_otp()
    db.session.commit()

    _open_session(user)
    current_app.logger.info("User verified: email=%s user_id=%s", email, user.id)

    return jsonify(message="created", **user.to_dict()), 201


# ---------- LOGIN ----------
@bp.post("/login")
def login():
    data = _json()

    email = _str_field(data, "email").lower()
    password = _str_field(data, "password", strip=False)

    if not email or not password:
        return jsonify(
            error="missing_fields",
            required=["email", "password"]
        ), 400

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        return jsonify(error="invalid_credentials"), 401

    if not user.is_verified:
        return jsonify(error="email_not_verified"), 401

    _open_session(user)
    current_app.logger.info("User logged in: user_id=%s", user.id)

    return jsonify(message="ok", **user.to_dict()), 200


# ---------- LOGOUT ----------
@bp.post("/logout")
def logout():
    session.clear()
    return jsonify(message="logged_out"), 200


# ---------- WHO AM I ----------
@bp.get("/me")
def me():
    user_id = session.get("user_id")

    if not user_id:
        return jsonify(authenticated=False), 200

    user = db.session.get(User, user_id)

    if not user or not user.is_verified:
        session.clear()
        return jsonify(authenticated=False), 200

    return jsonify(authenticated=True, **user.to_dict()), 200
