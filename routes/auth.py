from flask import Blueprint, request, jsonify, current_app, g

from models.user import User
from security.bruteforce import is_locked, register_failure, reset_attempts
from security.csrf import clear_csrf_token, issue_csrf_token
from security.password import verify_password
from security.session import (
    clear_session_cookie,
    create_session,
    raw_token_from_request,
    revoke_all_sessions,
    revoke_session,
    set_session_cookie,
)
from utils.audit import log_event


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user: User) -> dict:
    return {
        "username": user.username,
        "role": user.role,
        "teacherId": user.teacher_id,
    }


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    username = str(data.get("username") or "").strip()
    password = data.get("password") or ""

    if not username or not password:
        return jsonify(error="Username and password required"), 400

    locked, seconds_left = is_locked(username)
    if locked:
        log_event("LOGIN_LOCKED", metadata={"username": username, "seconds_left": seconds_left})
        return jsonify(error="Account temporarily locked. Try again later.", retry_after_seconds=seconds_left), 429

    user = User.query.filter_by(username=username).first()
    if not user or not verify_password(password, user.password_hash):
        fail_count, locked_now = register_failure(username)
        log_event(
            "LOGIN_FAIL",
            user_id=user.id if user else None,
            metadata={"username": username, "fail_count": fail_count, "locked_now": locked_now}
        )
        if locked_now:
            return jsonify(
                error="Too many failed attempts. Account locked.",
                lockout_minutes=current_app.config.get("LOCKOUT_MINUTES", 5),
            ), 429
        return jsonify(error="Invalid credentials"), 401

    reset_attempts(username)

    # Rotate: revoke any existing sessions for this user
    revoked_count = revoke_all_sessions(user.id)
    raw_token = create_session(user.id)

    resp = jsonify(success=True, message="Login successful", user=_user_payload(user))
    set_session_cookie(resp, raw_token)
    issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked_count})
    return resp, 200


@auth_bp.route("/logout", methods=["POST", "DELETE"])
def logout():
    raw_token = raw_token_from_request()
    revoked = revoke_session(raw_token)
    if revoked and getattr(g, "user", None) is not None:
        log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(success=True, message="Logout successful")
    clear_session_cookie(resp)
    clear_csrf_token(resp)
    return resp, 200


@auth_bp.get("/verify")
def verify():
    user = getattr(g, "user", None)
    if user is None:
        return jsonify(authenticated=False), 200
    return jsonify(authenticated=True, user=_user_payload(user)), 200
