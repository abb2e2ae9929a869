import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.session import Session
from utils.audit import client_ip

# Sessions seen less than this long ago are not re-stamped on every request
_TOUCH_INTERVAL = timedelta(seconds=30)


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "sprechtag_session")


def _lifetime_seconds() -> int:
    return current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)


def create_session(user_id: int) -> str:
    """
    Stores a new login session and returns the raw cookie token.
    Only its sha256 ends up in the sessions table.
    """
    raw_token = secrets.token_urlsafe(32)
    now = datetime.utcnow()

    db.session.add(Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        created_at=now,
        last_seen_at=now,
        expires_at=now + timedelta(seconds=_lifetime_seconds()),
        ip=client_ip(),
        user_agent=(request.headers.get("User-Agent") or "")[:255],
    ))
    db.session.commit()
    return raw_token


def set_session_cookie(resp, raw_token: str):
    resp.set_cookie(
        _cookie_name(),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=_lifetime_seconds(),
        path="/",
    )
    return resp


def clear_session_cookie(resp):
    resp.delete_cookie(_cookie_name(), path="/")
    return resp


def raw_token_from_request():
    return request.cookies.get(_cookie_name())


def get_session_from_request():
    """Live session for the request cookie, or None when missing, revoked, expired or idle."""
    raw_token = raw_token_from_request()
    if not raw_token:
        return None

    sess = Session.query.filter_by(token_hash=_hash_token(raw_token), revoked=False).first()
    if not sess:
        return None

    now = datetime.utcnow()
    if sess.expires_at <= now:
        return None

    idle = timedelta(seconds=current_app.config.get("IDLE_TIMEOUT_SECONDS", 1800))
    last_seen = sess.last_seen_at or sess.created_at
    if last_seen + idle <= now:
        return None

    if now - last_seen >= _TOUCH_INTERVAL:
        sess.last_seen_at = now
        db.session.commit()
    return sess


def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    matched = (
        Session.query
        .filter_by(token_hash=_hash_token(raw_token), revoked=False)
        .update({"revoked": True}, synchronize_session=False)
    )
    db.session.commit()
    return bool(matched)


def revoke_all_sessions(user_id: int) -> int:
    """Logs the user out everywhere; returns how many sessions were still open."""
    matched = (
        Session.query
        .filter_by(user_id=user_id, revoked=False)
        .update({"revoked": True}, synchronize_session=False)
    )
    db.session.commit()
    return matched
