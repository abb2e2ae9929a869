"""Login lockout per (username, client ip)."""
from datetime import datetime, timedelta
from typing import Tuple

from flask import current_app

from models import db
from models.login_attempt import LoginAttempt
from utils.audit import client_ip


def _row(username: str):
    return LoginAttempt.query.filter_by(username=username.lower(), ip=client_ip()).first()


def is_locked(username: str) -> Tuple[bool, int]:
    """Returns (locked, seconds_remaining)."""
    row = _row(username)
    if not row or not row.locked_until:
        return False, 0

    remaining = (row.locked_until - datetime.utcnow()).total_seconds()
    if remaining <= 0:
        return False, 0
    return True, max(int(remaining), 1)


def register_failure(username: str) -> Tuple[int, bool]:
    """Counts a failed login. Returns (fail_count, locked_now)."""
    now = datetime.utcnow()
    row = _row(username)
    if row is None:
        row = LoginAttempt(username=username.lower(), ip=client_ip(), fail_count=0)
        db.session.add(row)
    elif row.locked_until and row.locked_until <= now:
        # previous lock ran out, start counting again
        row.fail_count = 0
        row.locked_until = None

    row.fail_count += 1
    row.last_fail_at = now

    locked_now = row.fail_count >= current_app.config.get("MAX_LOGIN_ATTEMPTS", 5)
    if locked_now:
        row.locked_until = now + timedelta(minutes=current_app.config.get("LOCKOUT_MINUTES", 5))

    db.session.commit()
    return row.fail_count, locked_now


def reset_attempts(username: str):
    row = _row(username)
    if row is None:
        return
    db.session.delete(row)
    db.session.commit()
