from functools import wraps

from flask import g, jsonify

from models import db
from models.user import User
from security.session import get_session_from_request


def load_current_user():
    """before_request hook: resolves the session cookie into g.user / g.session."""
    g.user = None
    g.session = None
    g.teacher_id = None

    sess = get_session_from_request()
    if not sess:
        return

    user = db.session.get(User, sess.user_id)
    if user is None:
        # account deleted while the cookie was still around
        return
    g.session = sess
    g.user = user


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if g.get("user") is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
