from functools import wraps
from flask import g, jsonify

ROLE_ADMIN = "admin"
ROLE_TEACHER = "teacher"

def require_roles(*role_names: str):
    """
    Usage: @require_roles("admin")
    Admins pass every role check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            if user.role != ROLE_ADMIN and user.role not in role_names:
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator

def require_teacher_id(fn):
    """
    Resolves the caller's teacher record into g.teacher_id.
    Must be stacked below @require_roles.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        teacher_id = getattr(g.user, "teacher_id", None)
        if not teacher_id:
            return jsonify(error="Teacher ID not found for this account"), 400
        g.teacher_id = teacher_id
        return fn(*args, **kwargs)
    return wrapper
