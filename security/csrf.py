import hmac
import secrets
from flask import request, jsonify, current_app, g

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

# Login bootstraps the token; public booking endpoints carry no session
CSRF_EXEMPT_PATHS = {
    "/api/auth/login",
}

def issue_csrf_token(resp):
    token = secrets.token_urlsafe(32)
    resp.set_cookie(
        CSRF_COOKIE,
        token,
        httponly=False,  # must be readable by client JS
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp

def clear_csrf_token(resp):
    resp.delete_cookie(CSRF_COOKIE, path="/")
    return resp

def require_csrf():
    cookie_token = request.cookies.get(CSRF_COOKIE) or ""
    header_token = request.headers.get(CSRF_HEADER) or ""
    if not cookie_token or not header_token or not hmac.compare_digest(cookie_token, header_token):
        return jsonify(error="CSRF validation failed"), 403
    return None

def csrf_protect():
    """before_request hook: state-changing calls from a logged-in browser need the token."""
    if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
        return None
    if request.path in CSRF_EXEMPT_PATHS:
        return None
    if getattr(g, "user", None) is None:
        return None
    return require_csrf()
