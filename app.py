import logging

import click
from flask import Flask, request, g, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from config import Config
from routes import public_bp, auth_bp, admin_bp, teacher_bp

from models import db
from security.csrf import CSRF_HEADER, csrf_protect
from services.errors import ServiceError
from utils.auth_context import load_current_user
from utils.emailer import Mailer

logger = logging.getLogger(__name__)


def create_app(config_object=Config, mailer=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    CORS(
        app,
        supports_credentials=True,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", [])}},
        methods=["GET", "HEAD", "POST", "OPTIONS", "PUT", "DELETE"],
        allow_headers=["Content-Type", CSRF_HEADER],
    )

    # Register routes
    app.register_blueprint(public_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(teacher_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # One mailer per app; tests pass their own transport
    app.extensions["mailer"] = mailer or Mailer.from_config(app.config)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        return csrf_protect()

    @app.before_request
    def _log_request():
        user = getattr(g, "user", None)
        app.logger.debug("%s %s user=%s", request.method, request.path, user.id if user else "-")

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_error_handlers(app)
    register_cli(app)

    return app


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def _service_error(exc):
        if exc.status_code >= 500:
            app.logger.error("%s %s failed: %s", request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(404)
    def _not_found(_exc):
        return jsonify(error="Not found"), 404

    @app.errorhandler(405)
    def _method_not_allowed(_exc):
        return jsonify(error="Method not allowed"), 405

    @app.errorhandler(Exception)
    def _unhandled(exc):
        if isinstance(exc, HTTPException):
            return jsonify(error=exc.description or exc.name), exc.code
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify(error="Internal server error"), 500


#-------------------------
from models.user import User
from security.password import hash_password
from security.password_policy import validate_password
from services.booking_requests import auto_assign_overdue


def register_cli(app):
    @app.cli.command("create-admin")
    @click.argument("username")
    @click.password_option()
    def create_admin(username, password):
        """Create an admin account, or reset the password of an existing one (bootstrap)."""
        username = username.strip()
        valid, errors = validate_password(password)
        if not valid:
            raise click.ClickException("; ".join(errors))

        rounds = app.config.get("BCRYPT_ROUNDS", 12)
        user = User.query.filter_by(username=username).first()
        if user is None:
            user = User(username=username, role="admin", password_hash=hash_password(password, rounds=rounds))
            db.session.add(user)
        else:
            user.role = "admin"
            user.password_hash = hash_password(password, rounds=rounds)
        db.session.commit()

        click.echo(f"{username} is an admin")

    @app.cli.command("assign-overdue-requests")
    def assign_overdue_requests():
        """Assign verified booking requests that waited too long to a free slot."""
        assigned = auto_assign_overdue()
        click.echo(f"{assigned} request(s) assigned")

    @app.cli.command("init-db")
    def init_db():
        """Create all tables without running migrations (local development)."""
        db.create_all()
        click.echo("Database initialised")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
