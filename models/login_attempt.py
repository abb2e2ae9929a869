from datetime import datetime
from models.db import db

class LoginAttempt(db.Model):
    __tablename__ = "login_attempts"

    id = db.Column(db.Integer, primary_key=True)

    # one row per (lower-cased username, client ip)
    username = db.Column(db.String(100), nullable=False, index=True)
    ip = db.Column(db.String(64), nullable=False, index=True)

    fail_count = db.Column(db.Integer, default=0, nullable=False)
    last_fail_at = db.Column(db.DateTime, nullable=True)
    locked_until = db.Column(db.DateTime, nullable=True)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
