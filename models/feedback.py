from datetime import datetime
from models.db import db


class Feedback(db.Model):
    __tablename__ = "feedback"

    # Anonymous by design of the table: no user or teacher reference
    id = db.Column(db.Integer, primary_key=True)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
