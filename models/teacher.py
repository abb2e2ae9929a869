from datetime import datetime
from models.db import db

class Teacher(db.Model):
    __tablename__ = "teachers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    salutation = db.Column(db.String(20), nullable=True)  # Herr, Frau, Divers
    email = db.Column(db.String(255), nullable=True)
    subject = db.Column(db.String(255), nullable=False, default="Sprechstunde")
    room = db.Column(db.String(60), nullable=True)

    # dual = 16:00-18:00, vollzeit = 17:00-19:00
    system = db.Column(db.String(20), nullable=False, default="dual")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    slots = db.relationship("Slot", back_populates="teacher", lazy=True)

    __table_args__ = (
        db.CheckConstraint("system IN ('dual', 'vollzeit')", name="teachers_system_check"),
    )
