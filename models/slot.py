from datetime import datetime
from models.db import db

class Slot(db.Model):
    __tablename__ = "slots"

    id = db.Column(db.Integer, primary_key=True)

    teacher_id = db.Column(db.Integer, db.ForeignKey("teachers.id"), nullable=False, index=True)
    date = db.Column(db.String(50), nullable=False)   # DD.MM.YYYY
    time = db.Column(db.String(50), nullable=False)   # HH:MM - HH:MM

    booked = db.Column(db.Boolean, default=False, nullable=False, index=True)
    status = db.Column(db.String(20), nullable=True)  # NULL, reserved, confirmed

    visitor_type = db.Column(db.String(20), nullable=True)  # parent, company
    parent_name = db.Column(db.String(255), nullable=True)
    student_name = db.Column(db.String(255), nullable=True)
    company_name = db.Column(db.String(255), nullable=True)
    trainee_name = db.Column(db.String(255), nullable=True)
    representative_name = db.Column(db.String(255), nullable=True)
    class_name = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    message = db.Column(db.Text, nullable=True)

    verification_token = db.Column(db.String(128), nullable=True, index=True)
    verification_sent_at = db.Column(db.DateTime, nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)
    confirmation_sent_at = db.Column(db.DateTime, nullable=True)
    cancellation_sent_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    teacher = db.relationship("Teacher", back_populates="slots")

    __table_args__ = (
        # Prevent duplicate slot times for the same teacher and day
        db.UniqueConstraint("teacher_id", "date", "time", name="uq_teacher_date_time"),
    )
