from datetime import datetime
from models.db import db

class BookingRequest(db.Model):
    __tablename__ = "booking_requests"

    id = db.Column(db.Integer, primary_key=True)

    teacher_id = db.Column(db.Integer, db.ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True)
    date = db.Column(db.String(50), nullable=False)
    requested_time = db.Column(db.String(50), nullable=False)  # half-hour window

    status = db.Column(db.String(20), nullable=False, default="requested", index=True)
    # status values: requested, accepted, declined

    visitor_type = db.Column(db.String(20), nullable=False)
    parent_name = db.Column(db.String(255), nullable=True)
    student_name = db.Column(db.String(255), nullable=True)
    company_name = db.Column(db.String(255), nullable=True)
    trainee_name = db.Column(db.String(255), nullable=True)
    representative_name = db.Column(db.String(255), nullable=True)
    class_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=True)

    # store only hashed token in DB (the raw token goes out by email)
    verification_token_hash = db.Column(db.String(128), nullable=True, index=True)
    verification_sent_at = db.Column(db.DateTime, nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)
    confirmation_sent_at = db.Column(db.DateTime, nullable=True)

    assigned_slot_id = db.Column(db.Integer, db.ForeignKey("slots.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("status IN ('requested', 'accepted', 'declined')", name="booking_requests_status_check"),
        db.CheckConstraint("visitor_type IN ('parent', 'company')", name="booking_requests_visitor_type_check"),
    )
