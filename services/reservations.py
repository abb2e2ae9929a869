"""
Reservation life cycle of a slot:

    UNBOOKED --reserve--> RESERVED --accept (verified)--> CONFIRMED
    RESERVED/CONFIRMED --verify--> same status, verified_at set
    RESERVED/CONFIRMED --cancel--> UNBOOKED

Every state change is a single conditional UPDATE so two concurrent
requests can never both win the same slot.
"""
import logging
import secrets
from datetime import datetime, timedelta

from flask import current_app

from models import db
from models.slot import Slot
from models.teacher import Teacher
from services import notifications
from services.errors import ConflictError, NotFoundError
from services.validation import VisitorDetails

logger = logging.getLogger(__name__)

INVALID_LINK = "Ungültiger oder abgelaufener Link"
NOT_VERIFIED = "Buchung kann erst bestätigt werden, nachdem die E-Mail-Adresse verifiziert wurde"


def cleared_booking_fields(now):
    return {
        "booked": False,
        "status": None,
        "visitor_type": None,
        "parent_name": None,
        "company_name": None,
        "student_name": None,
        "trainee_name": None,
        "representative_name": None,
        "class_name": None,
        "email": None,
        "message": None,
        "verification_token": None,
        "verification_sent_at": None,
        "verified_at": None,
        "confirmation_sent_at": None,
        # cancellation_sent_at is written after the notice went out
        "updated_at": now,
    }


def new_verification_token() -> str:
    return secrets.token_hex(32)


def reserve(slot_id: int, details: VisitorDetails):
    """
    Claims a free slot for the visitor. Returns (slot, verification_token).
    Raises ConflictError if the slot is booked or does not exist.
    """
    token = new_verification_token()
    now = datetime.utcnow()

    values = {
        "booked": True,
        "status": "reserved",
        "verification_token": token,
        "verification_sent_at": now,
        "verified_at": None,
        "confirmation_sent_at": None,
        "cancellation_sent_at": None,
        "updated_at": now,
    }
    values.update(details.columns())

    matched = (
        Slot.query
        .filter_by(id=slot_id, booked=False)
        .update(values, synchronize_session=False)
    )
    if not matched:
        db.session.rollback()
        raise ConflictError("Slot already booked or not found")
    db.session.commit()

    slot = db.session.get(Slot, slot_id)
    sent = notifications.send_verification(slot.email, slot.date, slot.time, slot.teacher, token)
    if not sent:
        logger.info("Verification email for slot %s not sent", slot_id)
    return slot, token


def token_expired(sent_at, now) -> bool:
    max_age_hours = current_app.config.get("VERIFICATION_TOKEN_MAX_AGE_HOURS", 0)
    if not max_age_hours or sent_at is None:
        return False
    return sent_at + timedelta(hours=max_age_hours) < now


def verify(token: str):
    """
    Marks the booking holding this token as email-verified.
    Returns (slot, verified_at). Raises NotFoundError for unknown tokens.
    """
    if not token:
        raise NotFoundError(INVALID_LINK)

    slot = Slot.query.filter_by(verification_token=token, booked=True).first()
    now = datetime.utcnow()
    if slot is None or token_expired(slot.verification_sent_at, now):
        raise NotFoundError(INVALID_LINK)
    slot_id = slot.id

    # token must still be on the row when the stamp lands
    matched = (
        Slot.query
        .filter_by(id=slot_id, verification_token=token, booked=True)
        .update({"verified_at": now, "updated_at": now}, synchronize_session=False)
    )
    if not matched:
        db.session.rollback()
        raise NotFoundError(INVALID_LINK)
    db.session.commit()

    slot = db.session.get(Slot, slot_id)
    # Teacher accepted before the visitor clicked the link
    if slot.status == "confirmed" and slot.confirmation_sent_at is None:
        send_confirmation_once(slot_id)

    return db.session.get(Slot, slot_id), now


def send_confirmation_once(slot_id: int) -> bool:
    """
    Claims confirmation_sent_at before sending so a booking cycle gets at most
    one confirmation email. The claim is released if nothing was delivered.
    """
    now = datetime.utcnow()
    claimed = (
        Slot.query
        .filter(
            Slot.id == slot_id,
            Slot.booked.is_(True),
            Slot.status == "confirmed",
            Slot.verified_at.isnot(None),
            Slot.confirmation_sent_at.is_(None),
        )
        .update({"confirmation_sent_at": now}, synchronize_session=False)
    )
    db.session.commit()
    if not claimed:
        return False

    slot = db.session.get(Slot, slot_id)
    sent = notifications.send_confirmation(slot.email, slot.date, slot.time, slot.teacher)
    if not sent:
        Slot.query.filter_by(id=slot_id).update(
            {"confirmation_sent_at": None}, synchronize_session=False
        )
        db.session.commit()
    return sent


def accept(slot_id: int, teacher_id: int) -> Slot:
    current = Slot.query.filter_by(id=slot_id, teacher_id=teacher_id, booked=True).first()
    if current is None:
        raise NotFoundError("Slot not found or not booked")

    if current.status == "confirmed":
        return current

    if current.verified_at is None:
        raise ConflictError(NOT_VERIFIED)

    now = datetime.utcnow()
    matched = (
        Slot.query
        .filter(
            Slot.id == slot_id,
            Slot.teacher_id == teacher_id,
            Slot.booked.is_(True),
            Slot.verified_at.isnot(None),
        )
        .update({"status": "confirmed", "updated_at": now}, synchronize_session=False)
    )
    if not matched:
        # cancelled in between
        db.session.rollback()
        raise NotFoundError("Slot not found or not booked")
    db.session.commit()

    send_confirmation_once(slot_id)
    return db.session.get(Slot, slot_id)


def cancel(slot_id: int, teacher_id: int = None) -> Slot:
    """
    Resets a booked slot. Admins pass teacher_id=None; teachers may only
    cancel their own slots.
    """
    q = Slot.query.filter_by(id=slot_id, booked=True)
    not_found = "Slot not found or not booked"
    if teacher_id is not None:
        q = q.filter_by(teacher_id=teacher_id)
        not_found = "Slot not found, not booked, or not yours"

    current = q.first()
    if current is None:
        raise NotFoundError(not_found)

    snapshot = {
        "email": current.email,
        "verified_at": current.verified_at,
        "date": current.date,
        "time": current.time,
        "teacher_id": current.teacher_id,
    }

    now = datetime.utcnow()
    matched = q.update(cleared_booking_fields(now), synchronize_session=False)
    if not matched:
        db.session.rollback()
        raise NotFoundError(not_found)
    db.session.commit()

    # Notice only goes to addresses the visitor proved they own
    if snapshot["email"] and snapshot["verified_at"]:
        teacher = db.session.get(Teacher, snapshot["teacher_id"])
        if notifications.send_cancellation(snapshot["email"], snapshot["date"], snapshot["time"], teacher):
            Slot.query.filter_by(id=slot_id).update(
                {"cancellation_sent_at": datetime.utcnow()}, synchronize_session=False
            )
            db.session.commit()

    return db.session.get(Slot, slot_id)


def list_teacher_slots(teacher_id: int):
    return (
        Slot.query
        .filter_by(teacher_id=teacher_id)
        .order_by(Slot.date.asc(), Slot.time.asc())
        .all()
    )


def list_bookings(teacher_id: int = None):
    q = Slot.query.filter_by(booked=True)
    if teacher_id is not None:
        q = q.filter_by(teacher_id=teacher_id)
    return q.order_by(Slot.date.asc(), Slot.time.asc()).all()
