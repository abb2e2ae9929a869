"""
Booking requests: a visitor asks for a half-hour window instead of a fixed
slot. After email verification the teacher (or the overdue sweep) assigns
the request to a concrete free quarter-hour slot.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta

from flask import current_app

from models import db
from models.booking_request import BookingRequest
from models.slot import Slot
from models.teacher import Teacher
from services import notifications
from services.errors import ConflictError, NotFoundError, ServiceError, ValidationError
from services.reservations import INVALID_LINK, token_expired
from services.validation import VisitorDetails
from utils.timeslots import (
    assignable_times_for_system,
    assignable_times_for_window,
    is_event_date_string,
    is_valid_time_range,
    normalize_time_range,
    requested_time_windows,
)

logger = logging.getLogger(__name__)

MAX_TEACHER_MESSAGE_LEN = 1000


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_request(teacher_id: int, date: str, requested_time: str, details: VisitorDetails):
    """Returns (request, raw_token)."""
    teacher = db.session.get(Teacher, teacher_id)
    if teacher is None:
        raise NotFoundError("Teacher not found")

    date = (date or "").strip()
    if not date:
        raise ValidationError("date required")
    if not is_event_date_string(date):
        raise ValidationError("date must look like DD.MM.YYYY")
    if not Slot.query.filter_by(teacher_id=teacher.id, date=date).first():
        raise ValidationError("Für dieses Datum gibt es keine Termine bei dieser Lehrkraft")

    allowed = requested_time_windows(teacher.system)
    window = normalize_time_range(requested_time)
    if window not in allowed:
        raise ValidationError("Ungültiges Zeitfenster", allowedTimes=allowed)

    token = secrets.token_hex(32)
    now = datetime.utcnow()
    row = BookingRequest(
        teacher_id=teacher.id,
        date=date,
        requested_time=window,
        status="requested",
        verification_token_hash=hash_token(token),
        verification_sent_at=now,
        created_at=now,
        updated_at=now,
        **details.columns(),
    )
    db.session.add(row)
    db.session.commit()

    notifications.send_verification(row.email, row.date, row.requested_time, teacher, token, is_request=True)
    return row, token


def verify_request(token: str) -> BookingRequest:
    if not token:
        raise NotFoundError(INVALID_LINK)

    token_hash = hash_token(token)
    row = BookingRequest.query.filter_by(verification_token_hash=token_hash).first()
    now = datetime.utcnow()
    if row is None or row.status == "declined" or token_expired(row.verification_sent_at, now):
        raise NotFoundError(INVALID_LINK)
    request_id = row.id

    matched = (
        BookingRequest.query
        .filter(
            BookingRequest.id == request_id,
            BookingRequest.verification_token_hash == token_hash,
            BookingRequest.status != "declined",
        )
        .update({"verified_at": now, "updated_at": now}, synchronize_session=False)
    )
    if not matched:
        db.session.rollback()
        raise NotFoundError(INVALID_LINK)
    db.session.commit()
    return db.session.get(BookingRequest, request_id)


def _pick_free_slot(slot_rows, ordered_times):
    by_time = {}
    for s in slot_rows:
        by_time.setdefault(s.time, s)
    for t in ordered_times:
        if t in by_time:
            return by_time[t]
    return None


def assign_request_to_slot(current: BookingRequest, teacher: Teacher, preferred_time=None, teacher_message=""):
    """
    Claims the first free slot matching the request (preferred time first)
    and marks the request accepted in the same transaction.
    Returns (request, slot).
    """
    allowed_times = assignable_times_for_system(teacher.system)
    candidate_times = assignable_times_for_window(current.requested_time)

    preferred = (preferred_time or "").strip() if isinstance(preferred_time, str) else ""
    if preferred and not is_valid_time_range(preferred):
        raise ValidationError("Ungültige Zeit-Auswahl", assignableTimes=allowed_times)
    if preferred:
        preferred = normalize_time_range(preferred)

    if not candidate_times and not preferred:
        raise ValidationError("Anfrage-Zeitraum ist ungültig")

    ordered = [preferred] if preferred else []
    ordered += [t for t in candidate_times if t not in ordered]
    ordered = [t for t in ordered if t in allowed_times]
    if not ordered:
        raise ValidationError("Ungültige Zeit-Auswahl", assignableTimes=allowed_times)

    free_rows = (
        Slot.query
        .filter(
            Slot.teacher_id == teacher.id,
            Slot.date == current.date,
            Slot.booked.is_(False),
            Slot.time.in_(ordered),
        )
        .all()
    )
    slot = _pick_free_slot(free_rows, ordered)
    if slot is None:
        raise ConflictError(
            "Slot nicht verfügbar. Bitte prüfen, ob Slots generiert wurden oder ob der Slot bereits vergeben ist.",
            details={
                "teacherId": teacher.id,
                "date": current.date,
                "requestedTime": current.requested_time,
                "candidateTimes": ordered,
            },
        )

    now = datetime.utcnow()
    slot_values = {
        "booked": True,
        "status": "confirmed",
        "verified_at": current.verified_at,
        "verification_token": None,
        "verification_sent_at": None,
        "confirmation_sent_at": None,
        "cancellation_sent_at": None,
        "updated_at": now,
        "visitor_type": current.visitor_type,
        "class_name": current.class_name,
        "email": current.email,
        "message": current.message,
        "parent_name": current.parent_name,
        "student_name": current.student_name,
        "company_name": current.company_name,
        "trainee_name": current.trainee_name,
        "representative_name": current.representative_name,
    }
    slot_id = slot.id
    request_id = current.id

    claimed = (
        Slot.query
        .filter_by(id=slot_id, teacher_id=teacher.id, booked=False)
        .update(slot_values, synchronize_session=False)
    )
    if not claimed:
        db.session.rollback()
        raise ConflictError("Slot bereits vergeben")

    moved = (
        BookingRequest.query
        .filter_by(id=request_id, teacher_id=teacher.id, status="requested")
        .update(
            {"status": "accepted", "assigned_slot_id": slot_id, "updated_at": now},
            synchronize_session=False,
        )
    )
    if not moved:
        # undo the slot claim as well
        db.session.rollback()
        raise ConflictError("Anfrage ist nicht mehr offen")
    db.session.commit()

    slot = db.session.get(Slot, slot_id)
    if notifications.send_confirmation(
        slot.email, slot.date, slot.time, teacher, teacher_message=teacher_message, from_request=True
    ):
        sent_at = datetime.utcnow()
        Slot.query.filter_by(id=slot_id).update({"confirmation_sent_at": sent_at}, synchronize_session=False)
        BookingRequest.query.filter_by(id=request_id).update(
            {"confirmation_sent_at": sent_at, "updated_at": sent_at}, synchronize_session=False
        )
        db.session.commit()

    return db.session.get(BookingRequest, request_id), db.session.get(Slot, slot_id)


def accept_request(request_id: int, teacher_id: int, preferred_time=None, teacher_message=""):
    teacher_message = (teacher_message or "").strip()
    if len(teacher_message) > MAX_TEACHER_MESSAGE_LEN:
        raise ValidationError(
            f"Nachricht der Lehrkraft darf maximal {MAX_TEACHER_MESSAGE_LEN} Zeichen lang sein"
        )

    current = BookingRequest.query.filter_by(id=request_id, teacher_id=teacher_id).first()
    if current is None:
        raise NotFoundError("Request not found")

    if current.status == "accepted":
        slot = db.session.get(Slot, current.assigned_slot_id) if current.assigned_slot_id else None
        return current, slot

    if current.status != "requested":
        raise ConflictError("Request is not pending")

    if current.verified_at is None:
        raise ConflictError("Anfrage kann erst angenommen werden, nachdem die E-Mail-Adresse verifiziert wurde")

    teacher = db.session.get(Teacher, teacher_id)
    return assign_request_to_slot(current, teacher, preferred_time, teacher_message)


def decline_request(request_id: int, teacher_id: int) -> BookingRequest:
    matched = (
        BookingRequest.query
        .filter_by(id=request_id, teacher_id=teacher_id, status="requested")
        .update({"status": "declined", "updated_at": datetime.utcnow()}, synchronize_session=False)
    )
    if not matched:
        db.session.rollback()
        raise NotFoundError("Request not found or not pending")
    db.session.commit()
    return db.session.get(BookingRequest, request_id)


def auto_assign_overdue(teacher_id: int = None, limit: int = 500) -> int:
    """
    Assigns verified requests older than REQUEST_AUTO_ASSIGN_HOURS to the
    earliest free slot. Returns the number of assigned requests.
    """
    hours = current_app.config.get("REQUEST_AUTO_ASSIGN_HOURS", 24)
    cutoff = datetime.utcnow() - timedelta(hours=hours)

    q = BookingRequest.query.filter(
        BookingRequest.status == "requested",
        BookingRequest.verified_at.isnot(None),
        BookingRequest.created_at <= cutoff,
    )
    if teacher_id is not None:
        q = q.filter(BookingRequest.teacher_id == teacher_id)
    rows = q.order_by(BookingRequest.created_at.asc()).limit(limit).all()

    assigned = 0
    teachers = {}
    for row in rows:
        teacher = teachers.get(row.teacher_id) or db.session.get(Teacher, row.teacher_id)
        teachers[row.teacher_id] = teacher
        try:
            assign_request_to_slot(row, teacher)
            assigned += 1
        except ServiceError as exc:
            logger.warning("Auto-assignment for request %s failed: %s", row.id, exc.message)
    return assigned


def list_pending_requests(teacher_id: int):
    """
    Pending requests (newest first), each with the quarter-hour times inside
    its window and the free times on its date allowed by the teacher system.
    Overdue verified requests are assigned before listing.
    """
    auto_assign_overdue(teacher_id=teacher_id)

    teacher = db.session.get(Teacher, teacher_id)
    allowed = set(assignable_times_for_system(teacher.system if teacher else "dual"))

    rows = (
        BookingRequest.query
        .filter_by(teacher_id=teacher_id, status="requested")
        .order_by(BookingRequest.created_at.desc(), BookingRequest.id.desc())
        .limit(500)
        .all()
    )

    dates = {r.date for r in rows if r.date}
    free_by_date = {}
    if dates:
        free_slots = (
            Slot.query
            .filter(Slot.teacher_id == teacher_id, Slot.booked.is_(False), Slot.date.in_(dates))
            .order_by(Slot.time.asc())
            .all()
        )
        for s in free_slots:
            times = free_by_date.setdefault(s.date, [])
            if s.time in allowed and s.time not in times:
                times.append(s.time)

    return [
        (row, assignable_times_for_window(row.requested_time), free_by_date.get(row.date, []))
        for row in rows
    ]
