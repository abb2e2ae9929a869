from flask import Blueprint, jsonify, g, request, current_app

from models import db
from models.feedback import Feedback
from models.teacher import Teacher
from security.password import hash_password, verify_password
from security.password_policy import validate_password
from security.rbac import ROLE_TEACHER, require_roles, require_teacher_id
from services import booking_requests, reservations
from utils.audit import log_event
from utils.mappers import map_booking_request, map_slot, map_teacher

teacher_bp = Blueprint("teacher", __name__, url_prefix="/api/teacher")

MAX_FEEDBACK_LEN = 2000


# ---------- own bookings ----------
@teacher_bp.get("/bookings")
@require_roles(ROLE_TEACHER)
@require_teacher_id
def list_bookings():
    rows = reservations.list_bookings(teacher_id=g.teacher_id)
    return jsonify(bookings=[map_slot(s) for s in rows]), 200


@teacher_bp.delete("/bookings/<int:slot_id>")
@require_roles(ROLE_TEACHER)
@require_teacher_id
def cancel_booking(slot_id: int):
    slot = reservations.cancel(slot_id, teacher_id=g.teacher_id)
    log_event("TEACHER_BOOKING_CANCEL", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(success=True, message="Booking cancelled successfully"), 200


@teacher_bp.put("/bookings/<int:slot_id>/accept")
@require_roles(ROLE_TEACHER)
@require_teacher_id
def accept_booking(slot_id: int):
    slot = reservations.accept(slot_id, g.teacher_id)
    log_event("BOOKING_ACCEPT", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(success=True, slot=map_slot(slot)), 200


@teacher_bp.get("/slots")
@require_roles(ROLE_TEACHER)
@require_teacher_id
def list_slots():
    rows = reservations.list_teacher_slots(g.teacher_id)
    return jsonify(slots=[map_slot(s) for s in rows]), 200


# ---------- booking requests ----------
@teacher_bp.get("/requests")
@require_roles(ROLE_TEACHER)
@require_teacher_id
def list_requests():
    out = []
    for row, assignable, available in booking_requests.list_pending_requests(g.teacher_id):
        mapped = map_booking_request(row)
        mapped["assignableTimes"] = assignable
        mapped["availableTimes"] = available
        out.append(mapped)
    return jsonify(requests=out), 200


@teacher_bp.put("/requests/<int:request_id>/accept")
@require_roles(ROLE_TEACHER)
@require_teacher_id
def accept_request(request_id: int):
    data = request.get_json(silent=True) or {}
    row, slot = booking_requests.accept_request(
        request_id,
        g.teacher_id,
        preferred_time=data.get("time"),
        teacher_message=data.get("teacherMessage") or "",
    )
    log_event("REQUEST_ACCEPT", user_id=g.user.id, entity="booking_request", entity_id=row.id,
              metadata={"slot_id": slot.id if slot else None})
    return jsonify(success=True, request=map_booking_request(row), slot=map_slot(slot)), 200


@teacher_bp.put("/requests/<int:request_id>/decline")
@require_roles(ROLE_TEACHER)
@require_teacher_id
def decline_request(request_id: int):
    row = booking_requests.decline_request(request_id, g.teacher_id)
    log_event("REQUEST_DECLINE", user_id=g.user.id, entity="booking_request", entity_id=row.id)
    return jsonify(success=True, request=map_booking_request(row)), 200


# ---------- profile ----------
@teacher_bp.get("/info")
@require_roles(ROLE_TEACHER)
@require_teacher_id
def info():
    teacher = db.session.get(Teacher, g.teacher_id)
    if not teacher:
        return jsonify(error="Teacher not found"), 404
    return jsonify(teacher=map_teacher(teacher)), 200


@teacher_bp.put("/room")
@require_roles(ROLE_TEACHER)
def update_room():
    # Rooms are maintained by the admin only
    return jsonify(error="Not found"), 404


@teacher_bp.put("/password")
@require_roles(ROLE_TEACHER)
def change_password():
    data = request.get_json(silent=True) or {}
    current_password = data.get("currentPassword") or ""
    new_password = data.get("newPassword") or ""

    if not current_password or not new_password:
        return jsonify(error="currentPassword und newPassword erforderlich"), 400

    valid, errors = validate_password(new_password)
    if not valid:
        return jsonify(error=errors[0], details=errors), 400

    user = g.user
    if not verify_password(current_password, user.password_hash):
        log_event("PASSWORD_CHANGE_FAIL", user_id=user.id)
        return jsonify(error="Aktuelles Passwort ist falsch"), 400

    user.password_hash = hash_password(new_password, rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    db.session.commit()

    log_event("PASSWORD_CHANGE", user_id=user.id, entity="user", entity_id=user.id)
    return jsonify(success=True, message="Passwort erfolgreich geändert"), 200


@teacher_bp.post("/feedback")
@require_roles(ROLE_TEACHER)
def submit_feedback():
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    message = message.strip() if isinstance(message, str) else ""

    if not message:
        return jsonify(error="Feedback darf nicht leer sein"), 400
    if len(message) > MAX_FEEDBACK_LEN:
        return jsonify(error=f"Feedback darf maximal {MAX_FEEDBACK_LEN} Zeichen lang sein"), 400

    row = Feedback(message=message)
    db.session.add(row)
    db.session.commit()

    # The audit row carries no user id so feedback stays anonymous
    log_event("FEEDBACK_SUBMIT", entity="feedback", entity_id=row.id)
    return jsonify(success=True), 201
