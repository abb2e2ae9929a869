import re
from datetime import datetime

from flask import Blueprint, jsonify, g, request, current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.audit_log import AuditLog
from models.booking_request import BookingRequest
from models.feedback import Feedback
from models.slot import Slot
from models.teacher import Teacher
from models.user import User
from security.password import generate_password, hash_password
from security.password_policy import validate_password
from security.rbac import ROLE_ADMIN, ROLE_TEACHER, require_roles
from security.session import revoke_all_sessions
from services import reservations, teachers as teacher_service
from services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from services.validation import parse_id
from utils.audit import log_event
from utils.auth_context import login_required
from utils.mappers import (
    map_booking_with_teacher,
    map_feedback,
    map_settings,
    map_slot,
    map_teacher,
    map_user,
)
from utils.seed import get_settings
from utils.timeslots import normalize_time_range, parse_iso_date

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _bcrypt_rounds() -> int:
    return current_app.config.get("BCRYPT_ROUNDS", 12)


def _username_for(teacher: Teacher) -> str:
    base = re.sub(r"[^a-z0-9]+", ".", teacher.name.lower()).strip(".") or "lehrkraft"
    candidate = base
    n = 2
    while User.query.filter_by(username=candidate).first():
        candidate = f"{base}{n}"
        n += 1
    return candidate


# ---------- bookings ----------
@admin_bp.get("/bookings")
@require_roles(ROLE_ADMIN)
def list_bookings():
    rows = reservations.list_bookings()
    return jsonify(bookings=[map_booking_with_teacher(s) for s in rows]), 200


@admin_bp.delete("/bookings/<int:slot_id>")
@require_roles(ROLE_ADMIN)
def cancel_booking(slot_id: int):
    slot = reservations.cancel(slot_id)
    log_event("ADMIN_BOOKING_CANCEL", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(success=True, message="Booking cancelled successfully"), 200


# ---------- teachers ----------
@admin_bp.get("/teachers")
@require_roles(ROLE_ADMIN)
def list_teachers():
    logins = {u.teacher_id: u.username for u in User.query.filter(User.teacher_id.isnot(None)).all()}
    out = []
    for t in teacher_service.list_teachers():
        row = map_teacher(t)
        row["username"] = logins.get(t.id)
        out.append(row)
    return jsonify(teachers=out), 200


@admin_bp.post("/teachers")
@require_roles(ROLE_ADMIN)
def create_teacher():
    teacher, created = teacher_service.create_teacher(request.get_json(silent=True) or {})
    log_event("TEACHER_CREATE", user_id=g.user.id, entity="teacher", entity_id=teacher.id,
              metadata={"slots_created": created})
    return jsonify(success=True, teacher=map_teacher(teacher), slotsCreated=created), 201


@admin_bp.put("/teachers/<int:teacher_id>")
@require_roles(ROLE_ADMIN)
def update_teacher(teacher_id: int):
    teacher = teacher_service.update_teacher(teacher_id, request.get_json(silent=True) or {})
    log_event("TEACHER_UPDATE", user_id=g.user.id, entity="teacher", entity_id=teacher.id)
    return jsonify(success=True, teacher=map_teacher(teacher)), 200


@admin_bp.delete("/teachers/<int:teacher_id>")
@require_roles(ROLE_ADMIN)
def delete_teacher(teacher_id: int):
    teacher_service.delete_teacher(teacher_id)
    log_event("TEACHER_DELETE", user_id=g.user.id, entity="teacher", entity_id=teacher_id)
    return jsonify(success=True, message="Teacher deleted successfully"), 200


@admin_bp.post("/teachers/<int:teacher_id>/generate-slots")
@require_roles(ROLE_ADMIN)
def generate_teacher_slots(teacher_id: int):
    teacher = db.session.get(Teacher, teacher_id)
    if not teacher:
        return jsonify(error="Teacher not found"), 404

    day = teacher_service.event_date_string()
    created, skipped = teacher_service.generate_slots(teacher, day)
    log_event("SLOTS_GENERATE", user_id=g.user.id, entity="teacher", entity_id=teacher_id,
              metadata={"created": created, "skipped": skipped, "date": day})
    return jsonify(success=True, created=created, skipped=skipped, date=day), 200


@admin_bp.put("/teachers/<int:teacher_id>/reset-login")
@require_roles(ROLE_ADMIN)
def reset_teacher_login(teacher_id: int):
    teacher = db.session.get(Teacher, teacher_id)
    if not teacher:
        return jsonify(error="Teacher not found"), 404

    temp_password = generate_password()
    user = User.query.filter_by(teacher_id=teacher_id, role=ROLE_TEACHER).first()
    if user is None:
        user = User(username=_username_for(teacher), role=ROLE_TEACHER, teacher_id=teacher_id,
                    password_hash=hash_password(temp_password, rounds=_bcrypt_rounds()))
        db.session.add(user)
        db.session.commit()
    else:
        user.password_hash = hash_password(temp_password, rounds=_bcrypt_rounds())
        db.session.commit()
        revoke_all_sessions(user.id)

    log_event("TEACHER_LOGIN_RESET", user_id=g.user.id, entity="user", entity_id=user.id)
    # The temporary password is only ever shown in this response
    return jsonify(success=True, username=user.username, tempPassword=temp_password), 200


# ---------- slots ----------
@admin_bp.get("/slots")
@require_roles(ROLE_ADMIN)
def list_slots():
    q = Slot.query
    teacher_id = request.args.get("teacherId", type=int)
    if teacher_id:
        q = q.filter_by(teacher_id=teacher_id)
    rows = q.order_by(Slot.teacher_id.asc(), Slot.date.asc(), Slot.time.asc()).all()
    return jsonify(slots=[map_booking_with_teacher(s) for s in rows]), 200


def _slot_payload(data):
    time = normalize_time_range(data.get("time"))
    date = str(data.get("date") or "").strip()
    if not data.get("time") or not date:
        raise ValidationError("time and date required")
    if not time:
        raise ValidationError("time must look like HH:MM - HH:MM")
    return time, date


@admin_bp.post("/slots")
@require_roles(ROLE_ADMIN)
def create_slot():
    data = request.get_json(silent=True) or {}
    teacher_id = data.get("teacher_id") or data.get("teacherId")
    if not teacher_id:
        return jsonify(error="teacher_id, time, and date required"), 400
    time, date = _slot_payload(data)

    teacher = db.session.get(Teacher, parse_id(teacher_id, "teacherId"))
    if not teacher:
        return jsonify(error="Teacher not found"), 404

    slot = Slot(teacher_id=teacher.id, time=time, date=date, booked=False)
    db.session.add(slot)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Slot already exists for that teacher, date and time")

    log_event("SLOT_CREATE", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(success=True, slot=map_slot(slot)), 201


@admin_bp.put("/slots/<int:slot_id>")
@require_roles(ROLE_ADMIN)
def update_slot(slot_id: int):
    data = request.get_json(silent=True) or {}
    time, date = _slot_payload(data)

    slot = db.session.get(Slot, slot_id)
    if not slot:
        raise NotFoundError("Slot not found")

    slot.time = time
    slot.date = date
    slot.updated_at = datetime.utcnow()
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Slot already exists for that teacher, date and time")

    log_event("SLOT_UPDATE", user_id=g.user.id, entity="slot", entity_id=slot_id)
    return jsonify(success=True, slot=map_slot(db.session.get(Slot, slot_id))), 200


@admin_bp.delete("/slots/<int:slot_id>")
@require_roles(ROLE_ADMIN)
def delete_slot(slot_id: int):
    slot = db.session.get(Slot, slot_id)
    if not slot:
        raise NotFoundError("Slot not found")

    BookingRequest.query.filter_by(assigned_slot_id=slot_id).update(
        {"assigned_slot_id": None}, synchronize_session=False
    )
    db.session.delete(slot)
    db.session.commit()

    log_event("SLOT_DELETE", user_id=g.user.id, entity="slot", entity_id=slot_id)
    return jsonify(success=True, message="Slot deleted successfully"), 200


# ---------- settings ----------
@admin_bp.get("/settings")
@login_required
def get_event_settings():
    return jsonify(map_settings(get_settings())), 200


@admin_bp.put("/settings")
@require_roles(ROLE_ADMIN)
def update_event_settings():
    data = request.get_json(silent=True) or {}
    event_name = str(data.get("event_name") or "").strip()
    raw_date = data.get("event_date")
    if not event_name or not raw_date:
        return jsonify(error="event_name and event_date required"), 400

    event_date = parse_iso_date(raw_date)
    if event_date is None:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    settings = get_settings()
    settings.event_name = event_name
    settings.event_date = event_date
    db.session.commit()

    log_event("SETTINGS_UPDATE", user_id=g.user.id, entity="settings", entity_id=settings.id,
              metadata={"event_name": event_name, "event_date": event_date.isoformat()})
    return jsonify(success=True, settings=map_settings(settings)), 200


# ---------- users ----------
@admin_bp.get("/users")
@require_roles(ROLE_ADMIN)
def list_users():
    users = User.query.order_by(User.created_at.desc()).limit(500).all()
    return jsonify(users=[map_user(u) for u in users]), 200


@admin_bp.post("/users")
@require_roles(ROLE_ADMIN)
def create_user():
    data = request.get_json(silent=True) or {}
    username = str(data.get("username") or "").strip()
    password = data.get("password") or ""
    role = data.get("role") or ROLE_TEACHER
    teacher_id = data.get("teacherId") or data.get("teacher_id")

    if not username:
        return jsonify(error="username required"), 400
    if role not in (ROLE_ADMIN, ROLE_TEACHER):
        return jsonify(error="role must be admin or teacher"), 400
    valid, errors = validate_password(password)
    if not valid:
        return jsonify(error="Password does not meet policy", details=errors), 400

    if teacher_id is not None:
        teacher_id = parse_id(teacher_id, "teacherId")
        if not db.session.get(Teacher, teacher_id):
            return jsonify(error="Teacher not found"), 404
    elif role == ROLE_TEACHER:
        return jsonify(error="teacherId required for teacher accounts"), 400

    user = User(username=username, role=role, teacher_id=teacher_id,
                password_hash=hash_password(password, rounds=_bcrypt_rounds()))
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        log_event("USER_CREATE_FAIL_EXISTS", user_id=g.user.id, metadata={"username": username})
        return jsonify(error="Username already exists"), 409

    log_event("USER_CREATE", user_id=g.user.id, entity="user", entity_id=user.id, metadata={"role": role})
    return jsonify(success=True, user=map_user(user)), 201


@admin_bp.delete("/users/<int:user_id>")
@require_roles(ROLE_ADMIN)
def delete_user(user_id: int):
    if user_id == g.user.id:
        raise ForbiddenError("Cannot delete your own account")

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    if user.role == ROLE_ADMIN and User.query.filter_by(role=ROLE_ADMIN).count() <= 1:
        raise ForbiddenError("Cannot remove the last admin")

    revoke_all_sessions(user.id)
    db.session.delete(user)
    db.session.commit()

    log_event("USER_DELETE", user_id=g.user.id, entity="user", entity_id=user_id)
    return jsonify(success=True, message="User deleted"), 200


# ---------- feedback ----------
@admin_bp.get("/feedback")
@require_roles(ROLE_ADMIN)
def list_feedback():
    rows = Feedback.query.order_by(Feedback.created_at.desc(), Feedback.id.desc()).limit(500).all()
    return jsonify(feedback=[map_feedback(f) for f in rows]), 200


@admin_bp.delete("/feedback/<int:feedback_id>")
@require_roles(ROLE_ADMIN)
def delete_feedback(feedback_id: int):
    row = db.session.get(Feedback, feedback_id)
    if not row:
        return jsonify(error="Feedback not found"), 404
    db.session.delete(row)
    db.session.commit()
    return jsonify(success=True), 200


# ---------- audit trail ----------
@admin_bp.get("/audit-logs")
@require_roles(ROLE_ADMIN)
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action == action)
    user_id = request.args.get("user_id", type=int)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": r.id,
            "created_at": r.timestamp.isoformat(),
            "user_id": r.user_id,
            "action": r.action,
            "entity": r.entity,
            "entity_id": r.entity_id,
            "ip": r.ip,
            "metadata": r.metadata_json,
        }
        for r in rows
    ]), 200
