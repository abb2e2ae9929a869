from flask import Blueprint, request, jsonify

from models.slot import Slot
from models.teacher import Teacher
from services import booking_requests, reservations
from services.errors import ConflictError, NotFoundError, ValidationError
from services.teachers import event_date_string, list_teachers
from services.validation import parse_id, parse_visitor_details
from utils.audit import log_event
from utils.mappers import map_booking_request, map_public_slot, map_settings, map_slot, map_teacher
from utils.seed import get_settings

public_bp = Blueprint("public", __name__, url_prefix="/api")


@public_bp.get("/health")
def health():
    return jsonify(
        status="ok",
        teacherCount=Teacher.query.count(),
        slotCount=Slot.query.count(),
        bookedCount=Slot.query.filter_by(booked=True).count(),
    ), 200


@public_bp.get("/teachers")
def teachers():
    return jsonify(teachers=[map_teacher(t) for t in list_teachers()]), 200


@public_bp.get("/settings")
def settings():
    return jsonify(map_settings(get_settings())), 200


@public_bp.get("/slots")
def slots():
    raw = request.args.get("teacherId")
    if not raw:
        return jsonify(error="teacherId query param required"), 400
    teacher_id = parse_id(raw, "teacherId")

    rows = (
        Slot.query
        .filter_by(teacher_id=teacher_id)
        .order_by(Slot.date.asc(), Slot.time.asc())
        .all()
    )
    return jsonify(slots=[map_public_slot(s) for s in rows]), 200


# ---------- VISITORS: reserve a slot (DOUBLE-BOOKING SAFE) ----------
@public_bp.post("/bookings")
def create_booking():
    data = request.get_json(silent=True) or {}
    if not data.get("slotId"):
        raise ValidationError("slotId, visitorType, className, email required")
    slot_id = parse_id(data.get("slotId"), "slotId")
    details = parse_visitor_details(data)

    try:
        slot, _ = reservations.reserve(slot_id, details)
    except ConflictError:
        log_event("BOOKING_FAIL_ALREADY_BOOKED", entity="slot", entity_id=slot_id)
        raise

    log_event("BOOKING_RESERVE", entity="slot", entity_id=slot.id, metadata={"visitor_type": slot.visitor_type})
    return jsonify(success=True, updatedSlot=map_slot(slot)), 200


@public_bp.get("/bookings/verify/<token>")
def verify_booking(token):
    try:
        slot, verified_at = reservations.verify(token)
    except NotFoundError:
        # Not a slot token; it may belong to a booking request
        row = booking_requests.verify_request(token)
        log_event("REQUEST_VERIFY", entity="booking_request", entity_id=row.id)
        return jsonify(
            success=True,
            message="E-Mail-Adresse bestätigt. Die Lehrkraft kann Ihre Anfrage jetzt annehmen.",
            verifiedAt=row.verified_at.isoformat(),
        ), 200

    log_event("BOOKING_VERIFY", entity="slot", entity_id=slot.id)
    return jsonify(
        success=True,
        message="E-Mail-Adresse erfolgreich bestätigt",
        verifiedAt=verified_at.isoformat(),
    ), 200


# ---------- VISITORS: request a time window ----------
@public_bp.post("/booking-requests")
def create_booking_request():
    data = request.get_json(silent=True) or {}
    if not data.get("teacherId") or not data.get("requestedTime"):
        raise ValidationError("teacherId and requestedTime required")
    teacher_id = parse_id(data.get("teacherId"), "teacherId")
    details = parse_visitor_details(data)
    date = str(data.get("date") or "").strip() or event_date_string()

    row, _ = booking_requests.create_request(teacher_id, date, data.get("requestedTime"), details)

    log_event("REQUEST_CREATE", entity="booking_request", entity_id=row.id, metadata={"teacher_id": teacher_id})
    return jsonify(success=True, request=map_booking_request(row)), 201
