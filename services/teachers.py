from datetime import date, datetime

from models import db
from models.slot import Slot
from models.teacher import Teacher
from models.user import User
from services.errors import NotFoundError, ValidationError
from utils.seed import get_settings
from utils.timeslots import format_event_date, generate_time_slots

SYSTEMS = ("dual", "vollzeit")
SALUTATIONS = ("Herr", "Frau", "Divers")


def _text(data: dict, key: str):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip() or None


def _clean_teacher_payload(data: dict) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("JSON object required")
    name = _text(data, "name")
    if not name:
        raise ValidationError("name required")

    system = _text(data, "system") or "dual"
    if system not in SYSTEMS:
        raise ValidationError('system must be "dual" or "vollzeit"')

    salutation = _text(data, "salutation")
    if salutation and salutation not in SALUTATIONS:
        raise ValidationError("salutation must be Herr, Frau or Divers")

    room = _text(data, "room")
    if room and len(room) > 60:
        raise ValidationError("Raum darf maximal 60 Zeichen lang sein")

    return {
        "name": name,
        "subject": _text(data, "subject") or "Sprechstunde",
        "system": system,
        "salutation": salutation,
        "email": (_text(data, "email") or "").lower() or None,
        "room": room,
    }


def event_date_string() -> str:
    settings = get_settings()
    return format_event_date(settings.event_date or date.today())


def generate_slots(teacher: Teacher, day: str = None):
    """
    Inserts the quarter-hour slots of the teacher's system for one day.
    Existing times are skipped. Returns (created, skipped).
    """
    day = day or event_date_string()
    existing = {
        s.time for s in Slot.query.filter_by(teacher_id=teacher.id, date=day).all()
    }
    created = 0
    skipped = 0
    now = datetime.utcnow()
    for t in generate_time_slots(teacher.system):
        if t in existing:
            skipped += 1
            continue
        db.session.add(Slot(teacher_id=teacher.id, date=day, time=t, booked=False, created_at=now, updated_at=now))
        created += 1
    db.session.commit()
    return created, skipped


def create_teacher(data: dict):
    """Returns (teacher, slots_created)."""
    values = _clean_teacher_payload(data)
    teacher = Teacher(**values)
    db.session.add(teacher)
    db.session.commit()

    created, _ = generate_slots(teacher)
    return teacher, created


def update_teacher(teacher_id: int, data: dict) -> Teacher:
    teacher = db.session.get(Teacher, teacher_id)
    if teacher is None:
        raise NotFoundError("Teacher not found")

    for key, value in _clean_teacher_payload(data).items():
        setattr(teacher, key, value)
    db.session.commit()
    return teacher


def delete_teacher(teacher_id: int):
    teacher = db.session.get(Teacher, teacher_id)
    if teacher is None:
        raise NotFoundError("Teacher not found")

    if Slot.query.filter_by(teacher_id=teacher_id).count() > 0:
        raise ValidationError(
            "Lehrkraft kann nicht gelöscht werden, da noch Termine existieren. "
            "Bitte zuerst alle Termine löschen."
        )

    User.query.filter_by(teacher_id=teacher_id).update({"teacher_id": None}, synchronize_session=False)
    db.session.delete(teacher)
    db.session.commit()


def list_teachers():
    return Teacher.query.order_by(Teacher.id.asc()).all()
