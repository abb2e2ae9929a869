import threading

import pytest

from app import create_app
from models import db
from models.slot import Slot
from services import reservations
from services import teachers as teacher_service
from services.errors import ConflictError, NotFoundError
from services.validation import parse_visitor_details
from utils.emailer import Mailer

from conftest import (
    COMPANY_BOOKING,
    PARENT_BOOKING,
    FailingTransport,
    RecordingTransport,
    TestConfig as BaseTestConfig,
    subjects,
)


def _confirmations(outbox):
    return [s for s in subjects(outbox) if "Termin bestätigt" in s]


def test_reserve_parent_clears_company_fields(teacher):
    slot_id = teacher.slots[0].id
    slot, token = reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))

    assert slot.booked is True
    assert slot.status == "reserved"
    assert slot.email == "maria@example.com"
    assert slot.company_name is None
    assert slot.trainee_name is None
    assert slot.representative_name is None
    assert slot.verification_token == token
    assert len(token) == 64
    assert slot.verified_at is None


def test_reserve_booked_slot_conflicts_and_keeps_occupant(teacher):
    slot_id = teacher.slots[0].id
    reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))

    with pytest.raises(ConflictError):
        reservations.reserve(slot_id, parse_visitor_details(COMPANY_BOOKING))

    slot = db.session.get(Slot, slot_id)
    assert slot.visitor_type == "parent"
    assert slot.parent_name == "Maria Muster"


def test_reserve_unknown_slot_conflicts(app):
    with pytest.raises(ConflictError):
        reservations.reserve(999, parse_visitor_details(PARENT_BOOKING))


def test_verify_unknown_token_is_not_found(app):
    with pytest.raises(NotFoundError) as exc:
        reservations.verify("deadbeef")
    assert exc.value.message == "Ungültiger oder abgelaufener Link"


def test_verify_twice_only_moves_timestamp(teacher):
    slot_id = teacher.slots[0].id
    _, token = reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))

    slot, first = reservations.verify(token)
    slot, second = reservations.verify(token)

    assert second >= first
    assert slot.verified_at == second
    assert slot.status == "reserved"
    assert slot.parent_name == "Maria Muster"


def test_accept_before_verification_conflicts(teacher):
    slot_id = teacher.slots[0].id
    reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))

    with pytest.raises(ConflictError):
        reservations.accept(slot_id, teacher.id)
    assert db.session.get(Slot, slot_id).status == "reserved"


def test_accept_sends_exactly_one_confirmation(teacher, outbox):
    slot_id = teacher.slots[0].id
    _, token = reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))
    reservations.verify(token)

    slot = reservations.accept(slot_id, teacher.id)
    assert slot.status == "confirmed"
    assert slot.confirmation_sent_at is not None

    reservations.accept(slot_id, teacher.id)
    reservations.verify(token)
    assert len(_confirmations(outbox)) == 1


def test_accept_other_teachers_slot_is_not_found(teacher, make_teacher):
    other = make_teacher(name="Bernd Berg")
    slot_id = teacher.slots[0].id
    _, token = reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))
    reservations.verify(token)

    with pytest.raises(NotFoundError):
        reservations.accept(slot_id, other.id)


def test_verify_after_accept_sends_pending_confirmation(teacher, app):
    slot_id = teacher.slots[0].id
    _, token = reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))
    reservations.verify(token)

    # confirmation fails on accept, goes out on the next verification
    app.extensions["mailer"].transport = FailingTransport()
    slot = reservations.accept(slot_id, teacher.id)
    assert slot.status == "confirmed"
    assert slot.confirmation_sent_at is None

    app.extensions["mailer"].transport = RecordingTransport()
    slot, _ = reservations.verify(token)
    assert slot.confirmation_sent_at is not None
    assert len(_confirmations(app.extensions["mailer"].transport.outbox)) == 1


def test_cancel_resets_every_booking_field(teacher, outbox):
    slot_id = teacher.slots[0].id
    _, token = reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))
    reservations.verify(token)
    reservations.accept(slot_id, teacher.id)

    slot = reservations.cancel(slot_id, teacher_id=teacher.id)

    assert slot.booked is False
    assert slot.status is None
    for field in ("visitor_type", "parent_name", "student_name", "class_name", "email", "message",
                  "verification_token", "verified_at", "confirmation_sent_at"):
        assert getattr(slot, field) is None, field
    assert slot.cancellation_sent_at is not None
    assert any("storniert" in s for s in subjects(outbox))


def test_cancel_unverified_booking_sends_no_notice(teacher, outbox):
    slot_id = teacher.slots[0].id
    reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))

    slot = reservations.cancel(slot_id)
    assert slot.booked is False
    assert slot.cancellation_sent_at is None
    assert not any("storniert" in s for s in subjects(outbox))


def test_cancel_free_slot_is_not_found(teacher):
    with pytest.raises(NotFoundError):
        reservations.cancel(teacher.slots[0].id)


def test_expired_token_is_rejected(teacher, app):
    app.config["VERIFICATION_TOKEN_MAX_AGE_HOURS"] = 1
    slot_id = teacher.slots[0].id
    _, token = reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))

    slot = db.session.get(Slot, slot_id)
    slot.verification_sent_at = slot.verification_sent_at.replace(year=2000)
    db.session.commit()

    with pytest.raises(NotFoundError):
        reservations.verify(token)


def test_stale_token_does_not_verify_rebooked_slot(teacher, monkeypatch):
    slot_id = teacher.slots[0].id
    _, old_token = reservations.reserve(slot_id, parse_visitor_details(PARENT_BOOKING))
    real_expired = reservations.token_expired

    def rebook_in_between(sent_at, now):
        reservations.cancel(slot_id)
        reservations.reserve(slot_id, parse_visitor_details(COMPANY_BOOKING))
        return real_expired(sent_at, now)

    monkeypatch.setattr(reservations, "token_expired", rebook_in_between)
    with pytest.raises(NotFoundError):
        reservations.verify(old_token)

    slot = db.session.get(Slot, slot_id)
    assert slot.company_name == "Muster GmbH"
    assert slot.verification_token != old_token
    assert slot.verified_at is None


def test_concurrent_reserve_has_single_winner(tmp_path):
    class FileConfig(BaseTestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'sprechtag.db'}"

    app = create_app(FileConfig, mailer=Mailer(transport=RecordingTransport(), from_email="sprechtag@test"))
    with app.app_context():
        db.create_all()
        teacher, _ = teacher_service.create_teacher({"name": "Anna Schmidt", "system": "dual"})
        slot_id = teacher.slots[0].id
        db.session.remove()

    barrier = threading.Barrier(2)
    won, lost, errors = [], [], []
    bookings = [PARENT_BOOKING, COMPANY_BOOKING]

    def book(payload):
        with app.app_context():
            details = parse_visitor_details(payload)
            barrier.wait()
            try:
                reservations.reserve(slot_id, details)
                won.append(payload["visitorType"])
            except ConflictError:
                lost.append(payload["visitorType"])
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=book, args=(p,)) for p in bookings]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert len(won) == 1
    assert len(lost) == 1

    with app.app_context():
        slot = db.session.get(Slot, slot_id)
        assert slot.booked is True
        assert slot.visitor_type == won[0]
        db.session.remove()
        db.drop_all()
