from models import db
from models.audit_log import AuditLog
from models.slot import Slot

from conftest import COMPANY_BOOKING, PARENT_BOOKING, subjects, token_from


def test_health_counts(client, teacher):
    body = client.get("/api/health").get_json()
    assert body == {"status": "ok", "teacherCount": 1, "slotCount": 8, "bookedCount": 0}


def test_teachers_and_settings(client, teacher):
    teachers = client.get("/api/teachers").get_json()["teachers"]
    assert teachers[0]["name"] == "Anna Schmidt"
    assert teachers[0]["system"] == "dual"

    settings = client.get("/api/settings").get_json()
    assert settings["event_name"] == "Test Sprechtag"
    assert settings["event_date"] == "2026-11-20"


def test_slots_require_teacher_id(client):
    assert client.get("/api/slots").status_code == 400
    assert client.get("/api/slots?teacherId=abc").status_code == 400


def test_public_slots_hide_visitor_data(client, teacher):
    slot_id = teacher.slots[0].id
    client.post("/api/bookings", json={"slotId": slot_id, **PARENT_BOOKING})

    slots = client.get(f"/api/slots?teacherId={teacher.id}").get_json()["slots"]
    assert len(slots) == 8
    assert all(s["date"] == "20.11.2026" for s in slots)
    booked = [s for s in slots if s["booked"]]
    assert len(booked) == 1
    assert "email" not in booked[0]


def test_booking_slot_five_twice(client, teacher):
    assert db.session.get(Slot, 5) is not None

    first = client.post("/api/bookings", json={"slotId": 5, **PARENT_BOOKING})
    assert first.status_code == 200
    body = first.get_json()
    assert body["success"] is True
    assert body["updatedSlot"]["status"] == "reserved"
    assert body["updatedSlot"]["companyName"] is None

    second = client.post("/api/bookings", json={"slotId": 5, **PARENT_BOOKING})
    assert second.status_code == 409
    assert second.get_json()["error"] == "Slot already booked or not found"
    assert AuditLog.query.filter_by(action="BOOKING_FAIL_ALREADY_BOOKED").count() == 1


def test_booking_validation(client, teacher):
    slot_id = teacher.slots[0].id

    resp = client.post("/api/bookings", json={"slotId": slot_id, "visitorType": "parent"})
    assert resp.status_code == 400

    bad_type = dict(PARENT_BOOKING, visitorType="student")
    assert client.post("/api/bookings", json={"slotId": slot_id, **bad_type}).status_code == 400

    no_student = dict(PARENT_BOOKING)
    no_student.pop("studentName")
    assert client.post("/api/bookings", json={"slotId": slot_id, **no_student}).status_code == 400

    no_rep = dict(COMPANY_BOOKING)
    no_rep.pop("representativeName")
    assert client.post("/api/bookings", json={"slotId": slot_id, **no_rep}).status_code == 400

    bad_email = dict(PARENT_BOOKING, email="not-an-address")
    assert client.post("/api/bookings", json={"slotId": slot_id, **bad_email}).status_code == 400

    assert db.session.get(Slot, slot_id).booked is False


def test_company_booking_keeps_only_company_fields(client, teacher):
    slot_id = teacher.slots[1].id
    body = client.post("/api/bookings", json={"slotId": slot_id, **COMPANY_BOOKING}).get_json()
    slot = body["updatedSlot"]
    assert slot["companyName"] == "Muster GmbH"
    assert slot["representativeName"] == "Herr Chef"
    assert slot["parentName"] is None
    assert slot["studentName"] is None


def test_booking_sends_verification_link(client, teacher, outbox):
    slot_id = teacher.slots[0].id
    client.post("/api/bookings", json={"slotId": slot_id, **PARENT_BOOKING})

    assert len(outbox) == 1
    msg = outbox[0]
    assert msg["To"] == "maria@example.com"
    assert "bestätigen" in msg["Subject"]
    assert token_from(msg) == db.session.get(Slot, slot_id).verification_token


def test_verify_link(client, teacher, outbox):
    slot_id = teacher.slots[0].id
    client.post("/api/bookings", json={"slotId": slot_id, **PARENT_BOOKING})
    token = token_from(outbox[0])

    resp = client.get(f"/api/bookings/verify/{token}")
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True
    assert db.session.get(Slot, slot_id).verified_at is not None

    # link stays usable
    assert client.get(f"/api/bookings/verify/{token}").status_code == 200
    assert not any("Termin bestätigt" in s for s in subjects(outbox))


def test_verify_unknown_token(client):
    resp = client.get("/api/bookings/verify/" + "0" * 64)
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Ungültiger oder abgelaufener Link"}


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Not found"}


def test_security_headers(client):
    resp = client.get("/api/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
