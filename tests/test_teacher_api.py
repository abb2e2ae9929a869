from models import db
from models.feedback import Feedback
from models.slot import Slot

from conftest import PARENT_BOOKING, login, subjects, token_from


def _book(client, slot_id):
    assert client.post("/api/bookings", json={"slotId": slot_id, **PARENT_BOOKING}).status_code == 200


def test_requires_login(client):
    assert client.get("/api/teacher/bookings").status_code == 401


def test_teacher_sees_only_own_bookings(client, teacher_client, teacher, make_teacher):
    other = make_teacher(name="Bernd Berg")
    _book(client, teacher.slots[0].id)
    _book(client, other.slots[0].id)

    bookings = teacher_client.get("/api/teacher/bookings").get_json()["bookings"]
    assert len(bookings) == 1
    assert bookings[0]["teacherId"] == teacher.id
    assert bookings[0]["email"] == "maria@example.com"


def test_teacher_slots(teacher_client, teacher):
    slots = teacher_client.get("/api/teacher/slots").get_json()["slots"]
    assert [s["time"] for s in slots][:2] == ["16:00 - 16:15", "16:15 - 16:30"]


def test_accept_flow_over_http(client, teacher_client, teacher, outbox):
    slot_id = teacher.slots[0].id
    _book(client, slot_id)

    early = teacher_client.put(f"/api/teacher/bookings/{slot_id}/accept")
    assert early.status_code == 409

    client.get(f"/api/bookings/verify/{token_from(outbox[0])}")
    resp = teacher_client.put(f"/api/teacher/bookings/{slot_id}/accept")
    assert resp.status_code == 200
    assert resp.get_json()["slot"]["status"] == "confirmed"

    assert teacher_client.put(f"/api/teacher/bookings/{slot_id}/accept").status_code == 200
    assert len([s for s in subjects(outbox) if "Termin bestätigt" in s]) == 1


def test_teacher_cannot_cancel_foreign_booking(client, teacher_client, make_teacher):
    other = make_teacher(name="Bernd Berg")
    slot_id = other.slots[0].id
    _book(client, slot_id)

    resp = teacher_client.delete(f"/api/teacher/bookings/{slot_id}")
    assert resp.status_code == 404
    assert db.session.get(Slot, slot_id).booked is True


def test_teacher_cancels_own_booking(client, teacher_client, teacher):
    slot_id = teacher.slots[0].id
    _book(client, slot_id)

    assert teacher_client.delete(f"/api/teacher/bookings/{slot_id}").status_code == 200
    slot = db.session.get(Slot, slot_id)
    assert slot.booked is False
    assert slot.email is None


def test_info_and_room(teacher_client, teacher):
    info = teacher_client.get("/api/teacher/info").get_json()["teacher"]
    assert info["id"] == teacher.id

    resp = teacher_client.put("/api/teacher/room", json={"room": "B12"})
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Not found"}


def test_change_password(app, teacher_client):
    wrong = teacher_client.put(
        "/api/teacher/password", json={"currentPassword": "falsch123", "newPassword": "neuesPasswort"}
    )
    assert wrong.status_code == 400

    short = teacher_client.put(
        "/api/teacher/password", json={"currentPassword": "geheim123", "newPassword": "kurz"}
    )
    assert short.status_code == 400

    ok = teacher_client.put(
        "/api/teacher/password", json={"currentPassword": "geheim123", "newPassword": "neuesPasswort"}
    )
    assert ok.status_code == 200

    login(app.test_client(), "anna", "neuesPasswort")


def test_feedback(teacher_client):
    assert teacher_client.post("/api/teacher/feedback", json={"message": "  "}).status_code == 400
    assert teacher_client.post("/api/teacher/feedback", json={"message": "x" * 2001}).status_code == 400

    resp = teacher_client.post("/api/teacher/feedback", json={"message": "Mehr Pausen bitte"})
    assert resp.status_code == 201
    assert Feedback.query.one().message == "Mehr Pausen bitte"


def test_account_without_teacher_record(app, make_user):
    make_user("chef", role="admin")
    c = app.test_client()
    login(c, "chef")

    resp = c.get("/api/teacher/bookings")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Teacher ID not found for this account"


def test_state_change_needs_csrf_header(client, teacher_client, teacher):
    slot_id = teacher.slots[0].id
    _book(client, slot_id)

    teacher_client.environ_base.pop("HTTP_X_CSRF_TOKEN")
    resp = teacher_client.delete(f"/api/teacher/bookings/{slot_id}")
    assert resp.status_code == 403
    assert db.session.get(Slot, slot_id).booked is True
