import logging

from config import Config
from models import db
from models.slot import Slot
from services import notifications
from utils.emailer import Mailer, SmtpTransport

from conftest import PARENT_BOOKING, FailingTransport, RecordingTransport, plain_body


def test_unconfigured_mailer_skips(caplog):
    mailer = Mailer(transport=None)
    with caplog.at_level(logging.WARNING):
        result = mailer.send_mail("a@b.de", "Betreff", "Text")
    assert result == {"skipped": True}
    assert "Skipping send" in caplog.text


def test_mailer_builds_multipart_message():
    transport = RecordingTransport()
    result = Mailer(transport=transport, from_email="sprechtag@test").send_mail(
        "a@b.de", "Betreff", "Text", html="<p>Text</p>"
    )
    assert "messageId" in result
    msg = transport.outbox[0]
    assert msg["From"] == "sprechtag@test"
    assert msg.get_body(preferencelist=("html",)).get_content().strip() == "<p>Text</p>"


def test_mailer_from_config():
    assert Mailer.from_config({"SMTP_HOST": None}).configured is False

    class SmtpConfig(Config):
        SMTP_HOST = "smtp.test"
        SMTP_PORT = 2525

    config = {k: getattr(SmtpConfig, k) for k in dir(SmtpConfig) if k.isupper()}
    mailer = Mailer.from_config(config)
    assert isinstance(mailer.transport, SmtpTransport)
    assert mailer.transport.port == 2525


def test_transport_errors_are_swallowed(app, teacher, caplog):
    app.extensions["mailer"].transport = FailingTransport()
    client = app.test_client()

    with caplog.at_level(logging.WARNING):
        resp = client.post("/api/bookings", json={"slotId": teacher.slots[0].id, **PARENT_BOOKING})

    assert resp.status_code == 200
    assert db.session.get(Slot, teacher.slots[0].id).status == "reserved"
    assert "smtp down" in caplog.text


def test_verification_link_uses_public_url(app, teacher, outbox):
    assert notifications.send_verification("a@b.de", "20.11.2026", "16:00 - 16:15", teacher, "abc") is True
    assert "http://frontend.test/verify?token=abc" in plain_body(outbox[0])


def test_html_escapes_teacher_message(app, teacher, outbox):
    notifications.send_confirmation(
        "a@b.de", "20.11.2026", "16:00 - 16:15", teacher, teacher_message="<b>Raum A</b>"
    )
    html = outbox[0].get_body(preferencelist=("html",)).get_content()
    assert "&lt;b&gt;Raum A&lt;/b&gt;" in html


def test_empty_recipient_is_not_sent(app, teacher, outbox):
    assert notifications.send_cancellation(None, "20.11.2026", "16:00 - 16:15", teacher) is False
    assert outbox == []
