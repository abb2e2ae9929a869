"""
Visitor emails for every booking transition. Sending is best-effort:
transport failures are logged and reported as ``False``, never raised.
"""
import logging
from urllib.parse import quote

from flask import current_app
from markupsafe import escape

from utils.emailer import Mailer

logger = logging.getLogger(__name__)

_GREETING = "Guten Tag,"
_SIGNATURE = "Mit freundlichen Grüßen\n\nIhr BKSB-Team"


def get_mailer() -> Mailer:
    return current_app.extensions["mailer"]


def _event_name() -> str:
    return current_app.config.get("EVENT_NAME", "BKSB Elternsprechtag")


def _deliver(to, subject, text, html) -> bool:
    """True only if the transport accepted the message."""
    if not to:
        return False
    try:
        result = get_mailer().send_mail(to=to, subject=subject, text=text, html=html)
    except Exception as exc:
        logger.warning("Sending email to %s failed: %s", to, exc)
        return False
    return not result.get("skipped")


def _appointment_lines(date, time, teacher):
    name = (teacher.name if teacher else None) or "—"
    room = (teacher.room if teacher else None) or "—"
    plain = f"Termin: {date} {time}\nLehrkraft: {name}\nRaum: {room}"
    html = (
        f"<p><strong>Termin:</strong> {escape(date)} {escape(time)}<br/>"
        f"<strong>Lehrkraft:</strong> {escape(name)}<br/>"
        f"<strong>Raum:</strong> {escape(room)}</p>"
    )
    return plain, html


def verification_link(token: str) -> str:
    base = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    return f"{base}/verify?token={quote(token)}"


def send_verification(to, date, time, teacher, token, is_request=False) -> bool:
    link = verification_link(token)
    what = "Terminanfrage" if is_request else "Terminbuchung"
    subject = f"{_event_name()} – Bitte E-Mail-Adresse bestätigen"
    details_plain, details_html = _appointment_lines(date, time, teacher)

    text = (
        f"{_GREETING}\n\n"
        f"vielen Dank für Ihre {what}. Bitte bestätigen Sie Ihre E-Mail-Adresse über folgenden Link:\n\n"
        f"{link}\n\n"
        f"{details_plain}\n\n"
        "Erst nach der Bestätigung kann die Lehrkraft den Termin annehmen.\n\n"
        f"{_SIGNATURE}"
    )
    html = (
        f"<p>{_GREETING}</p>"
        f"<p>vielen Dank für Ihre {what}. Bitte bestätigen Sie Ihre E-Mail-Adresse:</p>"
        f'<p><a href="{escape(link)}">E-Mail-Adresse bestätigen</a></p>'
        f"{details_html}"
        "<p>Erst nach der Bestätigung kann die Lehrkraft den Termin annehmen.</p>"
        "<p>Mit freundlichen Grüßen</p><p>Ihr BKSB-Team</p>"
    )
    return _deliver(to, subject, text, html)


def send_confirmation(to, date, time, teacher, teacher_message="", from_request=False) -> bool:
    subject = f"{_event_name()} – Termin bestätigt am {date} ({time})"
    intro = (
        "Ihre Terminanfrage wurde durch die Lehrkraft angenommen."
        if from_request
        else "Ihre Terminbuchung wurde durch die Lehrkraft bestätigt."
    )
    details_plain, details_html = _appointment_lines(date, time, teacher)

    note = (teacher_message or "").strip()
    note_plain = f"\n\nNachricht der Lehrkraft:\n{note}" if note else ""
    note_html = (
        f"<p><strong>Nachricht der Lehrkraft:</strong><br/>{escape(note)}</p>".replace("\n", "<br/>")
        if note
        else ""
    )

    text = f"{_GREETING}\n\n{intro}\n\n{details_plain}{note_plain}\n\n{_SIGNATURE}"
    html = (
        f"<p>{_GREETING}</p><p>{intro}</p>{details_html}{note_html}"
        "<p>Mit freundlichen Grüßen</p><p>Ihr BKSB-Team</p>"
    )
    return _deliver(to, subject, text, html)


def send_cancellation(to, date, time, teacher) -> bool:
    subject = f"{_event_name()} – Termin storniert am {date} ({time})"
    details_plain, details_html = _appointment_lines(date, time, teacher)
    outro = "Wenn Sie einen neuen Termin vereinbaren möchten, können Sie dies jederzeit über das Buchungssystem tun."

    text = (
        f"{_GREETING}\n\n"
        "wir bestätigen Ihnen die Stornierung Ihres Termins.\n\n"
        f"{details_plain}\n\n{outro}\n\n{_SIGNATURE}"
    )
    html = (
        f"<p>{_GREETING}</p><p>wir bestätigen Ihnen die Stornierung Ihres Termins.</p>"
        f"{details_html}<p>{outro}</p>"
        "<p>Mit freundlichen Grüßen</p><p>Ihr BKSB-Team</p>"
    )
    return _deliver(to, subject, text, html)
