import logging
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid

logger = logging.getLogger(__name__)


class SmtpTransport:
    """Opens one SMTP connection per message."""

    def __init__(self, host, port=587, username=None, password=None, use_tls=True, timeout=10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, msg: EmailMessage):
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)


class Mailer:
    """
    Outbound mail client. Built once by the app factory and stored in
    ``app.extensions["mailer"]``; flows call ``send_mail`` through it.
    """

    def __init__(self, transport=None, from_email="no-reply@example.com"):
        self.transport = transport
        self.from_email = from_email

    @classmethod
    def from_config(cls, config):
        host = config.get("SMTP_HOST")
        username = config.get("SMTP_USERNAME")
        from_email = config.get("SMTP_FROM_EMAIL") or username or "no-reply@example.com"
        if not host:
            return cls(transport=None, from_email=from_email)

        transport = SmtpTransport(
            host,
            port=config.get("SMTP_PORT", 587),
            username=username,
            password=config.get("SMTP_PASSWORD"),
            use_tls=config.get("SMTP_USE_TLS", True),
            timeout=config.get("SMTP_TIMEOUT_SECONDS", 10),
        )
        return cls(transport=transport, from_email=from_email)

    @property
    def configured(self) -> bool:
        return self.transport is not None

    def send_mail(self, to: str, subject: str, text: str, html: str = None) -> dict:
        """
        Single attempt, no retry. Transport errors propagate to the caller.
        """
        if not self.configured:
            logger.warning("Email not configured. Skipping send to %s subject: %s", to, subject)
            return {"skipped": True}

        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid()
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")

        self.transport.send(msg)
        logger.info("Email sent to %s subject: %s", to, subject)
        return {"messageId": msg["Message-ID"]}
