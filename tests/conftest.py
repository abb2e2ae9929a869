import re

import pytest

from app import create_app
from config import Config
from models import db
from models.user import User
from security.password import hash_password
from services import teachers as teacher_service
from utils.emailer import Mailer

TOKEN_RE = re.compile(r"token=([0-9a-f]{64})")

PARENT_BOOKING = {
    "visitorType": "parent",
    "parentName": "Maria Muster",
    "studentName": "Max Muster",
    "className": "10A",
    "email": "Maria@Example.com",
    "message": "Bitte um Rückruf",
}

COMPANY_BOOKING = {
    "visitorType": "company",
    "companyName": "Muster GmbH",
    "traineeName": "Tina Azubi",
    "representativeName": "Herr Chef",
    "className": "FI21",
    "email": "ausbildung@muster.de",
}


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    BCRYPT_ROUNDS = 4
    EVENT_NAME = "Test Sprechtag"
    EVENT_DATE = "2026-11-20"
    PUBLIC_BASE_URL = "http://frontend.test"
    SESSION_COOKIE_SECURE = False
    LOG_LEVEL = "WARNING"


class RecordingTransport:
    def __init__(self):
        self.outbox = []

    def send(self, msg):
        self.outbox.append(msg)


class FailingTransport:
    def send(self, msg):
        raise ConnectionError("smtp down")


def plain_body(msg) -> str:
    return msg.get_body(preferencelist=("plain",)).get_content()


def subjects(outbox):
    return [m["Subject"] for m in outbox]


def token_from(msg) -> str:
    return TOKEN_RE.search(plain_body(msg)).group(1)


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def app(transport):
    app = create_app(TestConfig, mailer=Mailer(transport=transport, from_email="sprechtag@test"))
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def outbox(transport):
    return transport.outbox


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_teacher(app):
    def _make(name="Anna Schmidt", system="dual", **extra):
        teacher, _ = teacher_service.create_teacher({"name": name, "system": system, **extra})
        return teacher
    return _make


@pytest.fixture()
def make_user(app):
    def _make(username, password="geheim123", role="teacher", teacher_id=None):
        user = User(
            username=username,
            role=role,
            teacher_id=teacher_id,
            password_hash=hash_password(password, rounds=4),
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


def login(client, username, password="geheim123"):
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.get_json()
    client.environ_base["HTTP_X_CSRF_TOKEN"] = client.get_cookie("csrf_token").value
    return resp


@pytest.fixture()
def teacher(make_teacher):
    return make_teacher()


@pytest.fixture()
def teacher_client(app, teacher, make_user):
    make_user("anna", teacher_id=teacher.id)
    c = app.test_client()
    login(c, "anna")
    return c


@pytest.fixture()
def admin_client(app, make_user):
    make_user("admin", role="admin")
    c = app.test_client()
    login(c, "admin")
    return c
