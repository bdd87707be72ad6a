import smtplib
import time
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from contact_api.core.errors import DeliveryError
from contact_api.core.mailer import OutgoingMessage
from contact_api.core.settings import Settings
from contact_api.main import create_app


class FakeMailer:
    name = "fake"

    def __init__(self):
        self.sent: List[OutgoingMessage] = []
        self.fail_with: Optional[str] = None
        self.verify_error: Optional[str] = None
        self.closed = False

    async def send(self, message: OutgoingMessage) -> None:
        if self.fail_with:
            raise DeliveryError(self.fail_with, backend=self.name)
        self.sent.append(message)

    async def verify(self) -> Dict[str, Any]:
        if self.verify_error:
            raise DeliveryError(self.verify_error, backend=self.name)
        return {"result": True}

    async def close(self) -> None:
        self.closed = True


class FakeSMTP:
    instances = []
    starttls_offered = True
    fail_send = False
    login_delay = 0.0

    def __init__(self, host, port, timeout=None, context=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.tls = False
        self.logged_in = None
        self.sent = []
        self.quit_called = False
        FakeSMTP.instances.append(self)

    def ehlo(self):
        return 250, b"ok"

    def has_extn(self, name):
        return name == "starttls" and self.starttls_offered

    def starttls(self, context=None):
        self.tls = True

    def login(self, user, password):
        if self.login_delay:
            time.sleep(self.login_delay)
        self.logged_in = (user, password)

    def send_message(self, msg):
        if self.fail_send:
            raise smtplib.SMTPServerDisconnected("connection lost")
        self.sent.append(msg)

    def quit(self):
        self.quit_called = True

    def close(self):
        pass


class FakeSMTPSSL(FakeSMTP):
    pass


VALID_PAYLOAD = {
    "name": "Jane Doe",
    "email": "jane@example.com",
    "subject": "Hello",
    "message": "This is a test message.",
}


def make_settings(**overrides) -> Settings:
    values = dict(
        smtp_host="smtp.example.com",
        smtp_user="user",
        smtp_pass="secret",
        brevo_api_key=None,
        cors_origins="https://cwingo.github.io,http://localhost:5173",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(FakeSMTP, "starttls_offered", True)
    monkeypatch.setattr(FakeSMTP, "fail_send", False)
    monkeypatch.setattr(FakeSMTP, "login_delay", 0.0)
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTPSSL)
    return FakeSMTP


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def app(settings, mailer):
    return create_app(settings, mailer=mailer)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)
