from pathlib import Path
import os
import tempfile

# settings are read at import time; point them at a throwaway database first
_TMP = Path(tempfile.mkdtemp(prefix="admin_panel_tests_"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["ENV"] = "dev"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SMTP_HOST"] = ""
os.environ.pop("TENANTS", None)
os.environ.pop("DEFAULT_TENANT", None)
os.environ.pop("OTP_REQUIRED_ROLES", None)

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from admin_panel import services
from admin_panel.database import engine
from admin_panel.main import app
from admin_panel.routers.auth import login_limiter
from admin_panel.utils import mailer


class Outbox:
    """Collects mail the services would have sent."""

    def __init__(self):
        self.otps = []
        self.mails = []
        self.fail = False

    def send_otp_email(self, email, otp):
        if self.fail:
            return False
        self.otps.append((email, otp))
        return True

    def send_email(self, to, subject, body, html=None):
        if self.fail:
            return False
        self.mails.append({"to": to, "subject": subject, "body": body})
        return True

    @property
    def last_otp(self):
        return self.otps[-1][1]


@pytest.fixture(autouse=True)
def fresh_db():
    """Recreate every table so each test starts from an empty database."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    login_limiter.reset()
    yield


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    box = Outbox()
    monkeypatch.setattr(mailer, "send_otp_email", box.send_otp_email)
    monkeypatch.setattr(mailer, "send_email", box.send_email)
    return box


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user():
    def _make(email="admin@example.com", password="secret123", role="admin", name="Admin"):
        with Session(engine) as session:
            return services.AuthService(session).register(name, email, password, role)
    return _make


@pytest.fixture
def headers_for():
    """Bearer headers for an existing user, skipping the login flow."""
    def _headers(user):
        with Session(engine) as session:
            svc = services.AuthService(session)
            token = svc.issue_access_token(svc.user_repo.get(user.id))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def superadmin(make_user):
    return make_user("root@example.com", "rootpass1", "superadmin", "Root")


@pytest.fixture
def super_headers(superadmin, headers_for):
    return headers_for(superadmin)


@pytest.fixture
def admin_headers(make_user, headers_for):
    return headers_for(make_user("editor@example.com", "editorpass", "admin", "Editor"))
