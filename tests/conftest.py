import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Must be set before app.core.config is imported; load_dotenv never overrides these
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_EMAIL"] = "owner@dramallama.ai"
os.environ["RESEND_API_KEY"] = ""
os.environ["SENDGRID_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = "test-key"
os.environ["AZURE_VISION_ENDPOINT"] = ""
os.environ["AZURE_VISION_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import app
from app.models import User
from app.services import email_service
from app.utils.auth import create_access_token, hash_password

SAMPLE_CHAT = """Alex: Hey, are we still on for dinner tonight?
Sam: I guess, if you actually show up this time
Alex: That's not fair, I was late once because of work
Sam: You always have an excuse for everything
Alex: I'm trying here, can we talk about it calmly?
Sam: Fine, let's talk at dinner then"""


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture outgoing emails instead of calling a provider."""
    sent = []

    def fake_send(to_email, subject, html_body, text_body=None):
        sent.append({"to": to_email, "subject": subject, "html": html_body, "text": text_body})
        return True

    monkeypatch.setattr(email_service, "send_email", fake_send)
    return sent


@pytest.fixture
def client(db, sent_emails):
    # No context manager: startup would run migrations against DATABASE_URL
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make_user(
        username="jamie",
        email="jamie@dramallama.ai",
        password="correct-horse",
        tier="free",
        is_admin=False,
        email_verified=True,
    ):
        user = User(
            username=username,
            email=email,
            hashed_password=hash_password(password),
            tier=tier,
            is_admin=is_admin,
            email_verified=email_verified,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}

    return _auth_headers


@pytest.fixture
def sample_chat():
    return SAMPLE_CHAT
