from datetime import datetime, timedelta

from app.models import UsageLimit, User, UserEvent


def _register(client, **overrides):
    payload = {
        "username": "jamie",
        "email": "Jamie@DramaLlama.ai",
        "password": "correct-horse",
    }
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


def test_register_creates_user_usage_row_and_sends_code(client, db, sent_emails):
    response = _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["user"]["email"] == "jamie@dramallama.ai"
    assert body["user"]["tier"] == "free"
    assert body["user"]["email_verified"] is False

    user = db.query(User).filter(User.username == "jamie").one()
    assert len(user.verification_code) == 6
    assert user.verification_code_expires > datetime.utcnow() + timedelta(hours=23)
    assert db.query(UsageLimit).filter(UsageLimit.user_id == user.id).count() == 1
    assert db.query(UserEvent).filter(UserEvent.event_type == "registration").count() == 1

    assert len(sent_emails) == 1
    assert sent_emails[0]["to"] == "jamie@dramallama.ai"
    assert user.verification_code in sent_emails[0]["html"]


def test_register_rejects_duplicates_and_disposable_email(client):
    assert _register(client).status_code == 201

    duplicate_name = _register(client, email="other@dramallama.ai")
    assert duplicate_name.status_code == 400
    assert duplicate_name.json()["detail"] == "Username already exists"

    duplicate_email = _register(client, username="jamie2", email="JAMIE@dramallama.ai")
    assert duplicate_email.status_code == 400
    assert duplicate_email.json()["detail"] == "Email already registered"

    disposable = _register(client, username="throwaway", email="me@mailinator.com")
    assert disposable.status_code == 400
    assert "disposable" in disposable.json()["detail"]


def test_register_validates_lengths(client):
    assert _register(client, username="jo").status_code == 422
    assert _register(client, password="short").status_code == 422


def test_login_with_username_or_email(client, make_user, db):
    make_user(username="jamie", email="jamie@dramallama.ai", password="correct-horse")

    by_name = client.post("/api/auth/login", json={"username": "Jamie", "password": "correct-horse"})
    by_email = client.post("/api/auth/login", json={"username": "JAMIE@dramallama.ai", "password": "correct-horse"})
    wrong = client.post("/api/auth/login", json={"username": "jamie", "password": "battery-staple"})

    assert by_name.status_code == 200
    assert by_email.status_code == 200
    assert wrong.status_code == 401
    assert db.query(UserEvent).filter(UserEvent.event_type == "login").count() == 2


def test_get_user_requires_token(client, make_user, auth_headers):
    user = make_user()

    assert client.get("/api/auth/user").status_code == 401
    assert client.get("/api/auth/user", headers={"Authorization": "Bearer nonsense"}).status_code == 401

    response = client.get("/api/auth/user", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["username"] == "jamie"


def test_check_trial_requires_device_id(client):
    assert client.get("/api/auth/check-trial").status_code == 400

    response = client.get("/api/auth/check-trial", headers={"X-Device-Id": "device-1"})
    assert response.json() == {"can_use": True, "used": 0, "limit": 2}


def test_verify_email_with_code(client, db):
    _register(client)
    user = db.query(User).filter(User.username == "jamie").one()
    code = user.verification_code

    assert client.post("/api/auth/verify-email", json={"code": "WRONG1"}).status_code == 400

    response = client.post("/api/auth/verify-email", json={"code": code.lower(), "email": "jamie@dramallama.ai"})
    assert response.status_code == 200

    db.expire_all()
    assert user.email_verified is True
    assert user.verification_code is None
    assert db.query(UserEvent).filter(UserEvent.event_type == "email_verified").count() == 1


def test_expired_verification_code_is_rejected(client, db):
    _register(client)
    user = db.query(User).filter(User.username == "jamie").one()
    user.verification_code_expires = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    response = client.post("/api/auth/verify-email", json={"code": user.verification_code})

    assert response.status_code == 400
    assert "expired" in response.json()["detail"]


def test_resend_verification_issues_new_code(client, db, sent_emails):
    _register(client)
    user = db.query(User).filter(User.username == "jamie").one()
    response = client.post("/api/auth/resend-verification", json={"email": "jamie@dramallama.ai"})

    assert response.status_code == 200
    db.expire_all()
    assert len(sent_emails) == 2
    assert user.verification_code in sent_emails[1]["html"]
    assert len(user.verification_code) == 6
    assert user.verification_code_expires > datetime.utcnow()


def test_forgot_and_reset_password(client, db, make_user, sent_emails):
    user = make_user(password="correct-horse")

    unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@dramallama.ai"})
    assert unknown.status_code == 200
    assert sent_emails == []

    response = client.post("/api/auth/forgot-password", json={"email": "jamie@dramallama.ai"})
    assert response.status_code == 200
    assert response.json()["message"] == unknown.json()["message"]

    db.expire_all()
    token = user.password_reset_token
    assert token in sent_emails[0]["html"]
    assert user.password_reset_expires <= datetime.utcnow() + timedelta(hours=1)

    bad = client.post("/api/auth/reset-password", json={"token": "nope", "new_password": "new-password-1"})
    assert bad.status_code == 400

    ok = client.post("/api/auth/reset-password", json={"token": token, "new_password": "new-password-1"})
    assert ok.status_code == 200

    login = client.post("/api/auth/login", json={"username": "jamie", "password": "new-password-1"})
    assert login.status_code == 200
    reused = client.post("/api/auth/reset-password", json={"token": token, "new_password": "another-pass"})
    assert reused.status_code == 400
