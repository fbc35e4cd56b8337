from datetime import datetime, timedelta

import pytest

from app.models import PromoCode, PromoUsage, UserEvent
from app.services.promo_codes import (
    PromoCodeError,
    get_promo_code_report,
    redeem_promo_code,
    validate_promo_code,
)


@pytest.fixture
def make_promo(db):
    def _make_promo(code="SPRING20", discount=20, max_uses=100, **fields):
        promo = PromoCode(code=code, discount_percentage=discount, max_uses=max_uses, **fields)
        db.add(promo)
        db.commit()
        db.refresh(promo)
        return promo

    return _make_promo


def test_validate_checks_window_and_usage(db, make_promo):
    now = datetime(2026, 10, 19, 12, 0)
    make_promo(code="LATER", start_date=now + timedelta(days=1))
    make_promo(code="OLD", start_date=now - timedelta(days=60), expiry_date=now - timedelta(days=1))
    make_promo(code="OFF", is_active=False, start_date=now - timedelta(days=1))
    make_promo(code="FULL", max_uses=1, used_count=1, start_date=now - timedelta(days=1))
    make_promo(code="GOOD", start_date=now - timedelta(days=1))

    for code, message in [
        ("NOPE", "Invalid promo code"),
        ("LATER", "not active yet"),
        ("OLD", "expired"),
        ("OFF", "no longer active"),
        ("FULL", "usage limit"),
    ]:
        with pytest.raises(PromoCodeError, match=message):
            validate_promo_code(db, code, now=now)

    assert validate_promo_code(db, " good ", now=now).code == "GOOD"


def test_redeem_applies_discount_for_30_days(db, make_user, make_promo):
    user = make_user()
    promo = make_promo(discount=25, target_tier="personal")
    now = datetime.utcnow()

    usage = redeem_promo_code(db, user, "spring20", now=now)

    db.refresh(user)
    db.refresh(promo)
    assert usage.applied_discount == 25
    assert usage.target_tier == "personal"
    assert user.discount_percentage == 25
    assert user.discount_expiry_date == now + timedelta(days=30)
    assert promo.used_count == 1
    assert db.query(UserEvent).filter(UserEvent.event_type == "promo_redeemed").count() == 1

    with pytest.raises(PromoCodeError, match="already used"):
        redeem_promo_code(db, user, "SPRING20")


def test_report_orders_by_usage(db, make_user, make_promo):
    make_promo(code="QUIET", max_uses=10)
    make_promo(code="POPULAR", discount=10, max_uses=4)
    for i in range(2):
        user = make_user(username=f"user{i}", email=f"user{i}@dramallama.ai")
        redeem_promo_code(db, user, "POPULAR")

    report = get_promo_code_report(db)

    assert [entry["code"] for entry in report] == ["POPULAR", "QUIET"]
    assert report[0]["usageCount"] == 2
    assert report[0]["conversionRate"] == 0.5
    assert report[0]["discountAmount"] == 20
    assert report[1]["usageCount"] == 0
    assert report[1]["conversionRate"] == 0.0


def test_redeem_route(client, db, make_user, make_promo, auth_headers):
    user = make_user()
    make_promo()

    response = client.post("/api/promo-codes/redeem", json={"code": "spring20"}, headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["code"] == "SPRING20"
    assert body["discount_percentage"] == 20
    assert db.query(PromoUsage).count() == 1

    again = client.post("/api/promo-codes/redeem", json={"code": "SPRING20"}, headers=auth_headers(user))
    assert again.status_code == 400

    history = client.get("/api/user/promo-usage", headers=auth_headers(user))
    assert [entry["code"] for entry in history.json()] == ["SPRING20"]


def test_redeem_requires_login(client, make_promo):
    make_promo()
    assert client.post("/api/promo-codes/redeem", json={"code": "SPRING20"}).status_code == 401


def test_validate_route(client, make_promo):
    make_promo(description="Spring sale")

    valid = client.get("/api/promo-codes/validate/spring20").json()
    invalid = client.get("/api/promo-codes/validate/WINTER").json()

    assert valid["valid"] is True
    assert valid["discount_percentage"] == 20
    assert valid["description"] == "Spring sale"
    assert invalid == {"valid": False, "message": "Invalid promo code"}
