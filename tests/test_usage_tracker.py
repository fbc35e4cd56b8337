from datetime import datetime

from app.core.tier_limits import ANONYMOUS_TRIAL_LIMIT
from app.services.usage_tracker import (
    check_and_reset_usage,
    check_anonymous_trial,
    check_usage_limit,
    get_anonymous_usage,
    get_or_create_usage_limit,
    get_user_usage,
    increment_anonymous_usage,
    increment_usage,
)


def test_free_user_is_blocked_after_monthly_limit(db, make_user):
    user = make_user(tier="free")

    for _ in range(5):
        allowed, message = check_usage_limit(user, db)
        assert allowed and message == ""
        increment_usage(user.id, db)

    allowed, message = check_usage_limit(user, db)
    assert not allowed
    assert "Monthly limit reached" in message


def test_instant_tier_allows_a_single_deep_dive(db, make_user):
    user = make_user(tier="instant")
    increment_usage(user.id, db)

    allowed, message = check_usage_limit(user, db)
    assert not allowed
    assert "Deep Dive" in message


def test_pro_and_admin_are_unlimited(db, make_user):
    pro = make_user(username="prouser", email="pro@dramallama.ai", tier="pro")
    admin = make_user(username="boss", email="boss@dramallama.ai", tier="free", is_admin=True)
    for _ in range(10):
        increment_usage(pro.id, db)
        increment_usage(admin.id, db)

    assert check_usage_limit(pro, db) == (True, "")
    assert check_usage_limit(admin, db) == (True, "")
    assert get_user_usage(pro, db) == {"used": 10, "limit": None, "tier": "pro"}


def test_usage_resets_when_month_changes(db, make_user):
    user = make_user()
    usage = get_or_create_usage_limit(user.id, db)
    usage.monthly_total = 5
    usage.last_reset_date = datetime(2026, 1, 31, 23, 0)
    db.commit()

    assert check_and_reset_usage(usage, db, now=datetime(2026, 1, 31, 23, 59)) is False
    assert usage.monthly_total == 5

    assert check_and_reset_usage(usage, db, now=datetime(2026, 2, 1, 0, 1)) is True
    assert usage.monthly_total == 0


def test_usage_resets_when_only_year_changes(db, make_user):
    user = make_user()
    usage = get_or_create_usage_limit(user.id, db)
    usage.monthly_total = 3
    usage.last_reset_date = datetime(2025, 3, 10)
    db.commit()

    assert check_and_reset_usage(usage, db, now=datetime(2026, 3, 10)) is True
    assert usage.monthly_total == 0


def test_anonymous_trial_stops_at_limit(db):
    device = "device-123"
    assert get_anonymous_usage(device, db) == 0

    for _ in range(ANONYMOUS_TRIAL_LIMIT):
        assert check_anonymous_trial(device, db)[0] is True
        increment_anonymous_usage(device, db)

    allowed, message = check_anonymous_trial(device, db)
    assert not allowed
    assert "Free trial limit reached" in message
    assert get_anonymous_usage("another-device", db) == 0
