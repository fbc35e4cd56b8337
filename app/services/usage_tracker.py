"""
Service for tracking analysis usage against tier limits.
Signed-in users have a monthly counter that resets when the calendar month changes.
Visitors without an account get a small free trial counted per device id.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.core.tier_limits import ANONYMOUS_TRIAL_LIMIT, get_tier_limit, normalize_tier
from app.models.anonymous_usage import AnonymousUsage
from app.models.usage_limit import UsageLimit
from app.models.user import User

logger = logging.getLogger(__name__)


def get_or_create_usage_limit(user_id: int, db: Session) -> UsageLimit:
    """
    Get or create the UsageLimit row for a user.
    """
    if not user_id:
        raise ValueError("user_id is required")

    usage = db.query(UsageLimit).filter(UsageLimit.user_id == user_id).first()
    if not usage:
        usage = UsageLimit(
            user_id=user_id,
            monthly_total=0,
            last_reset_date=datetime.utcnow()
        )
        db.add(usage)
        db.commit()
        db.refresh(usage)
        logger.info("Created usage limit row for user %s", user_id)
    return usage


def check_and_reset_usage(usage: UsageLimit, db: Session, now: Optional[datetime] = None) -> bool:
    """
    Reset the monthly counter when the calendar month (or year) has changed
    since the last reset. Returns True if a reset happened.
    """
    now = now or datetime.utcnow()
    last = usage.last_reset_date or now
    if last.month != now.month or last.year != now.year:
        logger.info(
            "Monthly usage reset for user %s (was %s, last reset %s)",
            usage.user_id, usage.monthly_total, last.isoformat()
        )
        usage.monthly_total = 0
        usage.last_reset_date = now
        db.commit()
        return True
    return False


def get_monthly_limit(user: User) -> Optional[int]:
    """Monthly limit for the user, None when unlimited."""
    if user.is_admin:
        return None
    limit = get_tier_limit(user.tier)
    return None if limit == -1 else limit


def get_user_usage(user: User, db: Session) -> dict:
    """
    Current usage snapshot: {"used", "limit", "tier"}.
    limit is None for unlimited tiers.
    """
    usage = get_or_create_usage_limit(user.id, db)
    check_and_reset_usage(usage, db)
    return {
        "used": usage.monthly_total,
        "limit": get_monthly_limit(user),
        "tier": normalize_tier(user.tier),
    }


def check_usage_limit(user: User, db: Session) -> tuple[bool, str]:
    """
    Check if the user can run another analysis this month.

    Returns:
        (is_allowed, error_message)
        - is_allowed: True if limit not reached, False otherwise
        - error_message: Error message if limit reached, empty string otherwise
    """
    limit = get_monthly_limit(user)
    if limit is None:
        return True, ""

    usage = get_or_create_usage_limit(user.id, db)
    check_and_reset_usage(usage, db)

    if usage.monthly_total >= limit:
        tier = normalize_tier(user.tier)
        if tier == "instant":
            return False, "Your one-time Deep Dive analysis has been used. Purchase another Deep Dive or upgrade to Pro."
        return False, (
            f"Monthly limit reached. You have used {usage.monthly_total} of {limit} analyses "
            f"on the {tier} plan. Upgrade to analyze more conversations."
        )
    return True, ""


def increment_usage(user_id: int, db: Session) -> int:
    """Increment the monthly counter for a user. Returns the new total."""
    usage = get_or_create_usage_limit(user_id, db)
    check_and_reset_usage(usage, db)
    usage.monthly_total += 1
    db.commit()
    logger.info("Incremented usage for user %s: %s", user_id, usage.monthly_total)
    return usage.monthly_total


def get_anonymous_usage(device_id: str, db: Session) -> int:
    """Number of trial analyses already used by a device."""
    row = db.query(AnonymousUsage).filter(AnonymousUsage.device_id == device_id).first()
    return row.usage_count if row else 0


def check_anonymous_trial(device_id: str, db: Session) -> tuple[bool, str]:
    used = get_anonymous_usage(device_id, db)
    if used >= ANONYMOUS_TRIAL_LIMIT:
        return False, (
            "Free trial limit reached. Create a free account to keep analyzing your conversations."
        )
    return True, ""


def increment_anonymous_usage(device_id: str, db: Session) -> int:
    """Increment the trial counter for a device. Returns the new count."""
    row = db.query(AnonymousUsage).filter(AnonymousUsage.device_id == device_id).first()
    now = datetime.utcnow()
    if not row:
        row = AnonymousUsage(device_id=device_id, usage_count=0, first_used_at=now)
        db.add(row)
    row.usage_count += 1
    row.last_used_at = now
    db.commit()
    logger.info("Anonymous trial usage for device %s: %s", device_id, row.usage_count)
    return row.usage_count
