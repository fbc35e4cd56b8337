"""
Promo code validation, redemption and the admin usage report.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.promo_code import PromoCode
from app.models.promo_usage import PromoUsage
from app.models.user import User
from app.models.user_event import UserEventType
from app.services.analytics import track_user_event

logger = logging.getLogger(__name__)

PROMO_DISCOUNT_DAYS = 30


class PromoCodeError(Exception):
    """Raised when a promo code cannot be used."""


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def get_promo_code(db: Session, code: str) -> Optional[PromoCode]:
    return db.query(PromoCode).filter(PromoCode.code == normalize_code(code)).first()


def validate_promo_code(db: Session, code: str, user: Optional[User] = None, now: Optional[datetime] = None) -> PromoCode:
    """
    Return the promo code if it can be used right now (and by this user, if given).
    Raises PromoCodeError with a user-facing message otherwise.
    """
    now = now or datetime.utcnow()
    promo = get_promo_code(db, code)
    if not promo:
        raise PromoCodeError("Invalid promo code")
    if not promo.is_active:
        raise PromoCodeError("This promo code is no longer active")
    if promo.start_date and promo.start_date > now:
        raise PromoCodeError("This promo code is not active yet")
    if promo.expiry_date and promo.expiry_date < now:
        raise PromoCodeError("This promo code has expired")
    if promo.used_count >= promo.max_uses:
        raise PromoCodeError("This promo code has reached its usage limit")
    if user is not None:
        already_used = db.query(PromoUsage).filter(
            PromoUsage.promo_code_id == promo.id,
            PromoUsage.user_id == user.id
        ).first()
        if already_used:
            raise PromoCodeError("You have already used this promo code")
    return promo


def redeem_promo_code(db: Session, user: User, code: str, now: Optional[datetime] = None) -> PromoUsage:
    """
    Apply a promo code's discount to the user for 30 days and record the usage.
    """
    now = now or datetime.utcnow()
    promo = validate_promo_code(db, code, user, now)

    usage = PromoUsage(
        promo_code_id=promo.id,
        user_id=user.id,
        used_at=now,
        applied_discount=promo.discount_percentage,
        target_tier=promo.target_tier,
    )
    db.add(usage)
    promo.used_count += 1
    user.discount_percentage = promo.discount_percentage
    user.discount_expiry_date = now + timedelta(days=PROMO_DISCOUNT_DAYS)
    db.commit()
    db.refresh(usage)

    logger.info("User %s redeemed promo code %s (%s%%)", user.id, promo.code, promo.discount_percentage)
    track_user_event(db, user.id, UserEventType.PROMO_REDEEMED, new_value=promo.code)
    return usage


def get_promo_code_report(db: Session) -> list[dict]:
    """Usage per promo code, most used first."""
    usage_rows = db.query(
        PromoUsage.promo_code_id,
        func.count(PromoUsage.id).label("usage_count"),
        func.coalesce(func.sum(PromoUsage.applied_discount), 0).label("discount_amount")
    ).group_by(PromoUsage.promo_code_id).all()
    usage_map = {row.promo_code_id: row for row in usage_rows}

    report = []
    for promo in db.query(PromoCode).order_by(PromoCode.created_at.desc()).all():
        row = usage_map.get(promo.id)
        usage_count = int(row.usage_count) if row else 0
        report.append({
            "code": promo.code,
            "usageCount": usage_count,
            "conversionRate": round(usage_count / promo.max_uses, 4) if promo.max_uses else 0.0,
            "discountAmount": int(row.discount_amount) if row else 0,
            "isActive": promo.is_active,
            "createdAt": promo.created_at,
            "expiresAt": promo.expiry_date,
        })
    report.sort(key=lambda entry: entry["usageCount"], reverse=True)
    return report
