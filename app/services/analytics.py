"""
User event tracking and the admin analytics summary.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.tier_limits import VALID_TIERS
from app.models.user import User
from app.models.user_event import UserEvent, UserEventType

logger = logging.getLogger(__name__)

REGISTRATION_WINDOW_DAYS = 30


def track_user_event(
    db: Session,
    user_id: int,
    event_type: str,
    old_value: Optional[str] = None,
    new_value: Optional[str] = None,
) -> Optional[int]:
    """
    Log a user event. Returns the event id, or None if logging failed.
    Failures are logged and rolled back so the calling request still succeeds.
    """
    if isinstance(event_type, UserEventType):
        event_type = event_type.value
    try:
        event = UserEvent(
            user_id=user_id,
            event_type=event_type,
            old_value=old_value,
            new_value=new_value,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event.id
    except Exception as e:
        db.rollback()
        logger.error("Failed to track %s event for user %s: %s", event_type, user_id, e)
        return None


def get_user_events(
    db: Session,
    user_id: Optional[int] = None,
    event_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 500,
) -> list[UserEvent]:
    """Events matching the filters, newest first."""
    query = db.query(UserEvent)
    if user_id is not None:
        query = query.filter(UserEvent.user_id == user_id)
    if event_type:
        query = query.filter(UserEvent.event_type == event_type)
    if start_date:
        query = query.filter(UserEvent.created_at >= start_date)
    if end_date:
        query = query.filter(UserEvent.created_at <= end_date)
    return query.order_by(UserEvent.created_at.desc(), UserEvent.id.desc()).limit(limit).all()


def _date_key(d) -> Optional[str]:
    # PostgreSQL returns date, SQLite returns a string
    if d is None:
        return None
    if hasattr(d, "isoformat"):
        return d.isoformat()[:10]
    return str(d)[:10]


def get_analytics_summary(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Summary for the admin dashboard:
    - totalUsers
    - usersByTier: count per tier (every known tier present, zero if none)
    - registrationsByDate: last 30 days including today, zero-filled, oldest first
    - tierConversionRate: tier_change transitions "old->new" with counts, most frequent first
    """
    now = now or datetime.utcnow()

    total_users = db.query(func.count(User.id)).scalar() or 0

    users_by_tier = {tier: 0 for tier in VALID_TIERS}
    for tier, count in db.query(User.tier, func.count(User.id)).group_by(User.tier).all():
        users_by_tier[tier or "free"] = users_by_tier.get(tier or "free", 0) + int(count)

    end_day = now.date()
    first_day = end_day - timedelta(days=REGISTRATION_WINDOW_DAYS - 1)
    window_start = datetime.combine(first_day, datetime.min.time())

    registrations_map = {}
    rows = db.query(
        func.date(User.created_at).label("date"),
        func.count(User.id).label("count")
    ).filter(User.created_at >= window_start).group_by(func.date(User.created_at)).all()
    for row in rows:
        key = _date_key(row.date)
        if key:
            registrations_map[key] = int(row.count or 0)

    registrations_by_date = []
    for i in range(REGISTRATION_WINDOW_DAYS):
        day = first_day + timedelta(days=i)
        key = day.isoformat()
        registrations_by_date.append({"date": key, "count": registrations_map.get(key, 0)})

    transitions: dict[str, int] = {}
    tier_changes = db.query(UserEvent).filter(
        UserEvent.event_type == UserEventType.TIER_CHANGE.value
    ).all()
    for event in tier_changes:
        key = f"{event.old_value or 'unknown'}->{event.new_value or 'unknown'}"
        transitions[key] = transitions.get(key, 0) + 1

    tier_conversion_rate = [
        {"transition": key, "count": count}
        for key, count in sorted(transitions.items(), key=lambda item: (-item[1], item[0]))
    ]

    return {
        "totalUsers": int(total_users),
        "usersByTier": users_by_tier,
        "registrationsByDate": registrations_by_date,
        "tierConversionRate": tier_conversion_rate,
    }
