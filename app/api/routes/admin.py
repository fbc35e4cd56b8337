"""
Admin dashboard routes: users and tiers, analytics, promo codes, announcements
and the support chat inbox. Every route requires an admin account.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from app.core.config import ADMIN_EMAIL
from app.core.tier_limits import VALID_TIERS
from app.db.session import get_db
from app.dependencies.auth import require_admin
from app.models.chat_conversation import ChatConversation
from app.models.chat_message import ChatMessage
from app.models.promo_code import PromoCode
from app.models.user import User
from app.models.user_event import UserEventType
from app.schemas.admin import (
    AdminUserResponse,
    UpdateTierRequest,
    UpdateAdminRequest,
    UpdateDiscountRequest,
    UserEventResponse,
    PromoCodeCreate,
    PromoCodeUpdate,
    PromoCodeResponse,
    PromoCodeReportEntry,
    AnnouncementRequest,
    AnnouncementResponse,
)
from app.schemas.chat import ChatConversationResponse, ChatMessageResponse, SendChatMessageRequest
from app.api.routes.support_chat import add_chat_message, get_conversation_or_404
from app.services import email_service
from app.services.analytics import get_analytics_summary, get_user_events, track_user_event
from app.services.promo_codes import get_promo_code, get_promo_code_report, normalize_code

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_DISCOUNT_DAYS = 30


def _get_user_or_404(user_id: int, db: Session) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.get("/users", response_model=List[AdminUserResponse])
def list_users(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return db.query(User).order_by(User.created_at.desc()).all()


@router.put("/user/tier", response_model=AdminUserResponse)
def update_user_tier(
    request: UpdateTierRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    new_tier = request.tier.strip().lower()
    if new_tier not in VALID_TIERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid tier. Must be one of: {', '.join(VALID_TIERS)}"
        )

    user = _get_user_or_404(request.user_id, db)
    old_tier = user.tier
    user.tier = new_tier
    db.commit()
    db.refresh(user)

    if old_tier != new_tier:
        track_user_event(db, user.id, UserEventType.TIER_CHANGE, old_value=old_tier, new_value=new_tier)
        logger.info("Admin %s changed user %s tier: %s -> %s", admin.id, user.id, old_tier, new_tier)
    return user


@router.put("/user/admin", response_model=AdminUserResponse)
def update_user_admin(
    request: UpdateAdminRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Grant or revoke admin rights. Only the owner account (ADMIN_EMAIL) may do this."""
    if not ADMIN_EMAIL or (admin.email or "").lower() != ADMIN_EMAIL.lower():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the owner account can change admin rights"
        )

    user = _get_user_or_404(request.user_id, db)
    if user.id == admin.id and not request.is_admin:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot remove your own admin rights"
        )
    user.is_admin = request.is_admin
    db.commit()
    db.refresh(user)
    return user


@router.put("/user/discount", response_model=AdminUserResponse)
def update_user_discount(
    request: UpdateDiscountRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = _get_user_or_404(request.user_id, db)
    discount = max(0, min(100, request.discount_percentage))
    user.discount_percentage = discount
    if discount:
        days = request.expiry_days or DEFAULT_DISCOUNT_DAYS
        user.discount_expiry_date = datetime.utcnow() + timedelta(days=days)
    else:
        user.discount_expiry_date = None
    db.commit()
    db.refresh(user)
    return user


@router.get("/analytics")
def analytics(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return get_analytics_summary(db)


@router.get("/events", response_model=List[UserEventResponse])
def events(
    user_id: Optional[int] = None,
    event_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(500, ge=1, le=5000),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return get_user_events(db, user_id, event_type, start_date, end_date, limit)


# Promo codes

@router.get("/promo-codes", response_model=List[PromoCodeResponse])
def list_promo_codes(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return db.query(PromoCode).order_by(PromoCode.created_at.desc()).all()


@router.post("/promo-codes", response_model=PromoCodeResponse, status_code=status.HTTP_201_CREATED)
def create_promo_code(
    request: PromoCodeCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    code = normalize_code(request.code)
    if get_promo_code(db, code):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Promo code already exists"
        )
    if request.target_tier and request.target_tier not in VALID_TIERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid target tier. Must be one of: {', '.join(VALID_TIERS)}"
        )

    data = request.model_dump(exclude={"code"})
    if data.get("start_date") is None:
        data.pop("start_date")
    promo = PromoCode(code=code, created_by_id=admin.id, **data)
    db.add(promo)
    db.commit()
    db.refresh(promo)
    logger.info("Admin %s created promo code %s", admin.id, promo.code)
    return promo


@router.put("/promo-codes/{promo_id}", response_model=PromoCodeResponse)
def update_promo_code(
    promo_id: int,
    request: PromoCodeUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    promo = db.query(PromoCode).filter(PromoCode.id == promo_id).first()
    if not promo:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Promo code not found"
        )
    if request.target_tier and request.target_tier not in VALID_TIERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid target tier. Must be one of: {', '.join(VALID_TIERS)}"
        )

    for field, value in request.model_dump(exclude_unset=True).items():
        setattr(promo, field, value)
    db.commit()
    db.refresh(promo)
    return promo


@router.get("/promo-codes/report", response_model=List[PromoCodeReportEntry])
def promo_code_report(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return get_promo_code_report(db)


@router.post("/email/send", response_model=AnnouncementResponse)
def send_announcement(
    request: AnnouncementRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Email all verified users, or only `test_email` when given."""
    if request.test_email:
        recipients = [request.test_email]
    else:
        recipients = [
            email for (email,) in db.query(User.email).filter(User.email_verified.is_(True)).all()
        ]
    logger.info("Admin %s sending announcement '%s' to %s recipients", admin.id, request.subject, len(recipients))
    return email_service.send_announcement(recipients, request.subject, request.html)


# Support chat inbox

@router.get("/chat/conversations", response_model=List[ChatConversationResponse])
def list_chat_conversations(
    status_filter: Optional[str] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    query = db.query(ChatConversation)
    if status_filter:
        query = query.filter(ChatConversation.status == status_filter)
    return query.order_by(ChatConversation.updated_at.desc()).all()


@router.get("/chat/conversations/{conversation_id}/messages", response_model=List[ChatMessageResponse])
def get_chat_messages(
    conversation_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Messages of a conversation, oldest first. Marks the visitor's messages read."""
    conversation = get_conversation_or_404(conversation_id, db)
    db.query(ChatMessage).filter(
        ChatMessage.conversation_id == conversation.id,
        ChatMessage.is_admin.is_(False),
        ChatMessage.read.is_(False)
    ).update({ChatMessage.read: True}, synchronize_session=False)
    conversation.unread_count = 0
    db.commit()
    db.refresh(conversation)
    return conversation.messages


@router.post("/chat/conversations/{conversation_id}/reply", response_model=ChatMessageResponse)
def reply_to_chat(
    conversation_id: int,
    request: SendChatMessageRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    conversation = get_conversation_or_404(conversation_id, db)
    if conversation.status == "closed":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Conversation is closed"
        )
    sender_name = request.sender_name or "Support"
    return add_chat_message(db, conversation, request.message, sender_name, is_admin=True)


@router.put("/chat/conversations/{conversation_id}/close", response_model=ChatConversationResponse)
def close_chat(
    conversation_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    conversation = get_conversation_or_404(conversation_id, db)
    conversation.status = "closed"
    conversation.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(conversation)
    return conversation
