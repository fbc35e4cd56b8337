"""
Live support chat for site visitors (anonymous or signed in).
Admins answer from the /api/admin/chat routes.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.dependencies.auth import get_optional_user
from app.models.chat_conversation import ChatConversation
from app.models.chat_message import ChatMessage
from app.models.user import User
from app.schemas.chat import (
    StartConversationRequest,
    SendChatMessageRequest,
    ChatMessageResponse,
    ChatConversationResponse,
)
from app.services import email_service

logger = logging.getLogger(__name__)

router = APIRouter()

PREVIEW_LENGTH = 100


def get_conversation_or_404(conversation_id: int, db: Session) -> ChatConversation:
    conversation = db.query(ChatConversation).filter(ChatConversation.id == conversation_id).first()
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found"
        )
    return conversation


def add_chat_message(
    db: Session,
    conversation: ChatConversation,
    text: str,
    sender_name: str,
    is_admin: bool,
) -> ChatMessage:
    """Store a message and update the conversation preview and unread count."""
    now = datetime.utcnow()
    message = ChatMessage(
        conversation_id=conversation.id,
        message=text,
        is_admin=is_admin,
        sender_name=sender_name,
        timestamp=now,
        read=is_admin,
    )
    db.add(message)
    conversation.last_message = text[:PREVIEW_LENGTH]
    conversation.last_message_time = now
    conversation.updated_at = now
    if not is_admin:
        conversation.unread_count = (conversation.unread_count or 0) + 1
    db.commit()
    db.refresh(message)
    return message


def _check_owner(conversation: ChatConversation, user: Optional[User]) -> None:
    # Conversations opened while signed in belong to that account
    if conversation.user_id and (not user or user.id != conversation.user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not your conversation"
        )


@router.post("/conversations", response_model=ChatConversationResponse, status_code=status.HTTP_201_CREATED)
def start_conversation(
    request: StartConversationRequest,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    conversation = ChatConversation(
        user_id=user.id if user else None,
        user_email=user.email if user else request.user_email,
        user_name=request.user_name or (user.username if user else "Anonymous"),
        status="active",
        unread_count=0,
        created_at=now,
        updated_at=now,
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    logger.info("Support conversation %s started by %s", conversation.id, conversation.user_name)

    if request.message:
        add_chat_message(db, conversation, request.message, conversation.user_name, is_admin=False)
        email_service.send_chat_notification(
            conversation.id, conversation.user_name, request.message, conversation.user_email
        )
        db.refresh(conversation)

    return conversation


@router.post("/conversations/{conversation_id}/messages", response_model=ChatMessageResponse)
def send_message(
    conversation_id: int,
    request: SendChatMessageRequest,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    conversation = get_conversation_or_404(conversation_id, db)
    _check_owner(conversation, user)
    if conversation.status == "closed":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This conversation has been closed. Please start a new one."
        )

    sender_name = request.sender_name or conversation.user_name
    message = add_chat_message(db, conversation, request.message, sender_name, is_admin=False)
    email_service.send_chat_notification(
        conversation.id, sender_name, request.message, conversation.user_email
    )
    return message


@router.get("/conversations/{conversation_id}/messages", response_model=List[ChatMessageResponse])
def get_messages(
    conversation_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    conversation = get_conversation_or_404(conversation_id, db)
    _check_owner(conversation, user)
    return conversation.messages
