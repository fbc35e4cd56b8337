from app.models.user import User
from app.models.analysis import Analysis
from app.models.usage_limit import UsageLimit
from app.models.anonymous_usage import AnonymousUsage
from app.models.user_event import UserEvent, UserEventType
from app.models.promo_code import PromoCode
from app.models.promo_usage import PromoUsage
from app.models.chat_conversation import ChatConversation
from app.models.chat_message import ChatMessage

__all__ = [
    "User",
    "Analysis",
    "UsageLimit",
    "AnonymousUsage",
    "UserEvent",
    "UserEventType",
    "PromoCode",
    "PromoUsage",
    "ChatConversation",
    "ChatMessage"
]
