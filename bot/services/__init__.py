"""Services package - business logic layer."""
from bot.services.approval_service import ApprovalService
from bot.services.conversation_service import ConversationService
from bot.services.group_service import GroupService
from bot.services.moderation_service import ModerationService
from bot.services.telegram_ops import SafeTelegram
from bot.services.template_renderer import TemplateRenderer
from bot.services.template_service import TemplateService

__all__ = [
    "ApprovalService",
    "ConversationService",
    "GroupService",
    "ModerationService",
    "SafeTelegram",
    "TemplateRenderer",
    "TemplateService",
]
