"""Service container - wires configuration, storage, platform access, and domain services."""
import logging
from dataclasses import dataclass

from aiogram import Bot

from bot.config import Config
from bot.services.approval_service import ApprovalService
from bot.services.conversation_service import ConversationService
from bot.services.group_service import GroupService
from bot.services.moderation_service import ModerationService
from bot.services.telegram_ops import SafeTelegram
from bot.services.template_renderer import TemplateRenderer
from bot.services.template_service import TemplateService
from database.db import Database

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Simple dependency container to share services across handlers."""

    config: Config
    db: Database
    ops: SafeTelegram
    approval_service: ApprovalService
    group_service: GroupService
    moderation_service: ModerationService
    template_service: TemplateService
    template_renderer: TemplateRenderer
    conversations: ConversationService

    @classmethod
    def create(cls, config: Config, db: Database, bot: Bot) -> "ServiceContainer":
        """
        Build the service container with all dependencies.

        Args:
            config: Loaded Config instance
            db: Database (connected lazily on first session)
            bot: aiogram Bot used for every outbound call

        Returns:
            ServiceContainer with initialized services
        """
        logger.info("Building service container...")

        ops = SafeTelegram(bot, timeout=config.api_timeout)
        approval_service = ApprovalService(db, config)
        group_service = GroupService(db)
        moderation_service = ModerationService(db, ops, approval_service, warn_limit=config.warn_limit)
        template_service = TemplateService(db)
        template_renderer = TemplateRenderer(ops)

        logger.info("Service container ready")

        return cls(
            config=config,
            db=db,
            ops=ops,
            approval_service=approval_service,
            group_service=group_service,
            moderation_service=moderation_service,
            template_service=template_service,
            template_renderer=template_renderer,
            conversations=ConversationService(),
        )
