"""Middleware that records every human sender the bot sees."""

from __future__ import annotations

import logging

from aiogram.dispatcher.middlewares.base import BaseMiddleware
from aiogram.types import CallbackQuery, Message

from bot.services.approval_service import ApprovalService

logger = logging.getLogger(__name__)


class UserRegistryMiddleware(BaseMiddleware):
    """Create or refresh the stored user on each message/callback, then continue."""

    def __init__(self, approval: ApprovalService):
        self.approval = approval

    async def __call__(self, handler, event, data):  # type: ignore[override]
        user = getattr(event, "from_user", None)
        if isinstance(event, (Message, CallbackQuery)) and user is not None and not user.is_bot:
            await self.approval.ensure_user(user)
        return await handler(event, data)
