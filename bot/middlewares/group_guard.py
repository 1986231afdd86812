"""Group message pipeline: approval gate, blacklist, content filters and command policy.

Runs as an outer middleware on group messages, before any handler sees them.
Each stage may consume the message; later stages and handlers then never run.
"""

from __future__ import annotations

import asyncio
import logging

from aiogram.dispatcher.middlewares.base import BaseMiddleware
from aiogram.enums import ChatType
from aiogram.types import Message

from bot.config import Config
from bot.services.approval_service import ApprovalService
from bot.services.content_filters import FilterViolation, find_violation, message_text
from bot.services.group_service import GroupService
from bot.services.moderation_service import ModerationService
from bot.services.telegram_ops import SafeTelegram
from bot.utils.messages import unapproved_group_message

logger = logging.getLogger(__name__)

VIOLATION_NOTICES = {
    FilterViolation.LINK: "🔗 {mention}, links are not allowed in this group.",
    FilterViolation.FORWARD: "↪️ {mention}, forwarded messages are not allowed in this group.",
    FilterViolation.SPAM: "📏 {mention}, your message was too long and has been removed.",
}

ANONYMOUS_ADMIN_HINT = (
    "❌ I can't verify permissions for anonymous admins.\n\n"
    "Disable <b>Remain anonymous</b> in the group admin settings, then try again."
)


class GroupGuardMiddleware(BaseMiddleware):
    def __init__(
        self,
        config: Config,
        ops: SafeTelegram,
        approval: ApprovalService,
        groups: GroupService,
        moderation: ModerationService,
    ):
        self.config = config
        self.ops = ops
        self.approval = approval
        self.groups = groups
        self.moderation = moderation
        self._pending: set[asyncio.Task] = set()

    async def __call__(self, handler, event: Message, data):  # type: ignore[override]
        if not isinstance(event, Message) or event.chat.type not in (ChatType.GROUP, ChatType.SUPERGROUP):
            return await handler(event, data)
        if self._is_own_membership_event(event):
            # my_chat_member handles the bot's own join/leave.
            return await handler(event, data)

        chat_id = event.chat.id
        sender = event.from_user
        requester_id = sender.id if sender is not None else None

        if not await self.approval.is_group_approved(chat_id, event.chat.title, requester_id):
            logger.warning(f"Unapproved group {chat_id} ({event.chat.title}); leaving")
            await self.ops.send_message(chat_id, unapproved_group_message())
            await self.ops.leave_chat(chat_id)
            return None

        group = await self.groups.get_group(chat_id)
        if group is None or sender is None:
            return await handler(event, data)

        if event.sender_chat is not None and event.sender_chat.id == chat_id:
            # Anonymous admin posting as the group: never filtered, commands can't be authorized.
            if message_text(event).startswith("/"):
                await self.ops.reply(event, ANONYMOUS_ADMIN_HINT)
                return None
            return await handler(event, data)

        if await self.moderation.is_blacklisted(chat_id, sender.id):
            await self.ops.delete_message(chat_id, event.message_id)
            logger.info(f"Deleted message from blacklisted user {sender.id} in {chat_id}")
            return None

        violation = find_violation(event, group, self.config.spam_max_length)
        if violation is not None and not await self.ops.is_chat_admin(chat_id, sender.id):
            await self.ops.delete_message(chat_id, event.message_id)
            notice = VIOLATION_NOTICES[violation].format(mention=sender.mention_html())
            await self.ops.send_message(chat_id, notice)
            logger.info(f"Removed {violation.value} message from {sender.id} in {chat_id}")
            return None

        if message_text(event).startswith("/"):
            if group.auto_delete_commands:
                self._schedule_delete(chat_id, event.message_id)
            if group.admin_only_commands and not await self.ops.is_chat_admin(chat_id, sender.id):
                await self.ops.delete_message(chat_id, event.message_id)
                await self.ops.send_message(chat_id, f"🔒 {sender.mention_html()}, only admins can use commands here.")
                return None

        return await handler(event, data)

    def _is_own_membership_event(self, event: Message) -> bool:
        bot_id = self.ops.bot_id
        if event.new_chat_members and any(m.id == bot_id for m in event.new_chat_members):
            return True
        return event.left_chat_member is not None and event.left_chat_member.id == bot_id

    def _schedule_delete(self, chat_id: int, message_id: int) -> None:
        task = asyncio.create_task(self.ops.delete_later(chat_id, message_id, self.config.command_delete_delay))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
