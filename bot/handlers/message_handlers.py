"""Private-chat message handlers - group registration from forwarded messages."""
import logging
from html import escape

from aiogram import F, Router
from aiogram.enums import ChatType
from aiogram.types import Message

from bot.container import ServiceContainer
from bot.utils.decorators import approved_only
from bot.utils.keyboards import add_group_keyboard
from bot.utils.permissions import forwarded_chat

logger = logging.getLogger(__name__)

GROUP_CHAT_TYPES = {ChatType.GROUP, ChatType.SUPERGROUP}


def create_message_handlers(container: ServiceContainer) -> Router:
    router = Router()
    router.message.filter(F.chat.type == ChatType.PRIVATE)

    ops = container.ops
    approval = container.approval_service

    def _is_group_forward(message: Message) -> bool:
        chat = forwarded_chat(message)
        return chat is not None and chat.type in GROUP_CHAT_TYPES

    @router.message(_is_group_forward)
    @approved_only(container)
    async def on_forwarded_group(message: Message):
        chat = forwarded_chat(message)
        group, created = await approval.register_forwarded_group(chat.id, chat.title, message.from_user.id)
        title = escape(group.title or str(group.group_id))
        username = await ops.bot_username()
        markup = add_group_keyboard(username, int(group.group_id)) if username else None

        if not created:
            status = "approved" if group.is_approved else "waiting for approval"
            await ops.reply(message, f"ℹ️ <b>{title}</b> is already registered ({status}).", reply_markup=markup)
            return

        if group.is_approved:
            text = (
                "✅ Group added and approved.\n\n"
                f"Group: <b>{title}</b>\nID: <code>{group.group_id}</code>\n\n"
                "You can now add me to this group:"
            )
        else:
            text = (
                "⏳ Group added, but it needs approval.\n\n"
                f"Group: <b>{title}</b>\nID: <code>{group.group_id}</code>\n\n"
                "Once approved you can add me to this group:"
            )
        await ops.reply(message, text, reply_markup=markup)

    return router
