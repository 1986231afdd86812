"""Member event handlers - greetings on join/leave and the bot's own membership changes."""
import logging

from aiogram import F, Router
from aiogram.enums import ChatType
from aiogram.filters import ChatMemberUpdatedFilter, JOIN_TRANSITION, LEAVE_TRANSITION
from aiogram.types import ChatMemberUpdated, Message

from bot.container import ServiceContainer
from bot.services.template_renderer import MemberInfo
from bot.services.template_service import TemplateKind
from bot.utils.messages import unapproved_group_message

logger = logging.getLogger(__name__)


def create_member_handlers(container: ServiceContainer) -> Router:
    """
    Create member event handlers with dependency injection.

    Args:
        container: Service container with all dependencies

    Returns:
        Router with registered handlers
    """
    router = Router()
    router.message.filter(F.chat.type.in_({ChatType.GROUP, ChatType.SUPERGROUP}))

    ops = container.ops
    groups = container.group_service
    templates = container.template_service
    renderer = container.template_renderer

    async def _greet(message: Message, kind: TemplateKind, member: MemberInfo) -> None:
        if member.is_bot:
            return
        group = await groups.get_group(message.chat.id)
        if group is None or not group.is_approved:
            return
        template = await templates.active_template(kind, group)
        if template is None:
            return
        await renderer.send(template, message.chat.id, message.chat.title, member)

    @router.message(F.new_chat_members)
    async def on_new_members(message: Message):
        for user in message.new_chat_members:
            if user.id == ops.bot_id:
                continue
            await _greet(message, TemplateKind.WELCOME, MemberInfo.from_user(user))

    @router.message(F.left_chat_member)
    async def on_member_left(message: Message):
        user = message.left_chat_member
        if user.id == ops.bot_id:
            return
        await _greet(message, TemplateKind.GOODBYE, MemberInfo.from_user(user))

    @router.my_chat_member(ChatMemberUpdatedFilter(member_status_changed=JOIN_TRANSITION))
    async def on_bot_added(event: ChatMemberUpdated):
        chat = event.chat
        if chat.type not in (ChatType.GROUP, ChatType.SUPERGROUP):
            return
        adder = event.from_user
        approved = await container.approval_service.is_group_approved(chat.id, chat.title, adder.id if adder else None)
        if not approved:
            logger.warning(f"Added to unapproved group {chat.id} by {getattr(adder, 'id', None)}; leaving")
            await ops.send_message(chat.id, unapproved_group_message())
            await ops.leave_chat(chat.id)
            return
        await groups.update_title(chat.id, chat.title)
        logger.info(f"Bot added to approved group {chat.id} ({chat.title})")
        await ops.send_message(
            chat.id,
            "👋 Thanks for adding me! Make me an admin with rights to delete messages and ban users, "
            "then configure me from a private chat with /settings.",
        )

    @router.my_chat_member(ChatMemberUpdatedFilter(member_status_changed=LEAVE_TRANSITION))
    async def on_bot_removed(event: ChatMemberUpdated):
        logger.info(f"Bot removed from chat {event.chat.id} ({event.chat.title})")

    return router
