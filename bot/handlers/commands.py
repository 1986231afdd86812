"""Private-chat commands: onboarding, approval administration and group pickers."""
from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.enums import ChatType
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import Message

from bot.container import ServiceContainer
from bot.services.approval_service import ApprovalOutcome
from bot.services.template_service import TemplateKind
from bot.utils import messages
from bot.utils.decorators import approved_only
from bot.utils.keyboards import (
    approval_decision_keyboard,
    groups_keyboard,
    pick_group_keyboard,
    request_approval_keyboard,
    settings_pick_keyboard,
)
from bot.utils.permissions import parse_user_id

logger = logging.getLogger(__name__)


def create_command_handlers(container: ServiceContainer) -> Router:
    router = Router()
    router.message.filter(F.chat.type == ChatType.PRIVATE)

    ops = container.ops
    approval = container.approval_service
    groups = container.group_service

    async def _manageable(user_id: int):
        is_admin = await approval.is_bot_admin(user_id)
        return await groups.list_manageable(user_id, include_all=is_admin)

    @router.message(CommandStart())
    async def cmd_start(message: Message):
        user = message.from_user
        approved = await approval.is_user_approved(user.id)
        is_admin = await approval.is_bot_admin(user.id)
        markup = None if approved else request_approval_keyboard()
        await ops.reply(message, messages.start_message(user.first_name, approved, is_admin), reply_markup=markup)

    @router.message(Command("help"))
    async def cmd_help(message: Message):
        is_admin = await approval.is_bot_admin(message.from_user.id)
        await ops.reply(message, messages.help_message(is_admin))

    @router.message(Command("addgroup"))
    @approved_only(container)
    async def cmd_addgroup(message: Message):
        await ops.reply(message, messages.addgroup_message(await ops.bot_username()))

    @router.message(Command("approve"))
    @approved_only(container, admin=True)
    async def cmd_approve(message: Message, command: CommandObject):
        user_id = parse_user_id(command.args)
        if user_id is None:
            await ops.reply(message, "Usage: <code>/approve &lt;user_id&gt;</code>")
            return
        outcome = await approval.approve(user_id, message.from_user.id)
        if outcome == ApprovalOutcome.APPROVED:
            await ops.send_message(user_id, "✅ Your access request was approved! Send /start to begin.")
            await ops.reply(message, f"✅ User <code>{user_id}</code> approved.")
        elif outcome == ApprovalOutcome.ALREADY_APPROVED:
            await ops.reply(message, f"ℹ️ User <code>{user_id}</code> is already approved.")
        else:
            await ops.reply(message, f"❌ User <code>{user_id}</code> not found. They must /start the bot first.")

    @router.message(Command("reject"))
    @approved_only(container, admin=True)
    async def cmd_reject(message: Message, command: CommandObject):
        user_id = parse_user_id(command.args)
        if user_id is None:
            await ops.reply(message, "Usage: <code>/reject &lt;user_id&gt;</code>")
            return
        outcome = await approval.deny(user_id, message.from_user.id)
        if outcome == ApprovalOutcome.DENIED:
            await ops.send_message(user_id, "❌ Your access request was declined.")
            await ops.reply(message, f"🚫 Request of <code>{user_id}</code> rejected.")
        elif outcome == ApprovalOutcome.ALREADY_APPROVED:
            await ops.reply(message, f"ℹ️ User <code>{user_id}</code> is already approved.")
        else:
            await ops.reply(message, f"❌ User <code>{user_id}</code> not found.")

    @router.message(Command("requests"))
    @approved_only(container, admin=True)
    async def cmd_requests(message: Message):
        pending = await approval.list_pending()
        await ops.reply(message, messages.pending_requests_message(pending))
        for user in pending[:10]:
            await ops.send_message(
                message.chat.id,
                messages.approval_request_admin_message(user),
                reply_markup=approval_decision_keyboard(int(user.telegram_id)),
            )

    @router.message(Command("adminlist"))
    async def cmd_adminlist(message: Message):
        stored = await approval.list_stored_admins()
        await ops.reply(message, messages.admin_list_message(container.config.admin_ids, stored))

    @router.message(Command("groups"))
    @approved_only(container)
    async def cmd_groups(message: Message):
        manageable = await _manageable(message.from_user.id)
        await ops.reply(message, messages.groups_list_message(manageable), reply_markup=groups_keyboard(manageable))

    @router.message(Command("settings"))
    @approved_only(container)
    async def cmd_settings(message: Message):
        manageable = await _manageable(message.from_user.id)
        if not manageable:
            await ops.reply(message, messages.groups_list_message(manageable))
            return
        await ops.reply(message, "🛠 Choose a group to configure:", reply_markup=settings_pick_keyboard(manageable))

    async def _pick_template_group(message: Message, kind: TemplateKind):
        manageable = await _manageable(message.from_user.id)
        if not manageable:
            await ops.reply(message, messages.groups_list_message(manageable))
            return
        await ops.reply(message, messages.pick_group_message(kind), reply_markup=pick_group_keyboard(kind, manageable))

    @router.message(Command("setwelcome"))
    @approved_only(container)
    async def cmd_setwelcome(message: Message):
        await _pick_template_group(message, TemplateKind.WELCOME)

    @router.message(Command("setgoodbye"))
    @approved_only(container)
    async def cmd_setgoodbye(message: Message):
        await _pick_template_group(message, TemplateKind.GOODBYE)

    return router
