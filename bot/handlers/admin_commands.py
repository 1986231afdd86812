"""Group moderation commands: /kick /add /bl /unbl /warn /unwarn."""
import logging
from html import escape
from typing import Optional

from aiogram import F, Router
from aiogram.enums import ChatType
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from bot.container import ServiceContainer
from bot.services.moderation_service import ModerationOutcome, normalize_reason
from bot.utils import messages
from bot.utils.decorators import approved_only
from bot.utils.permissions import is_group_admin_or_manager, parse_username, resolve_target

logger = logging.getLogger(__name__)


def split_target_args(message: Message, args: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Split command arguments into (target text, reason).

    When the command replies to a message the target comes from the reply, so
    all arguments are the reason.
    """
    args = (args or "").strip()
    if message.reply_to_message is not None:
        return None, args or None
    if not args:
        return None, None
    parts = args.split(maxsplit=1)
    return parts[0], (parts[1] if len(parts) > 1 else None)


def create_admin_handlers(container: ServiceContainer) -> Router:
    router = Router()
    router.message.filter(F.chat.type.in_({ChatType.GROUP, ChatType.SUPERGROUP}))

    ops = container.ops
    approval = container.approval_service
    moderation = container.moderation_service

    async def _authorized(message: Message) -> bool:
        if await is_group_admin_or_manager(ops, approval, message.chat.id, message.from_user.id):
            return True
        await ops.reply(message, "⛔ Only group admins can use this command.")
        return False

    async def _target(message: Message, command: CommandObject, usage: str) -> tuple[Optional[int], Optional[str]]:
        target_text, reason = split_target_args(message, command.args)
        if target_text is None and message.reply_to_message is None:
            await ops.reply(message, f"Reply to a user's message or pass their ID / @username.\nUsage: <code>{escape(usage)}</code>")
            return None, None
        target_id = await resolve_target(message, approval, target_text, ops=ops, chat_id=message.chat.id)
        if target_id is None:
            await ops.reply(message, "❌ User not found. Use a numeric ID, or reply to their message.")
            return None, None
        return target_id, reason

    @router.message(Command("kick"))
    @approved_only(container)
    async def cmd_kick(message: Message, command: CommandObject):
        if not await _authorized(message):
            return
        target_id, reason = await _target(message, command, "/kick @user|id [reason]")
        if target_id is None:
            return
        reason = normalize_reason(reason)
        outcome = await moderation.kick(message.chat.id, target_id)
        if outcome == ModerationOutcome.KICKED:
            await ops.reply(message, messages.group_kick_notice(target_id, reason, message.from_user.mention_html()))
        elif outcome == ModerationOutcome.NO_PRIVILEGE:
            await ops.reply(message, "❌ I need the \"Ban users\" admin right to kick members.")
        elif outcome == ModerationOutcome.PROTECTED:
            await ops.reply(message, "⛔ Admins cannot be kicked.")
        else:
            await ops.reply(message, "❌ Failed to kick that user.")

    @router.message(Command("add"))
    @approved_only(container)
    async def cmd_add(message: Message, command: CommandObject):
        if not await _authorized(message):
            return
        username = parse_username((command.args or "").split(maxsplit=1)[0] if command.args else None)
        if not username:
            await ops.reply(message, "Usage: <code>/add @username</code>")
            return
        link = await ops.export_invite_link(message.chat.id)
        if not link:
            await ops.reply(message, "❌ Could not create an invite link. I need the \"Invite users\" admin right.")
            return
        await ops.reply(message, f"🔗 Invite link for @{escape(username)}: {escape(link)}")

    @router.message(Command("bl"))
    @approved_only(container)
    async def cmd_blacklist(message: Message, command: CommandObject):
        if not await _authorized(message):
            return
        target_id, reason = await _target(message, command, "/bl @user|id [reason]")
        if target_id is None:
            return
        reason = normalize_reason(reason)
        outcome = await moderation.add_to_blacklist(message.chat.id, target_id, message.from_user.id, reason)
        if outcome == ModerationOutcome.ADDED:
            await ops.reply(message, messages.group_blacklist_notice(target_id, reason, message.from_user.mention_html()))
        elif outcome == ModerationOutcome.ALREADY_PRESENT:
            await ops.reply(message, f"ℹ️ User <code>{target_id}</code> is already blacklisted.")
        elif outcome == ModerationOutcome.PROTECTED:
            await ops.reply(message, "⛔ Admins cannot be blacklisted.")
        else:
            await ops.reply(message, "❌ This group is not managed by the bot yet.")

    @router.message(Command("unbl"))
    @approved_only(container)
    async def cmd_unblacklist(message: Message, command: CommandObject):
        if not await _authorized(message):
            return
        target_id, _ = await _target(message, command, "/unbl @user|id")
        if target_id is None:
            return
        outcome = await moderation.remove_from_blacklist(message.chat.id, target_id)
        if outcome == ModerationOutcome.REMOVED:
            await ops.reply(message, f"✅ User <code>{target_id}</code> removed from the blacklist.")
        else:
            await ops.reply(message, f"ℹ️ User <code>{target_id}</code> is not blacklisted.")

    @router.message(Command("warn"))
    @approved_only(container)
    async def cmd_warn(message: Message, command: CommandObject):
        if not await _authorized(message):
            return
        target_id, reason = await _target(message, command, "/warn @user|id [reason]")
        if target_id is None:
            return
        result = await moderation.warn(message.chat.id, target_id, message.from_user.id, reason)
        limit = moderation.warn_limit
        if result.outcome in (ModerationOutcome.WARNED, ModerationOutcome.LIMIT_REACHED):
            await ops.reply(
                message,
                messages.group_warning_notice(target_id, result.count, limit, result.reason, message.from_user.mention_html()),
            )
            if result.outcome == ModerationOutcome.LIMIT_REACHED:
                await ops.send_message(message.chat.id, messages.group_limit_notice(target_id, limit, result.kicked))
        elif result.outcome == ModerationOutcome.PROTECTED:
            await ops.reply(message, "⛔ Admins cannot be warned.")
        else:
            await ops.reply(message, "❌ This group is not managed by the bot yet.")

    @router.message(Command("unwarn"))
    @approved_only(container)
    async def cmd_unwarn(message: Message, command: CommandObject):
        if not await _authorized(message):
            return
        target_id, _ = await _target(message, command, "/unwarn @user|id")
        if target_id is None:
            return
        result = await moderation.unwarn(message.chat.id, target_id)
        if result.outcome == ModerationOutcome.REMOVED:
            await ops.reply(
                message,
                f"✅ One warning removed from <code>{target_id}</code> ({result.count}/{moderation.warn_limit}).",
            )
        else:
            await ops.reply(message, f"ℹ️ User <code>{target_id}</code> has no warnings.")

    return router
