"""Target resolution and permission helpers for moderation commands."""
import logging
import re
from typing import Optional

from aiogram.types import Message

from bot.services.approval_service import ApprovalService
from bot.services.group_service import GroupService
from bot.services.telegram_ops import SafeTelegram

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^@?([A-Za-z][A-Za-z0-9_]{3,31})$")


def parse_user_id(text: Optional[str]) -> Optional[int]:
    """Numeric Telegram user ID, or None."""
    value = (text or "").strip()
    if not value.isdigit():
        return None
    user_id = int(value)
    return user_id if user_id > 0 else None


def parse_username(text: Optional[str]) -> Optional[str]:
    value = (text or "").strip()
    if not value.startswith("@"):
        return None
    match = USERNAME_RE.match(value)
    return match.group(1) if match else None


def forwarded_user_id(message: Message) -> Optional[int]:
    """Original author of a forwarded message, when the sender allows it to be shown."""
    origin = getattr(message, "forward_origin", None)
    sender = getattr(origin, "sender_user", None) if origin is not None else None
    if sender is not None:
        return int(sender.id)
    legacy = getattr(message, "forward_from", None)
    if legacy is not None:
        return int(legacy.id)
    return None


def forwarded_chat(message: Message):
    """Source chat of a message forwarded from a group or channel, if any."""
    origin = getattr(message, "forward_origin", None)
    chat = None
    if origin is not None:
        chat = getattr(origin, "sender_chat", None) or getattr(origin, "chat", None)
    if chat is None:
        chat = getattr(message, "forward_from_chat", None)
    return chat


async def resolve_target(
    message: Message,
    approval: ApprovalService,
    text: Optional[str] = None,
    *,
    ops: Optional[SafeTelegram] = None,
    chat_id: Optional[int] = None,
) -> Optional[int]:
    """
    Resolve the user a moderation action is aimed at.

    Checked in order: replied-to author, forwarded-message origin, then the
    given text as a numeric ID or an @username. Usernames are looked up among
    the users the bot has seen, then among the chat's administrators when
    `ops` and `chat_id` are given.
    """
    reply = getattr(message, "reply_to_message", None)
    if reply is not None and reply.from_user is not None and not reply.from_user.is_bot:
        return int(reply.from_user.id)

    forwarded = forwarded_user_id(message)
    if forwarded is not None:
        return forwarded

    user_id = parse_user_id(text)
    if user_id is not None:
        return user_id

    username = parse_username(text)
    if username:
        user = await approval.find_user_by_username(username)
        if user is not None:
            return int(user.telegram_id)
        if ops is not None and chat_id is not None:
            for member in await ops.get_chat_administrators(chat_id) or []:
                if (member.user.username or "").lower() == username.lower():
                    return int(member.user.id)
        logger.info(f"Could not resolve @{username} to a known user")
    return None


async def is_group_admin_or_manager(ops: SafeTelegram, approval: ApprovalService, chat_id: int, user_id: int) -> bool:
    """Chat creator/administrator, or a bot admin."""
    if await approval.is_bot_admin(user_id):
        return True
    return await ops.is_chat_admin(chat_id, user_id)


async def can_manage_group(groups: GroupService, approval: ApprovalService, group_id: int, user_id: int) -> bool:
    """Bot admins manage every approved group; others only groups they added or were made admin of."""
    group = await groups.get_group(group_id)
    if group is None or not group.is_approved:
        return False
    if await approval.is_bot_admin(user_id):
        return True
    return await groups.is_manager(group_id, user_id)
