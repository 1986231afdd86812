"""Decorators for command and callback handlers."""
import logging
from functools import wraps
from typing import Union

from aiogram.types import CallbackQuery, Message

from bot.utils.keyboards import request_approval_keyboard
from bot.utils.messages import not_approved_message

logger = logging.getLogger(__name__)


def approved_only(container, *, admin: bool = False):
    """
    Require an approved user (or a bot admin when `admin=True`).

    Works for both messages and callback queries; the refusal is sent back the
    same way the update came in.
    """
    approval = container.approval_service
    ops = container.ops

    def decorator(handler):
        @wraps(handler)
        async def wrapper(event: Union[Message, CallbackQuery], *args, **kwargs):
            user = event.from_user
            if user is None:
                return
            allowed = await (approval.is_bot_admin(user.id) if admin else approval.is_user_approved(user.id))
            if not allowed:
                logger.info(f"Refused {handler.__name__} for user {user.id} (admin required: {admin})")
                text = "⛔ Bot admins only." if admin else not_approved_message()
                if isinstance(event, CallbackQuery):
                    await ops.answer_callback(event.id, text, show_alert=True)
                else:
                    markup = None if admin else request_approval_keyboard()
                    await ops.reply(event, text, reply_markup=markup)
                return
            return await handler(event, *args, **kwargs)
        return wrapper
    return decorator
