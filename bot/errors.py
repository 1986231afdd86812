"""Last-resort error reporting: update-pipeline errors and stray loop exceptions."""
import asyncio
import logging
from html import escape
from typing import Optional

from aiogram import Router
from aiogram.types import ErrorEvent, Update

from bot.services.approval_service import ApprovalService
from bot.services.telegram_ops import SafeTelegram
from bot.utils.messages import error_admin_report, error_apology_message

logger = logging.getLogger(__name__)


def _update_context(update: Optional[Update]) -> tuple[Optional[int], Optional[int], str, Optional[str]]:
    """(chat_id, user_id, user line, message text) for whatever the update carries."""
    if update is None:
        return None, None, "-", None
    message = update.message or update.edited_message
    callback = update.callback_query
    user = None
    chat_id = None
    text = None
    if message is not None:
        chat_id = message.chat.id
        user = message.from_user
        text = message.text or message.caption
    elif callback is not None:
        user = callback.from_user
        chat_id = callback.message.chat.id if callback.message is not None else user.id
        text = f"[callback] {callback.data}"
    if user is None:
        return chat_id, None, "-", text
    line = f"{escape(user.full_name)} (<code>{user.id}</code>)"
    if user.username:
        line += f" @{escape(user.username)}"
    return chat_id, user.id, line, text


def create_error_handlers(ops: SafeTelegram, approval: ApprovalService) -> Router:
    """
    Router with the dispatcher-wide errors observer.

    Unexpected exceptions are logged, the user gets a short apology and every bot
    admin gets the error with its chat/user/message context. The update is then
    treated as handled so polling keeps going.
    """
    router = Router()

    @router.errors()
    async def on_error(event: ErrorEvent):
        chat_id, user_id, user_line, text = _update_context(event.update)
        logger.error(
            f"Unhandled error in update {getattr(event.update, 'update_id', '?')} "
            f"(chat={chat_id}, user={user_id}): {event.exception}",
            exc_info=event.exception,
        )
        if chat_id is not None:
            await ops.send_message(chat_id, error_apology_message())
        try:
            admin_ids = await approval.admin_ids()
        except Exception as e:
            # Storage may be the thing that failed; fall back to the static list.
            logger.error(f"Could not load admin list for error report: {e}")
            admin_ids = list(approval.config.admin_ids)
        report = error_admin_report(event.exception, chat_id, user_line, text)
        await ops.notify_many(admin_ids, report)
        return True

    return router


def install_loop_exception_handler(loop: asyncio.AbstractEventLoop, ops: SafeTelegram, admin_ids) -> None:
    """
    Report exceptions nobody awaited (fire-and-forget tasks, callbacks) to admins.

    Only notifies; it never restarts or stops anything.
    """
    pending: set[asyncio.Task] = set()

    def handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        message = context.get("message", "Unhandled exception in event loop")
        logger.error(f"Event loop error: {message}", exc_info=exc)
        detail = f"{type(exc).__name__}: {exc}" if exc is not None else message
        text = f"<b>⚠️ Background error</b>\n\n<code>{escape(detail)[:1000]}</code>"
        if loop.is_closed():
            return
        task = loop.create_task(ops.notify_many(admin_ids, text))
        pending.add(task)
        task.add_done_callback(pending.discard)

    loop.set_exception_handler(handler)
