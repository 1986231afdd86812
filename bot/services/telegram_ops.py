"""Safe platform operations - every Telegram call bounded by a timeout and never raising."""
import asyncio
import logging
from typing import Any, Awaitable, Iterable, Optional

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import ChatMember, InlineKeyboardMarkup, Message

logger = logging.getLogger(__name__)

ADMIN_STATUSES = ("creator", "administrator")


class SafeTelegram:
    """
    Capability object handed to services and handlers for outbound Telegram calls.

    Each call is raced against a wall-clock timeout. API errors (missing rights,
    chat not found, user left, network failures) and timeouts are logged and
    turned into a falsy result, so one failed call never aborts the update.
    """

    def __init__(self, bot: Bot, timeout: float = 10.0):
        self.bot = bot
        self.timeout = timeout

    @property
    def bot_id(self) -> int:
        return int(self.bot.id)

    async def bot_username(self) -> Optional[str]:
        me = await self._call("get_me", self.bot.me())
        return me.username if me is not None else None

    async def _call(self, op: str, awaitable: Awaitable, default: Any = None) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Telegram {op} timed out after {self.timeout}s")
        except TelegramAPIError as e:
            logger.warning(f"Telegram {op} failed: {e}")
        return default

    # ========== MESSAGES ==========

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
        reply_to_message_id: Optional[int] = None,
        parse_mode: Optional[str] = "HTML",
    ) -> Optional[Message]:
        kwargs = {"chat_id": chat_id, "text": text, "reply_markup": reply_markup, "parse_mode": parse_mode}
        if reply_to_message_id:
            kwargs["reply_to_message_id"] = reply_to_message_id
        return await self._call(f"send_message(chat={chat_id})", self.bot.send_message(**kwargs))

    async def reply(self, message: Message, text: str, reply_markup: Optional[InlineKeyboardMarkup] = None) -> Optional[Message]:
        return await self.send_message(
            message.chat.id, text, reply_markup=reply_markup, reply_to_message_id=message.message_id
        )

    async def show(
        self,
        chat_id: int,
        message_id: Optional[int],
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> bool:
        """Edit a menu in place, falling back to a fresh message when the edit is refused."""
        if message_id is not None and await self.edit_message_text(chat_id, message_id, text, reply_markup):
            return True
        return await self.send_message(chat_id, text, reply_markup=reply_markup) is not None

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> bool:
        result = await self._call(
            f"edit_message_text(chat={chat_id}, message={message_id})",
            self.bot.edit_message_text(
                chat_id=chat_id,
                message_id=message_id,
                text=text,
                reply_markup=reply_markup,
                parse_mode="HTML",
            ),
        )
        return result is not None

    async def delete_message(self, chat_id: int, message_id: int) -> bool:
        result = await self._call(
            f"delete_message(chat={chat_id}, message={message_id})",
            self.bot.delete_message(chat_id=chat_id, message_id=message_id),
            default=False,
        )
        return bool(result)

    async def delete_later(self, chat_id: int, message_id: int, delay: float) -> bool:
        """Deferred delete; the target may already be gone by then."""
        await asyncio.sleep(delay)
        return await self.delete_message(chat_id, message_id)

    async def answer_callback(self, callback_query_id: str, text: Optional[str] = None, show_alert: bool = False) -> bool:
        result = await self._call(
            "answer_callback_query",
            self.bot.answer_callback_query(callback_query_id=callback_query_id, text=text, show_alert=show_alert),
            default=False,
        )
        return bool(result)

    # ========== MEDIA ==========

    async def send_photo(self, chat_id: int, file_id: str, caption: Optional[str] = None,
                         reply_markup: Optional[InlineKeyboardMarkup] = None) -> Optional[Message]:
        return await self._call(
            f"send_photo(chat={chat_id})",
            self.bot.send_photo(chat_id=chat_id, photo=file_id, caption=caption, reply_markup=reply_markup, parse_mode="HTML"),
        )

    async def send_video(self, chat_id: int, file_id: str, caption: Optional[str] = None,
                         reply_markup: Optional[InlineKeyboardMarkup] = None) -> Optional[Message]:
        return await self._call(
            f"send_video(chat={chat_id})",
            self.bot.send_video(chat_id=chat_id, video=file_id, caption=caption, reply_markup=reply_markup, parse_mode="HTML"),
        )

    async def send_animation(self, chat_id: int, file_id: str, caption: Optional[str] = None,
                             reply_markup: Optional[InlineKeyboardMarkup] = None) -> Optional[Message]:
        return await self._call(
            f"send_animation(chat={chat_id})",
            self.bot.send_animation(chat_id=chat_id, animation=file_id, caption=caption, reply_markup=reply_markup, parse_mode="HTML"),
        )

    async def send_sticker(self, chat_id: int, file_id: str) -> Optional[Message]:
        return await self._call(f"send_sticker(chat={chat_id})", self.bot.send_sticker(chat_id=chat_id, sticker=file_id))

    # ========== MEMBERSHIP ==========

    async def get_chat_member(self, chat_id: int, user_id: int) -> Optional[ChatMember]:
        return await self._call(
            f"get_chat_member(chat={chat_id}, user={user_id})",
            self.bot.get_chat_member(chat_id=chat_id, user_id=user_id),
        )

    async def get_member_status(self, chat_id: int, user_id: int) -> Optional[str]:
        member = await self.get_chat_member(chat_id, user_id)
        if member is None:
            return None
        return str(getattr(member.status, "value", member.status))

    async def is_chat_admin(self, chat_id: int, user_id: int) -> bool:
        """Live (uncached) creator/administrator check."""
        return await self.get_member_status(chat_id, user_id) in ADMIN_STATUSES

    async def get_chat_administrators(self, chat_id: int) -> Optional[list[ChatMember]]:
        return await self._call(
            f"get_chat_administrators(chat={chat_id})",
            self.bot.get_chat_administrators(chat_id=chat_id),
        )

    async def get_member_count(self, chat_id: int) -> Optional[int]:
        return await self._call(
            f"get_chat_member_count(chat={chat_id})",
            self.bot.get_chat_member_count(chat_id=chat_id),
        )

    async def bot_can_restrict(self, chat_id: int) -> bool:
        member = await self.get_chat_member(chat_id, self.bot_id)
        if member is None:
            return False
        status = str(getattr(member.status, "value", member.status))
        if status == "creator":
            return True
        return status == "administrator" and bool(getattr(member, "can_restrict_members", False))

    async def ban_member(self, chat_id: int, user_id: int) -> bool:
        result = await self._call(
            f"ban_chat_member(chat={chat_id}, user={user_id})",
            self.bot.ban_chat_member(chat_id=chat_id, user_id=user_id),
            default=False,
        )
        return bool(result)

    async def unban_member(self, chat_id: int, user_id: int) -> bool:
        result = await self._call(
            f"unban_chat_member(chat={chat_id}, user={user_id})",
            self.bot.unban_chat_member(chat_id=chat_id, user_id=user_id, only_if_banned=True),
            default=False,
        )
        return bool(result)

    async def soft_kick(self, chat_id: int, user_id: int) -> bool:
        """Kick immediately followed by unban so the user can rejoin."""
        if not await self.ban_member(chat_id, user_id):
            return False
        await self.unban_member(chat_id, user_id)
        return True

    async def export_invite_link(self, chat_id: int) -> Optional[str]:
        return await self._call(
            f"export_chat_invite_link(chat={chat_id})",
            self.bot.export_chat_invite_link(chat_id=chat_id),
        )

    async def leave_chat(self, chat_id: int) -> bool:
        result = await self._call(f"leave_chat(chat={chat_id})", self.bot.leave_chat(chat_id=chat_id), default=False)
        return bool(result)

    # ========== FAN-OUT ==========

    async def notify_many(
        self,
        chat_ids: Iterable[int],
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
        parse_mode: Optional[str] = "HTML",
    ) -> int:
        """
        Send the same message to several chats.

        Every recipient is independent: a failed or slow send never blocks the others.

        Returns:
            Number of successful deliveries
        """
        targets = list(dict.fromkeys(int(c) for c in chat_ids))
        if not targets:
            return 0
        results = await asyncio.gather(
            *(self.send_message(chat_id, text, reply_markup=reply_markup, parse_mode=parse_mode) for chat_id in targets),
            return_exceptions=True,
        )
        delivered = 0
        for chat_id, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error(f"Notification to {chat_id} failed: {result}")
            elif result is not None:
                delivered += 1
        return delivered
