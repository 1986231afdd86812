"""Template renderer - placeholder substitution and delivery of welcome/goodbye messages."""
import logging
from dataclasses import dataclass
from html import escape
from typing import Optional

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup, User as TgUser

from bot.services.telegram_ops import SafeTelegram
from bot.services.template_service import GreetingTemplate

logger = logging.getLogger(__name__)

NO_USERNAME = "No username"


@dataclass(frozen=True)
class MemberInfo:
    """The member a greeting is rendered for."""

    id: int
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    is_bot: bool = False

    @classmethod
    def from_user(cls, user: TgUser) -> "MemberInfo":
        return cls(
            id=user.id,
            first_name=user.first_name or "",
            last_name=user.last_name,
            username=user.username,
            is_bot=bool(user.is_bot),
        )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    @property
    def mention(self) -> str:
        return f'<a href="tg://user?id={self.id}">{escape(self.first_name)}</a>'


def substitute(text: str, member: MemberInfo, group_title: Optional[str], member_count: Optional[int]) -> str:
    """
    Replace every supported placeholder.

    Values coming from Telegram are HTML-escaped; the template text itself is
    admin-authored HTML and is left as is.
    """
    values = {
        "{user}": member.mention,
        "{userid}": str(member.id),
        "{username}": f"@{escape(member.username)}" if member.username else NO_USERNAME,
        "{name}": escape(member.first_name),
        "{fullname}": escape(member.full_name),
        "{group}": escape(group_title or ""),
        "{membercount}": str(member_count) if member_count is not None else "?",
    }
    # Single pass over the text so a substituted value is never rescanned.
    out = []
    i = 0
    while i < len(text):
        if text[i] == "{":
            end = text.find("}", i)
            if end != -1:
                token = text[i:end + 1]
                if token in values:
                    out.append(values[token])
                    i = end + 1
                    continue
        out.append(text[i])
        i += 1
    return "".join(out)


def build_keyboard(template: GreetingTemplate) -> Optional[InlineKeyboardMarkup]:
    """One URL button per row, only when buttons are switched on and present."""
    buttons = template.buttons
    if not template.show_buttons or not buttons:
        return None
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text=b["text"], url=b["url"])] for b in buttons]
    )


class TemplateRenderer:
    """Turns a stored greeting into outbound messages."""

    def __init__(self, ops: SafeTelegram):
        self.ops = ops

    async def render_text(self, template: GreetingTemplate, chat_id: int, chat_title: Optional[str], member: MemberInfo) -> str:
        if not template.show_tags:
            return template.text
        member_count = None
        if "{membercount}" in template.text:
            member_count = await self.ops.get_member_count(chat_id)
        return substitute(template.text, member, chat_title, member_count)

    async def send(
        self,
        template: GreetingTemplate,
        chat_id: int,
        chat_title: Optional[str],
        member: MemberInfo,
        *,
        deliver_to: Optional[int] = None,
    ) -> bool:
        """
        Render for `member` and deliver by media type.

        Args:
            chat_id: Group the placeholders are resolved against
            deliver_to: Chat that receives the message (defaults to chat_id; previews go to a DM)

        Returns:
            True if the primary message was delivered
        """
        if member.is_bot:
            return False

        target = deliver_to if deliver_to is not None else chat_id
        text = await self.render_text(template, chat_id, chat_title, member)
        keyboard = build_keyboard(template)
        caption = text if template.has_caption else None

        media_type = template.media_type if template.has_media else "none"
        if media_type == "photo":
            sent = await self.ops.send_photo(target, template.media_file_id, caption=caption, reply_markup=keyboard)
        elif media_type == "video":
            sent = await self.ops.send_video(target, template.media_file_id, caption=caption, reply_markup=keyboard)
        elif media_type == "animation":
            sent = await self.ops.send_animation(target, template.media_file_id, caption=caption, reply_markup=keyboard)
        elif media_type == "sticker":
            # Stickers cannot carry a caption or keyboard.
            sent = await self.ops.send_sticker(target, template.media_file_id)
            if template.has_caption:
                await self.ops.send_message(target, text, reply_markup=keyboard)
        else:
            sent = await self.ops.send_message(target, text, reply_markup=keyboard)

        if sent is None:
            logger.warning(f"Greeting ({media_type}) for user {member.id} was not delivered to chat {target}")
            return False
        return True
