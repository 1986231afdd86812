"""Passive content filters applied to group messages."""
import re
from enum import Enum
from typing import Optional

from aiogram.types import Message

from database.models import Group

LINK_PATTERN = re.compile(r"https?://\S+|t\.me/\S+", re.IGNORECASE)


class FilterViolation(str, Enum):
    LINK = "link"
    FORWARD = "forward"
    SPAM = "spam"


def message_text(message: Message) -> str:
    return message.text or message.caption or ""


def contains_link(text: str) -> bool:
    return bool(LINK_PATTERN.search(text or ""))


def is_forwarded(message: Message) -> bool:
    return any(
        getattr(message, attr, None) is not None
        for attr in ("forward_origin", "forward_from", "forward_from_chat", "forward_date")
    )


def is_too_long(text: str, max_length: int) -> bool:
    # Length only; no rate tracking.
    return len(text or "") > max_length


def find_violation(message: Message, group: Group, spam_max_length: int) -> Optional[FilterViolation]:
    """First enabled filter the message trips, checked link, forward, length."""
    text = message_text(message)
    if group.anti_link and contains_link(text):
        return FilterViolation.LINK
    if group.anti_forward and is_forwarded(message):
        return FilterViolation.FORWARD
    if group.anti_spam and is_too_long(text, spam_max_length):
        return FilterViolation.SPAM
    return None
