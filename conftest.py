"""
Shared fixtures: throw-away SQLite database, a recording fake bot and update builders.

No test talks to Telegram. Outbound calls go through SafeTelegram into FakeBot,
which records them; inbound updates are real aiogram objects fed through the
real dispatcher.
"""
import asyncio
import itertools
from datetime import datetime
from types import SimpleNamespace
from typing import Optional

import pytest
from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import CallbackQuery, Chat, Message, Update, User

from bot.config import Config
from bot.container import ServiceContainer
from bot.main import build_dispatcher
from database.db import Database
from database.models import Group, GroupAdmin

BOT_ID = 42
ADMIN_ID = 1
GROUP_ID = -100500

_ids = itertools.count(1000)


class FakeBot:
    """Stands in for aiogram.Bot on the outbound side and records every call."""

    id = BOT_ID

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.statuses: dict[tuple[int, int], str] = {}
        self.usernames: dict[int, str] = {}
        self.bot_status = "administrator"
        self.bot_can_restrict = True
        self.member_count = 10
        self.failing: set[str] = set()
        self.hanging: set[str] = set()
        self.failing_chats: set[int] = set()

    async def _record(self, method: str, **kwargs):
        self.calls.append((method, kwargs))
        if method in self.hanging:
            await asyncio.sleep(3600)
        if method in self.failing or kwargs.get("chat_id") in self.failing_chats:
            raise TelegramBadRequest(method=None, message=f"Bad Request: {method} failed")

    def _sent(self, chat_id):
        return SimpleNamespace(message_id=next(_ids), chat=SimpleNamespace(id=chat_id))

    # ---- inspection helpers ----

    def called(self, method: str) -> list[dict]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def texts(self, chat_id: Optional[int] = None) -> list[str]:
        """Texts sent with send_message or edit_message_text, optionally for one chat."""
        out = []
        for name, kwargs in self.calls:
            if name in ("send_message", "edit_message_text") and (chat_id is None or kwargs["chat_id"] == chat_id):
                out.append(kwargs["text"])
        return out

    # ---- Bot API surface used by SafeTelegram ----

    async def me(self):
        await self._record("get_me")
        return SimpleNamespace(id=BOT_ID, username="keeper_bot")

    async def get_me(self):
        return await self.me()

    async def send_message(self, chat_id, text, **kwargs):
        await self._record("send_message", chat_id=chat_id, text=text, **kwargs)
        return self._sent(chat_id)

    async def edit_message_text(self, **kwargs):
        await self._record("edit_message_text", **kwargs)
        return True

    async def delete_message(self, **kwargs):
        await self._record("delete_message", **kwargs)
        return True

    async def answer_callback_query(self, **kwargs):
        await self._record("answer_callback_query", **kwargs)
        return True

    async def send_photo(self, **kwargs):
        await self._record("send_photo", **kwargs)
        return self._sent(kwargs["chat_id"])

    async def send_video(self, **kwargs):
        await self._record("send_video", **kwargs)
        return self._sent(kwargs["chat_id"])

    async def send_animation(self, **kwargs):
        await self._record("send_animation", **kwargs)
        return self._sent(kwargs["chat_id"])

    async def send_sticker(self, **kwargs):
        await self._record("send_sticker", **kwargs)
        return self._sent(kwargs["chat_id"])

    async def get_chat_member(self, chat_id, user_id):
        await self._record("get_chat_member", chat_id=chat_id, user_id=user_id)
        if user_id == BOT_ID:
            return SimpleNamespace(status=self.bot_status, can_restrict_members=self.bot_can_restrict)
        return SimpleNamespace(status=self.statuses.get((chat_id, user_id), "member"), can_restrict_members=False)

    async def get_chat_administrators(self, chat_id):
        await self._record("get_chat_administrators", chat_id=chat_id)
        admins = [
            SimpleNamespace(
                status=status,
                user=User(id=user_id, is_bot=False, first_name=f"Admin{user_id}", username=self.usernames.get(user_id)),
            )
            for (chat, user_id), status in self.statuses.items()
            if chat == chat_id and status in ("creator", "administrator")
        ]
        if self.bot_status in ("creator", "administrator"):
            admins.append(SimpleNamespace(status=self.bot_status, user=User(id=self.id, is_bot=True, first_name="Keeper")))
        return admins

    async def get_chat_member_count(self, chat_id):
        await self._record("get_chat_member_count", chat_id=chat_id)
        return self.member_count

    async def ban_chat_member(self, **kwargs):
        await self._record("ban_chat_member", **kwargs)
        return True

    async def unban_chat_member(self, **kwargs):
        await self._record("unban_chat_member", **kwargs)
        return True

    async def export_chat_invite_link(self, chat_id):
        await self._record("export_chat_invite_link", chat_id=chat_id)
        return "https://t.me/+invite"

    async def leave_chat(self, chat_id):
        await self._record("leave_chat", chat_id=chat_id)
        return True


# ========== FIXTURES ==========


@pytest.fixture
def config(tmp_path):
    return Config(
        bot_token="42:TEST",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        admin_ids=(ADMIN_ID,),
        api_timeout=1.0,
        command_delete_delay=0,
    )


@pytest.fixture
async def db(config):
    database = Database(config.database_url)
    await database.create_tables()
    yield database
    await database.disconnect()


@pytest.fixture
def fake_bot():
    return FakeBot()


@pytest.fixture
def container(config, db, fake_bot):
    return ServiceContainer.create(config, db, fake_bot)


@pytest.fixture
def dispatcher(container):
    return build_dispatcher(container)


@pytest.fixture
def tg_bot():
    """Real aiogram Bot bound to incoming updates; never used for requests."""
    return Bot("42:TEST")


@pytest.fixture
def feed(dispatcher, tg_bot):
    async def _feed(event):
        update = _wrap(event)
        return await dispatcher.feed_update(tg_bot, update)
    return _feed


# ========== BUILDERS ==========

_update_ids = itertools.count(1)
_message_ids = itertools.count(1)


def make_user(user_id: int, first_name: str = "User", username: Optional[str] = None, is_bot: bool = False) -> User:
    return User(id=user_id, is_bot=is_bot, first_name=first_name, username=username)


def private_message(user: User, text: Optional[str] = None, **extra) -> Message:
    return Message(
        message_id=next(_message_ids),
        date=datetime.now(),
        chat=Chat(id=user.id, type="private", first_name=user.first_name),
        from_user=user,
        text=text,
        **extra,
    )


def group_message(user: User, text: Optional[str] = None, chat_id: int = GROUP_ID, title: str = "Test Group", **extra) -> Message:
    return Message(
        message_id=next(_message_ids),
        date=datetime.now(),
        chat=Chat(id=chat_id, type="supergroup", title=title),
        from_user=user,
        text=text,
        **extra,
    )


def callback(user: User, cb) -> CallbackQuery:
    return CallbackQuery(
        id=str(next(_update_ids)),
        from_user=user,
        chat_instance="ci",
        data=cb.pack() if not isinstance(cb, str) else cb,
        message=private_message(user, "menu"),
    )


def _wrap(event) -> Update:
    if isinstance(event, Update):
        return event
    if isinstance(event, CallbackQuery):
        return Update(update_id=next(_update_ids), callback_query=event)
    return Update(update_id=next(_update_ids), message=event)


async def make_group(db: Database, group_id: int = GROUP_ID, added_by: int = ADMIN_ID, approved: bool = True, **settings) -> Group:
    async with db.session() as session:
        group = Group(group_id=group_id, title="Test Group", added_by=added_by, is_approved=approved, **settings)
        session.add(group)
        session.add(GroupAdmin(group_id=group_id, user_id=added_by, added_by=added_by))
    return group
