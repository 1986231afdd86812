"""Approval service - who may use the bot and which groups it may serve."""
import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from aiogram.types import User as TgUser
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from bot.config import Config
from database.db import Database
from database.models import User, Group, GroupAdmin

logger = logging.getLogger(__name__)


class RequestOutcome(str, Enum):
    REQUESTED = "requested"
    ALREADY_APPROVED = "already_approved"


class ApprovalOutcome(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"
    NOT_FOUND = "not_found"
    ALREADY_APPROVED = "already_approved"


class ApprovalService:
    """
    Approval gate for users and groups.

    A user is approved iff their id is in the static admin list, or their
    stored record has is_approved or is_admin set. Groups are auto-approved
    the first time an approved user (or static admin) brings the bot in.
    """

    def __init__(self, db: Database, config: Config):
        self.db = db
        self.config = config

    # ========== USERS ==========

    async def ensure_user(self, tg_user: TgUser) -> User:
        """Create the user record on first sight; keep name fields fresh."""
        is_static_admin = self.config.is_bot_admin(tg_user.id)
        async with self.db.session() as session:
            user = await session.get(User, tg_user.id)
            if user is None:
                user = User(
                    telegram_id=tg_user.id,
                    username=tg_user.username,
                    first_name=tg_user.first_name,
                    last_name=tg_user.last_name,
                    is_approved=is_static_admin,
                    is_admin=is_static_admin,
                )
                session.add(user)
                try:
                    await session.flush()
                except IntegrityError:
                    # Concurrent first message from the same user; the other insert won.
                    await session.rollback()
                    user = await session.get(User, tg_user.id)
                else:
                    logger.info(f"Registered new user {tg_user.id} (static admin: {is_static_admin})")
                    return user
            if (user.username, user.first_name, user.last_name) != (
                tg_user.username, tg_user.first_name, tg_user.last_name
            ):
                user.username = tg_user.username
                user.first_name = tg_user.first_name
                user.last_name = tg_user.last_name
            return user

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self.db.session() as session:
            return await session.get(User, user_id)

    async def find_user_by_username(self, username: str) -> Optional[User]:
        name = username.lstrip("@").lower()
        if not name:
            return None
        async with self.db.session() as session:
            result = await session.execute(
                select(User).where(func.lower(User.username) == name).order_by(User.telegram_id).limit(1)
            )
            return result.scalar_one_or_none()

    async def is_user_approved(self, user_id: int) -> bool:
        if self.config.is_bot_admin(user_id):
            return True
        user = await self.get_user(user_id)
        return bool(user and (user.is_approved or user.is_admin))

    async def is_bot_admin(self, user_id: int) -> bool:
        """Static admin or stored is_admin."""
        if self.config.is_bot_admin(user_id):
            return True
        user = await self.get_user(user_id)
        return bool(user and user.is_admin)

    async def request_approval(self, tg_user: TgUser) -> RequestOutcome:
        if await self.is_user_approved(tg_user.id):
            return RequestOutcome.ALREADY_APPROVED
        await self.ensure_user(tg_user)
        async with self.db.session() as session:
            user = await session.get(User, tg_user.id)
            user.requested_at = datetime.utcnow()
        logger.info(f"User {tg_user.id} requested approval")
        return RequestOutcome.REQUESTED

    async def approve(self, user_id: int, approved_by: int) -> ApprovalOutcome:
        async with self.db.session() as session:
            user = await session.get(User, user_id)
            if user is None:
                return ApprovalOutcome.NOT_FOUND
            if user.is_approved:
                return ApprovalOutcome.ALREADY_APPROVED
            user.is_approved = True
            user.approved_by = approved_by
            user.approved_at = datetime.utcnow()
        logger.info(f"User {user_id} approved by {approved_by}")
        return ApprovalOutcome.APPROVED

    async def deny(self, user_id: int, denied_by: int) -> ApprovalOutcome:
        async with self.db.session() as session:
            user = await session.get(User, user_id)
            if user is None:
                return ApprovalOutcome.NOT_FOUND
            if user.is_approved:
                return ApprovalOutcome.ALREADY_APPROVED
            user.requested_at = None
        logger.info(f"User {user_id} denied by {denied_by}")
        return ApprovalOutcome.DENIED

    async def list_pending(self) -> list[User]:
        async with self.db.session() as session:
            result = await session.execute(
                select(User)
                .where(
                    User.is_approved.is_(False),
                    User.is_admin.is_(False),
                    User.requested_at.isnot(None),
                )
                .order_by(User.requested_at)
            )
            return list(result.scalars().all())

    async def list_stored_admins(self) -> list[User]:
        async with self.db.session() as session:
            result = await session.execute(select(User).where(User.is_admin.is_(True)).order_by(User.telegram_id))
            return list(result.scalars().all())

    async def admin_ids(self) -> list[int]:
        """Static and stored admin ids, deduplicated, static first."""
        ids = list(self.config.admin_ids)
        for admin in await self.list_stored_admins():
            if admin.telegram_id not in ids:
                ids.append(int(admin.telegram_id))
        return ids

    # ========== GROUPS ==========

    async def is_group_approved(self, chat_id: int, title: Optional[str], requester_id: Optional[int]) -> bool:
        """
        Approval gate for a group chat.

        Side effect: an unknown or unapproved group is created/approved on the
        spot when the requester is a static admin or an approved user.
        """
        async with self.db.session() as session:
            group = await session.get(Group, chat_id)
            if group is not None and group.is_approved:
                return True

        if requester_id is None or not await self.is_user_approved(requester_id):
            return False

        now = datetime.utcnow()
        try:
            async with self.db.session() as session:
                group = await session.get(Group, chat_id)
                if group is None:
                    group = Group(group_id=chat_id, title=title, added_by=requester_id)
                    session.add(group)
                    session.add(GroupAdmin(group_id=chat_id, user_id=requester_id, added_by=requester_id))
                group.is_approved = True
                group.approved_by = requester_id
                group.approved_at = now
                if title:
                    group.title = title
        except IntegrityError:
            # Another update created the group first; trust whatever it stored.
            logger.info(f"Group {chat_id} was created concurrently; re-reading")
            async with self.db.session() as session:
                group = await session.get(Group, chat_id)
                return bool(group and group.is_approved)

        logger.info(f"Group {chat_id} auto-approved via user {requester_id}")
        return True

    async def register_forwarded_group(self, chat_id: int, title: Optional[str], added_by: int) -> tuple[Group, bool]:
        """
        Register a group from a message forwarded in private chat.

        Returns:
            (group, created) - created is False if the group was already known
        """
        approved = self.config.is_bot_admin(added_by)
        try:
            async with self.db.session() as session:
                existing = await session.get(Group, chat_id)
                if existing is not None:
                    return existing, False
                group = Group(
                    group_id=chat_id,
                    title=title,
                    added_by=added_by,
                    is_approved=approved,
                    approved_by=added_by if approved else None,
                    approved_at=datetime.utcnow() if approved else None,
                )
                session.add(group)
                session.add(GroupAdmin(group_id=chat_id, user_id=added_by, added_by=added_by))
        except IntegrityError:
            async with self.db.session() as session:
                return await session.get(Group, chat_id), False

        logger.info(f"Group {chat_id} registered by {added_by} (approved: {approved})")
        return group, True
