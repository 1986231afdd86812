"""Moderation service - per-group blacklist, warnings and kicks."""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from bot.services.approval_service import ApprovalService
from bot.services.telegram_ops import SafeTelegram
from database.db import Database
from database.models import Group, BlacklistEntry, WarningEntry

logger = logging.getLogger(__name__)

DEFAULT_REASON = "No reason given"


class ModerationOutcome(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    ALREADY_PRESENT = "already_present"
    NOT_FOUND = "not_found"
    GROUP_NOT_FOUND = "group_not_found"
    PROTECTED = "protected"  # target is a bot admin or a chat admin
    WARNED = "warned"
    LIMIT_REACHED = "limit_reached"
    KICKED = "kicked"
    NO_PRIVILEGE = "no_privilege"
    FAILED = "failed"


@dataclass(frozen=True)
class WarnResult:
    outcome: ModerationOutcome
    count: int = 0
    kicked: bool = False
    reason: Optional[str] = None


def normalize_reason(text: Optional[str]) -> str:
    """Free-text reason; empty input or literal 'skip' map to the default."""
    value = (text or "").strip()
    if not value or value.lower() == "skip":
        return DEFAULT_REASON
    return value


class ModerationService:
    """
    Blacklist and warning bookkeeping plus the chat actions they trigger.

    A user appears at most once in a group's blacklist and at most once in its
    warning list; both are enforced by unique constraints, not only by the
    read-before-write checks here.
    """

    def __init__(self, db: Database, ops: SafeTelegram, approval: ApprovalService, warn_limit: int = 3):
        self.db = db
        self.ops = ops
        self.approval = approval
        self.warn_limit = warn_limit

    async def is_protected(self, group_id: int, user_id: int) -> bool:
        """Bot admins and chat creators/administrators cannot be moderated."""
        if await self.approval.is_bot_admin(user_id):
            return True
        return await self.ops.is_chat_admin(group_id, user_id)

    # ========== BLACKLIST ==========

    async def is_blacklisted(self, group_id: int, user_id: int) -> bool:
        async with self.db.session() as session:
            result = await session.execute(
                select(BlacklistEntry.id).where(BlacklistEntry.group_id == group_id, BlacklistEntry.user_id == user_id)
            )
            return result.scalar_one_or_none() is not None

    async def get_blacklist_entry(self, group_id: int, user_id: int) -> Optional[BlacklistEntry]:
        async with self.db.session() as session:
            result = await session.execute(
                select(BlacklistEntry).where(BlacklistEntry.group_id == group_id, BlacklistEntry.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def list_blacklist(self, group_id: int) -> list[BlacklistEntry]:
        async with self.db.session() as session:
            result = await session.execute(
                select(BlacklistEntry).where(BlacklistEntry.group_id == group_id).order_by(BlacklistEntry.id)
            )
            return list(result.scalars().all())

    async def add_to_blacklist(
        self,
        group_id: int,
        user_id: int,
        added_by: int,
        reason: Optional[str] = None,
        *,
        check_protected: bool = True,
    ) -> ModerationOutcome:
        if check_protected and await self.is_protected(group_id, user_id):
            return ModerationOutcome.PROTECTED
        try:
            async with self.db.session() as session:
                if await session.get(Group, group_id) is None:
                    return ModerationOutcome.GROUP_NOT_FOUND
                result = await session.execute(
                    select(BlacklistEntry.id).where(
                        BlacklistEntry.group_id == group_id, BlacklistEntry.user_id == user_id
                    )
                )
                if result.scalar_one_or_none() is not None:
                    return ModerationOutcome.ALREADY_PRESENT
                session.add(BlacklistEntry(
                    group_id=group_id,
                    user_id=user_id,
                    added_by=added_by,
                    reason=normalize_reason(reason),
                ))
        except IntegrityError:
            return ModerationOutcome.ALREADY_PRESENT
        logger.info(f"User {user_id} blacklisted in group {group_id} by {added_by}")
        return ModerationOutcome.ADDED

    async def remove_from_blacklist(self, group_id: int, user_id: int) -> ModerationOutcome:
        async with self.db.session() as session:
            result = await session.execute(
                select(BlacklistEntry).where(BlacklistEntry.group_id == group_id, BlacklistEntry.user_id == user_id)
            )
            entry = result.scalar_one_or_none()
            if entry is None:
                return ModerationOutcome.NOT_FOUND
            await session.delete(entry)
        logger.info(f"User {user_id} removed from blacklist of group {group_id}")
        return ModerationOutcome.REMOVED

    async def blacklist_from_warning(self, group_id: int, user_id: int, added_by: int) -> ModerationOutcome:
        """Turn a warning entry into a blacklist entry carrying the last warning's reason."""
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(WarningEntry).where(WarningEntry.group_id == group_id, WarningEntry.user_id == user_id)
                )
                warning = result.scalar_one_or_none()
                if warning is None:
                    return ModerationOutcome.NOT_FOUND
                existing = await session.execute(
                    select(BlacklistEntry.id).where(
                        BlacklistEntry.group_id == group_id, BlacklistEntry.user_id == user_id
                    )
                )
                outcome = ModerationOutcome.ADDED
                if existing.scalar_one_or_none() is None:
                    session.add(BlacklistEntry(
                        group_id=group_id,
                        user_id=user_id,
                        added_by=added_by,
                        reason=warning.reason or DEFAULT_REASON,
                    ))
                else:
                    outcome = ModerationOutcome.ALREADY_PRESENT
                await session.delete(warning)
        except IntegrityError:
            return ModerationOutcome.ALREADY_PRESENT
        logger.info(f"User {user_id} moved from warnings to blacklist in group {group_id}")
        return outcome

    # ========== WARNINGS ==========

    async def get_warning(self, group_id: int, user_id: int) -> Optional[WarningEntry]:
        async with self.db.session() as session:
            result = await session.execute(
                select(WarningEntry).where(WarningEntry.group_id == group_id, WarningEntry.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def list_warnings(self, group_id: int) -> list[WarningEntry]:
        async with self.db.session() as session:
            result = await session.execute(
                select(WarningEntry).where(WarningEntry.group_id == group_id).order_by(WarningEntry.id)
            )
            return list(result.scalars().all())

    async def warn(
        self,
        group_id: int,
        user_id: int,
        added_by: int,
        reason: Optional[str] = None,
        *,
        check_protected: bool = True,
    ) -> WarnResult:
        """
        Add one warning.

        Reaching the warn limit removes the entry and soft-kicks the user, so a
        stored count never reaches the limit.
        """
        if check_protected and await self.is_protected(group_id, user_id):
            return WarnResult(ModerationOutcome.PROTECTED)

        reason = normalize_reason(reason)
        async with self.db.session() as session:
            if await session.get(Group, group_id) is None:
                return WarnResult(ModerationOutcome.GROUP_NOT_FOUND)
            result = await session.execute(
                select(WarningEntry).where(WarningEntry.group_id == group_id, WarningEntry.user_id == user_id)
            )
            entry = result.scalar_one_or_none()
            count = (entry.count if entry else 0) + 1
            if count >= self.warn_limit:
                if entry is not None:
                    await session.delete(entry)
            elif entry is None:
                session.add(WarningEntry(
                    group_id=group_id, user_id=user_id, added_by=added_by, reason=reason, count=count,
                ))
            else:
                entry.count = count
                entry.added_by = added_by
                entry.added_at = datetime.utcnow()
                entry.reason = reason

        if count < self.warn_limit:
            logger.info(f"User {user_id} warned in group {group_id} ({count}/{self.warn_limit})")
            return WarnResult(ModerationOutcome.WARNED, count=count, reason=reason)

        kicked = False
        if await self.ops.bot_can_restrict(group_id):
            kicked = await self.ops.soft_kick(group_id, user_id)
        logger.info(f"User {user_id} hit the warn limit in group {group_id}; kicked: {kicked}")
        return WarnResult(ModerationOutcome.LIMIT_REACHED, count=count, kicked=kicked, reason=reason)

    async def unwarn(self, group_id: int, user_id: int) -> WarnResult:
        """Remove one warning; the entry disappears when the count hits zero."""
        async with self.db.session() as session:
            result = await session.execute(
                select(WarningEntry).where(WarningEntry.group_id == group_id, WarningEntry.user_id == user_id)
            )
            entry = result.scalar_one_or_none()
            if entry is None:
                return WarnResult(ModerationOutcome.NOT_FOUND)
            count = entry.count - 1
            if count <= 0:
                await session.delete(entry)
                count = 0
            else:
                entry.count = count
        logger.info(f"Warning removed for user {user_id} in group {group_id}; {count} left")
        return WarnResult(ModerationOutcome.REMOVED, count=count)

    # ========== KICK ==========

    async def kick(self, group_id: int, user_id: int) -> ModerationOutcome:
        """Soft-kick a member after checking the bot's privilege and the target's status."""
        if not await self.ops.bot_can_restrict(group_id):
            return ModerationOutcome.NO_PRIVILEGE
        if await self.is_protected(group_id, user_id):
            return ModerationOutcome.PROTECTED
        if not await self.ops.soft_kick(group_id, user_id):
            return ModerationOutcome.FAILED
        logger.info(f"User {user_id} kicked from group {group_id}")
        return ModerationOutcome.KICKED
