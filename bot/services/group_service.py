"""Group service - lookup of managed groups and their moderation settings."""
import logging
from typing import Optional
from sqlalchemy import select, or_

from database.db import Database
from database.models import Group, GroupAdmin, GROUP_SETTING_FIELDS

logger = logging.getLogger(__name__)

# Settings toggled through this service. welcome_enabled/goodbye_enabled mirror the
# template switch and are only written by TemplateService.
TOGGLEABLE_SETTINGS = GROUP_SETTING_FIELDS


class GroupService:
    """Read and update per-group configuration."""

    def __init__(self, db: Database):
        self.db = db

    async def get_group(self, group_id: int) -> Optional[Group]:
        async with self.db.session() as session:
            return await session.get(Group, group_id)

    async def list_manageable(self, user_id: int, *, include_all: bool = False) -> list[Group]:
        """
        Approved groups a user can manage from private chat.

        Args:
            user_id: Telegram user ID
            include_all: Bot admins see every approved group
        """
        async with self.db.session() as session:
            query = select(Group).where(Group.is_approved.is_(True))
            if not include_all:
                managed_ids = select(GroupAdmin.group_id).where(GroupAdmin.user_id == user_id)
                query = query.where(or_(Group.added_by == user_id, Group.group_id.in_(managed_ids)))
            result = await session.execute(query.order_by(Group.title))
            return list(result.scalars().all())

    async def is_manager(self, group_id: int, user_id: int) -> bool:
        """True if the user added the group or is listed as one of its bot-side admins."""
        async with self.db.session() as session:
            group = await session.get(Group, group_id)
            if group is None:
                return False
            if group.added_by == user_id:
                return True
            result = await session.execute(
                select(GroupAdmin.id).where(GroupAdmin.group_id == group_id, GroupAdmin.user_id == user_id)
            )
            return result.scalar_one_or_none() is not None

    async def toggle_setting(self, group_id: int, setting: str) -> Optional[bool]:
        """
        Flip one boolean setting.

        Returns:
            The new value, or None if the group does not exist
        """
        if setting not in TOGGLEABLE_SETTINGS:
            raise ValueError(f"Unknown group setting: {setting}")
        async with self.db.session() as session:
            group = await session.get(Group, group_id)
            if group is None:
                return None
            new_value = not bool(getattr(group, setting))
            setattr(group, setting, new_value)
        logger.info(f"Group {group_id}: {setting} -> {new_value}")
        return new_value

    async def update_title(self, group_id: int, title: Optional[str]) -> None:
        if not title:
            return
        async with self.db.session() as session:
            group = await session.get(Group, group_id)
            if group is not None and group.title != title:
                group.title = title
