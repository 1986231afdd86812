"""Database models - users, groups, moderation lists and greeting templates."""
import json
from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    Index,
    BigInteger,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Boolean flags a group admin can flip from the settings menu, in display order.
GROUP_SETTING_FIELDS = (
    "anti_spam",
    "anti_link",
    "anti_forward",
    "restrict_new_members",
    "auto_delete_commands",
    "admin_only_commands",
)

MEDIA_TYPES = ("none", "photo", "video", "animation", "sticker")


class User(Base):
    """Everyone who has talked to the bot, with their approval state."""
    __tablename__ = "users"

    telegram_id = Column(BigInteger, primary_key=True, autoincrement=False)
    username = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    approved_by = Column(BigInteger, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    requested_at = Column(DateTime, nullable=True)  # NULL = no pending request
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_users_username", "username"),
    )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def __repr__(self):
        return f"<User(telegram_id={self.telegram_id}, approved={self.is_approved}, admin={self.is_admin})>"


class Group(Base):
    """Managed group with its approval state and moderation settings."""
    __tablename__ = "groups"

    group_id = Column(BigInteger, primary_key=True, autoincrement=False)
    title = Column(String, nullable=True)
    added_by = Column(BigInteger, nullable=True)

    # Approval
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_by = Column(BigInteger, nullable=True)
    approved_at = Column(DateTime, nullable=True)

    # Settings
    welcome_enabled = Column(Boolean, nullable=False, default=False)
    goodbye_enabled = Column(Boolean, nullable=False, default=False)
    anti_spam = Column(Boolean, nullable=False, default=False)
    anti_link = Column(Boolean, nullable=False, default=False)
    anti_forward = Column(Boolean, nullable=False, default=False)
    restrict_new_members = Column(Boolean, nullable=False, default=False)
    auto_delete_commands = Column(Boolean, nullable=False, default=False)
    admin_only_commands = Column(Boolean, nullable=False, default=False)

    # Metadata
    added_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    blacklist = relationship("BlacklistEntry", back_populates="group", cascade="all, delete-orphan")
    warnings = relationship("WarningEntry", back_populates="group", cascade="all, delete-orphan")
    admins = relationship("GroupAdmin", back_populates="group", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Group(group_id={self.group_id}, title={self.title}, approved={self.is_approved})>"


class BlacklistEntry(Base):
    """Per-group blacklist; messages from these users are always deleted."""
    __tablename__ = "group_blacklist"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(BigInteger, ForeignKey("groups.group_id"), nullable=False)
    user_id = Column(BigInteger, nullable=False)
    added_by = Column(BigInteger, nullable=True)
    added_at = Column(DateTime, default=datetime.utcnow)
    reason = Column(Text, nullable=True)

    group = relationship("Group", back_populates="blacklist")

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_blacklist_user"),
    )

    def __repr__(self):
        return f"<BlacklistEntry(group_id={self.group_id}, user_id={self.user_id})>"


class WarningEntry(Base):
    """Per-(group, user) warning counter."""
    __tablename__ = "group_warnings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(BigInteger, ForeignKey("groups.group_id"), nullable=False)
    user_id = Column(BigInteger, nullable=False)
    added_by = Column(BigInteger, nullable=True)  # Last warning issuer
    added_at = Column(DateTime, default=datetime.utcnow)
    reason = Column(Text, nullable=True)
    count = Column(Integer, nullable=False, default=1)

    group = relationship("Group", back_populates="warnings")

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_warnings_user"),
    )

    def __repr__(self):
        return f"<WarningEntry(group_id={self.group_id}, user_id={self.user_id}, count={self.count})>"


class GroupAdmin(Base):
    """Bot-side managers of a group (besides the user who added it)."""
    __tablename__ = "group_admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(BigInteger, ForeignKey("groups.group_id"), nullable=False)
    user_id = Column(BigInteger, nullable=False)
    added_by = Column(BigInteger, nullable=True)
    added_at = Column(DateTime, default=datetime.utcnow)

    group = relationship("Group", back_populates="admins")

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_admins_user"),
    )


class _GreetingTemplate:
    """Columns shared by welcome and goodbye templates."""

    group_id = Column(BigInteger, primary_key=True, autoincrement=False)
    media_type = Column(String, nullable=False, default="none")
    media_file_id = Column(String, nullable=True)
    has_caption = Column(Boolean, nullable=False, default=True)
    buttons_json = Column("buttons", Text, nullable=False, default="[]")  # JSON string (avoid dialect-specific JSON type)
    show_buttons = Column(Boolean, nullable=False, default=False)
    show_tags = Column(Boolean, nullable=False, default=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def buttons(self) -> list[dict]:
        try:
            data = json.loads(self.buttons_json or "[]")
        except (json.JSONDecodeError, TypeError):
            return []
        return [b for b in data if isinstance(b, dict) and b.get("text") and b.get("url")]

    @buttons.setter
    def buttons(self, value: list[dict]) -> None:
        self.buttons_json = json.dumps([{"text": b["text"], "url": b["url"]} for b in value])

    @property
    def has_media(self) -> bool:
        return self.media_type != "none" and bool(self.media_file_id)


class WelcomeTemplate(_GreetingTemplate, Base):
    """Message sent when a member joins."""
    __tablename__ = "welcome_templates"

    text = Column(Text, nullable=False, default="Welcome to the group!")

    def __repr__(self):
        return f"<WelcomeTemplate(group_id={self.group_id}, media={self.media_type})>"


class GoodbyeTemplate(_GreetingTemplate, Base):
    """Message sent when a member leaves."""
    __tablename__ = "goodbye_templates"

    text = Column(Text, nullable=False, default="Goodbye!")

    def __repr__(self):
        return f"<GoodbyeTemplate(group_id={self.group_id}, media={self.media_type})>"
