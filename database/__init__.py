"""Database package - models and connection management."""
from database.db import Database
from database.models import (
    Base,
    User,
    Group,
    BlacklistEntry,
    WarningEntry,
    GroupAdmin,
    WelcomeTemplate,
    GoodbyeTemplate,
)

__all__ = [
    "Database",
    "Base",
    "User",
    "Group",
    "BlacklistEntry",
    "WarningEntry",
    "GroupAdmin",
    "WelcomeTemplate",
    "GoodbyeTemplate",
]
