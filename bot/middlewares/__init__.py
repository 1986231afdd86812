"""Middlewares package - per-update user registration and group enforcement."""
from bot.middlewares.group_guard import GroupGuardMiddleware
from bot.middlewares.user_registry import UserRegistryMiddleware

__all__ = ["GroupGuardMiddleware", "UserRegistryMiddleware"]
