"""Handlers package - command, callback, conversation and event handlers."""
from bot.handlers.admin_commands import create_admin_handlers
from bot.handlers.callbacks import create_callback_handlers
from bot.handlers.commands import create_command_handlers
from bot.handlers.conversation import create_conversation_handlers
from bot.handlers.member_events import create_member_handlers
from bot.handlers.message_handlers import create_message_handlers

__all__ = [
    "create_admin_handlers",
    "create_callback_handlers",
    "create_command_handlers",
    "create_conversation_handlers",
    "create_member_handlers",
    "create_message_handlers",
]
