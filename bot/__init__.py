"""Group Keeper - Telegram group management bot."""
