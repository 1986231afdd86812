"""Configuration loading and the startup connectivity supervisor."""
from types import SimpleNamespace

import pytest
from aiogram.exceptions import TelegramNetworkError

from bot.config import Config
from bot.main import PRIVATE_COMMANDS, GROUP_COMMANDS, launch_with_retries
from conftest import FakeBot


class FlakyBot(FakeBot):
    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures

    async def get_me(self):
        await self._record("get_me")
        if self.failures > 0:
            self.failures -= 1
            raise TelegramNetworkError(method=None, message="connection refused")
        return SimpleNamespace(id=42, username="keeper_bot")


def _config(**overrides) -> Config:
    values = dict(bot_token="42:TEST", admin_ids=(1, 2))
    values.update(overrides)
    return Config(**values)


def test_from_env(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "42:TEST")
    monkeypatch.setenv("ADMIN_IDS", "5, 6,abc,-3,5")
    monkeypatch.setenv("WARN_LIMIT", "4")
    monkeypatch.delenv("WEBHOOK_URL", raising=False)
    config = Config.from_env()
    assert config.admin_ids == (5, 6)
    assert config.warn_limit == 4
    assert config.is_bot_admin(6)
    assert not config.is_bot_admin(7)
    assert not config.is_production


def test_from_env_requires_token(monkeypatch):
    monkeypatch.delenv("BOT_TOKEN", raising=False)
    with pytest.raises(RuntimeError):
        Config.from_env()


def test_invalid_values_fail_fast():
    with pytest.raises(ValueError):
        _config(webhook_path="hook")
    with pytest.raises(ValueError):
        _config(warn_limit=0)
    with pytest.raises(ValueError):
        _config(api_timeout=0)


def test_command_menu_covers_every_command():
    names = {c.command for c in PRIVATE_COMMANDS + GROUP_COMMANDS}
    assert names == {
        "start", "help", "addgroup", "approve", "reject", "groups", "kick", "add", "bl", "unbl",
        "warn", "unwarn", "adminlist", "requests", "setwelcome", "setgoodbye", "settings", "cancel",
    }


async def test_retries_with_capped_backoff():
    bot = FlakyBot(failures=3)
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    me = await launch_with_retries(bot, _config(max_backoff=5), sleep=fake_sleep)
    assert me.username == "keeper_bot"
    assert delays == [2, 4, 5]
    assert bot.called("send_message") == []


async def test_gives_up_and_alerts_admins():
    bot = FlakyBot(failures=10)
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    with pytest.raises(TelegramNetworkError):
        await launch_with_retries(bot, _config(), sleep=fake_sleep)
    assert len(bot.called("get_me")) == 5
    assert delays == [2, 4, 8, 16]
    alerts = bot.called("send_message")
    assert sorted(a["chat_id"] for a in alerts) == [1, 2]
    assert "Manual restart needed" in alerts[0]["text"]
