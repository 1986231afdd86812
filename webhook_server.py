"""Webhook deployment: FastAPI receives Telegram updates and feeds the dispatcher."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from aiogram.exceptions import TelegramAPIError
from aiogram.types import Update
from fastapi import FastAPI, Request, Response
from pydantic import ValidationError

from bot.config import Config
from bot.main import TelegramBot, configure_logging

configure_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"
SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

config = Config.from_env()
telegram_bot: Optional[TelegramBot] = None


def _is_running() -> bool:
    return telegram_bot is not None and telegram_bot.is_running()


def describe_update(update: Update) -> str:
    """
    One log line per update: kind, chat and sender ids, and the command name
    for commands. Message bodies are never included.
    """
    kind = update.event_type
    event = update.event
    parts = [f"tg_update={update.update_id}", f"kind={kind}"]
    chat = getattr(event, "chat", None) or getattr(getattr(event, "message", None), "chat", None)
    if chat is not None:
        parts.append(f"chat={chat.id}({chat.type})")
    sender = getattr(event, "from_user", None)
    if sender is not None:
        parts.append(f"from={sender.id}")
    if kind == "message":
        text = event.text or event.caption or ""
        if text.startswith("/"):
            parts.append(f"cmd={text.split(maxsplit=1)[0].split('@', 1)[0]}")
    elif kind == "callback_query":
        parts.append(f"cb={(event.data or '').split(':', 1)[0]}")
    return " ".join(parts)


async def _register_webhook(bot: TelegramBot) -> None:
    url = f"{config.webhook_url.rstrip('/')}{config.webhook_path}"
    kwargs = {"url": url, "allowed_updates": bot.get_dispatcher().resolve_used_update_types()}
    if config.webhook_secret:
        kwargs["secret_token"] = config.webhook_secret
    else:
        logger.warning("⚠️ WEBHOOK_SECRET is empty; incoming requests are not authenticated")
    await bot.get_bot().set_webhook(**kwargs)
    logger.info(f"✅ Webhook registered at {url}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    global telegram_bot

    logger.info("🚀 Starting webhook server")
    bot = TelegramBot(config)
    try:
        await bot.initialize()
        await bot.start()
        await _register_webhook(bot)
    except Exception as e:
        logger.error(f"❌ Webhook server failed to start: {e}", exc_info=True)
        raise
    telegram_bot = bot

    yield

    logger.info("🛑 Stopping webhook server")
    telegram_bot = None
    try:
        await bot.get_bot().delete_webhook()
    except TelegramAPIError as e:
        logger.warning(f"Could not remove webhook: {e}")
    await bot.stop()


app = FastAPI(
    lifespan=lifespan,
    title="Group Keeper Bot",
    description="Telegram group management bot",
    version=VERSION,
)


@app.post(config.webhook_path)
async def webhook_handler(request: Request):
    """Authenticate, parse and dispatch one update. Telegram retries anything but 2xx."""
    if config.webhook_secret and request.headers.get(SECRET_HEADER, "") != config.webhook_secret:
        logger.warning("⚠️ Rejected webhook call with a bad secret token")
        return Response(status_code=401)
    if not _is_running():
        return Response(status_code=503)

    bot = telegram_bot.get_bot()
    try:
        update = Update.model_validate(await request.json(), context={"bot": bot})
    except (ValueError, ValidationError) as e:
        # Malformed bodies would fail identically on retry.
        logger.warning(f"Dropped unparseable update: {e}")
        return Response(status_code=200)

    logger.info(describe_update(update))
    try:
        await telegram_bot.get_dispatcher().feed_update(bot, update)
    except TelegramAPIError as e:
        logger.warning(f"tg_update={update.update_id} dropped: {e}")
    except Exception as e:
        logger.error(f"❌ Update {update.update_id} failed: {e}", exc_info=True)
        return Response(status_code=500)
    return Response(status_code=200)


@app.get("/health")
async def health_check():
    if not _is_running():
        return {"status": "starting", "running": False, "version": VERSION}
    database_ok = await telegram_bot.db.health_check()
    return {
        "status": "ok" if database_ok else "degraded",
        "running": True,
        "database_ok": database_ok,
        "version": VERSION,
    }


@app.get("/status")
async def status():
    if not _is_running():
        return {"status": "starting"}
    return {
        "status": "running",
        "version": VERSION,
        "uptime_seconds": telegram_bot.uptime_seconds(),
        "pending_conversations": telegram_bot.get_container().conversations.pending_count(),
        "tables": await telegram_bot.db.get_table_counts(),
    }


@app.get("/")
async def root():
    # The webhook path stays unlisted.
    return {
        "name": "Group Keeper Bot",
        "version": VERSION,
        "status": "running" if _is_running() else "starting",
        "endpoints": {"health": "/health", "status": "/status"},
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
