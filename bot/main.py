"""Main bot entry point - unified for both polling and webhook modes."""
import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.types import (
    BotCommand,
    BotCommandScopeAllGroupChats,
    BotCommandScopeAllPrivateChats,
    User,
)

from bot.config import Config
from bot.container import ServiceContainer
from bot.errors import create_error_handlers, install_loop_exception_handler
from bot.handlers import (
    create_admin_handlers,
    create_callback_handlers,
    create_command_handlers,
    create_conversation_handlers,
    create_member_handlers,
    create_message_handlers,
)
from bot.middlewares.group_guard import GroupGuardMiddleware
from bot.middlewares.user_registry import UserRegistryMiddleware
from database.db import Database

logger = logging.getLogger(__name__)


def configure_logging():
    """Process-wide logging: stdout plus bot.log. Called by the entry points only."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler("bot.log")
        ]
    )

PRIVATE_COMMANDS = [
    BotCommand(command="start", description="Home"),
    BotCommand(command="help", description="Help"),
    BotCommand(command="groups", description="Your groups"),
    BotCommand(command="settings", description="Group settings"),
    BotCommand(command="setwelcome", description="Configure the welcome message"),
    BotCommand(command="setgoodbye", description="Configure the goodbye message"),
    BotCommand(command="addgroup", description="How to add a group"),
    BotCommand(command="adminlist", description="Bot admins"),
    BotCommand(command="requests", description="Pending approvals (admins)"),
    BotCommand(command="approve", description="Approve a user (admins)"),
    BotCommand(command="reject", description="Reject a user (admins)"),
    BotCommand(command="cancel", description="Cancel the current action"),
]

GROUP_COMMANDS = [
    BotCommand(command="kick", description="Kick a user"),
    BotCommand(command="add", description="Invite link for a user"),
    BotCommand(command="bl", description="Blacklist a user"),
    BotCommand(command="unbl", description="Remove a user from the blacklist"),
    BotCommand(command="warn", description="Warn a user"),
    BotCommand(command="unwarn", description="Remove a warning"),
]


def build_dispatcher(container: ServiceContainer) -> Dispatcher:
    """
    Wire routers and middlewares around a service container.

    The conversation router goes first so a pending flow sees a user's input
    before any other private-chat handler; the errors router is last.
    """
    dispatcher = Dispatcher()

    registry = UserRegistryMiddleware(container.approval_service)
    dispatcher.message.outer_middleware(registry)
    dispatcher.callback_query.outer_middleware(registry)
    dispatcher.message.outer_middleware(
        GroupGuardMiddleware(
            container.config,
            container.ops,
            container.approval_service,
            container.group_service,
            container.moderation_service,
        )
    )

    dispatcher.include_router(create_conversation_handlers(container))
    dispatcher.include_router(create_command_handlers(container))
    dispatcher.include_router(create_admin_handlers(container))
    dispatcher.include_router(create_callback_handlers(container))
    dispatcher.include_router(create_member_handlers(container))
    dispatcher.include_router(create_message_handlers(container))  # Last, so it doesn't intercept commands
    dispatcher.include_router(create_error_handlers(container.ops, container.approval_service))
    return dispatcher


async def launch_with_retries(
    bot: Bot,
    config: Config,
    sleep=asyncio.sleep,
) -> User:
    """
    Check connectivity with get_me, retrying with exponential backoff.

    After the last failed attempt the static admins are told (best effort) that
    a manual restart is needed and the error is re-raised.
    """
    last_error: Exception | None = None
    for attempt in range(1, config.max_start_attempts + 1):
        try:
            return await asyncio.wait_for(bot.get_me(), timeout=config.api_timeout)
        except (TelegramAPIError, asyncio.TimeoutError, OSError) as e:
            last_error = e
            if attempt >= config.max_start_attempts:
                break
            delay = min(config.max_backoff, 2 ** attempt)
            logger.warning(
                f"⚠️ Startup attempt {attempt}/{config.max_start_attempts} failed: {e}; retrying in {delay}s"
            )
            await sleep(delay)

    logger.error(f"❌ Could not reach Telegram after {config.max_start_attempts} attempts: {last_error}")
    text = (
        "<b>🚨 Bot failed to start</b>\n\n"
        f"Gave up after {config.max_start_attempts} attempts: <code>{type(last_error).__name__}</code>\n"
        "Manual restart needed."
    )
    for admin_id in config.admin_ids:
        try:
            await asyncio.wait_for(bot.send_message(admin_id, text), timeout=config.api_timeout)
        except (TelegramAPIError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"Could not alert admin {admin_id}: {e}")
    raise last_error


class TelegramBot:
    """
    Main bot class - owns the Bot, the Dispatcher and the service container.
    """

    def __init__(self, config: Config, database: Database | None = None):
        """Initialize the bot."""
        self.config = config
        self.db = database or Database(config.database_url)
        self.bot: Bot = None
        self.dispatcher: Dispatcher = None
        self.container: ServiceContainer = None
        self._running = False
        self.started_at: float | None = None

    async def initialize(self):
        """Initialize all bot components."""
        logger.info("=" * 70)
        logger.info("🤖 GROUP KEEPER BOT - INITIALIZING")
        logger.info("=" * 70)

        try:
            # Initialize database
            logger.info("📊 Initializing database...")
            await self.db.connect()
            if self.db.is_sqlite:
                await self.db.create_tables()
            else:
                await self.db.require_schema()
            logger.info("✅ Database initialized")

            # Initialize bot
            logger.info("🤖 Initializing bot...")
            self.bot = Bot(
                token=self.config.bot_token,
                default=DefaultBotProperties(parse_mode=ParseMode.HTML)
            )
            logger.info("✅ Bot initialized")

            # Initialize service container
            logger.info("🔧 Initializing services...")
            self.container = ServiceContainer.create(self.config, self.db, self.bot)
            logger.info("✅ Services initialized")

            # Initialize dispatcher
            logger.info("📡 Initializing dispatcher...")
            self.dispatcher = build_dispatcher(self.container)
            logger.info("✅ Dispatcher initialized, handlers registered")

            logger.info("=" * 70)
            logger.info("✅ BOT INITIALIZATION COMPLETE")
            logger.info("=" * 70)

        except Exception as e:
            logger.error(f"❌ Failed to initialize bot: {e}", exc_info=True)
            raise

    async def start(self):
        """Connect to Telegram and display info."""
        if self._running:
            logger.warning("Bot is already running")
            return

        logger.info("=" * 70)
        logger.info("🚀 STARTING BOT")
        logger.info("=" * 70)

        try:
            bot_info = await launch_with_retries(self.bot, self.config)
            self._running = True
            self.started_at = asyncio.get_running_loop().time()
            install_loop_exception_handler(asyncio.get_running_loop(), self.container.ops, self.config.admin_ids)

            logger.info(f"📱 Bot username: @{bot_info.username}")
            logger.info(f"🆔 Bot ID: {bot_info.id}")
            logger.info(f"👮 Static admins: {len(self.config.admin_ids)}")
            logger.info(f"⚠️  Warning limit: {self.config.warn_limit}")
            logger.info(f"🌐 Mode: {'Production (webhook)' if self.config.is_production else 'Development (polling)'}")

            logger.info("=" * 70)
            logger.info("✅ BOT IS RUNNING")
            logger.info("=" * 70)

            await self._set_command_menu()

        except Exception as e:
            logger.error(f"❌ Failed to start bot: {e}", exc_info=True)
            self._running = False
            raise

    async def _set_command_menu(self):
        """Configure Telegram's "/" command list for private chats and groups."""
        try:
            await self.bot.set_my_commands(commands=PRIVATE_COMMANDS, scope=BotCommandScopeAllPrivateChats())
            await self.bot.set_my_commands(commands=GROUP_COMMANDS, scope=BotCommandScopeAllGroupChats())
        except TelegramAPIError as e:
            logger.warning(f"Failed to set command menu: {e}")

    async def stop(self):
        """Stop the bot and cleanup."""
        if not self._running:
            logger.warning("Bot is not running")
            return

        logger.info("=" * 70)
        logger.info("🛑 STOPPING BOT")
        logger.info("=" * 70)

        try:
            self._running = False

            if self.container:
                cleared = self.container.conversations.pending_count()
                if cleared:
                    logger.info(f"🧹 Dropping {cleared} pending conversation(s)")

            # Close bot session
            if self.bot:
                logger.info("🤖 Closing bot session...")
                await self.bot.session.close()
                logger.info("✅ Bot session closed")

            # Close database
            logger.info("📊 Closing database...")
            await self.db.close()
            logger.info("✅ Database closed")

            logger.info("=" * 70)
            logger.info("✅ BOT STOPPED")
            logger.info("=" * 70)

        except Exception as e:
            logger.error(f"❌ Error stopping bot: {e}", exc_info=True)
            raise

    async def run_polling(self):
        """Run bot in polling mode (for local development)."""
        await self.start()

        try:
            logger.info("📡 Starting polling...")
            await self.bot.delete_webhook(drop_pending_updates=False)
            await self.dispatcher.start_polling(
                self.bot,
                allowed_updates=self.dispatcher.resolve_used_update_types()
            )
        except KeyboardInterrupt:
            logger.info("⌨️  Received interrupt signal")
        finally:
            await self.stop()

    def get_bot(self) -> Bot:
        """Get the bot instance."""
        return self.bot

    def get_dispatcher(self) -> Dispatcher:
        """Get the dispatcher instance."""
        return self.dispatcher

    def get_container(self) -> ServiceContainer:
        """Get the service container."""
        return self.container

    def is_running(self) -> bool:
        """Check if bot is running."""
        return self._running

    def uptime_seconds(self) -> int:
        if self.started_at is None:
            return 0
        return int(asyncio.get_running_loop().time() - self.started_at)


async def main():
    """Main entry point for polling mode."""
    try:
        # Load configuration
        config = Config.from_env()
        logger.info("✅ Configuration loaded")

        # Create and initialize bot
        bot = TelegramBot(config)
        await bot.initialize()

        # Run in polling mode
        await bot.run_polling()

    except KeyboardInterrupt:
        logger.info("⌨️  Bot stopped by user")
    except Exception as e:
        logger.error(f"❌ Fatal error: {e}", exc_info=True)
        sys.exit(1)


def run():
    """Console script entry point."""
    configure_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("⌨️  Bot stopped by user")


if __name__ == "__main__":
    run()
