"""Configuration loader for the bot with validation."""
import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


def _parse_admin_ids(raw: str) -> tuple[int, ...]:
    ids = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            value = int(part)
        except ValueError:
            continue
        if value > 0:
            ids.append(value)
    return tuple(dict.fromkeys(ids))


@dataclass
class Config:
    """
    Bot configuration from environment variables.

    Built once at startup and passed to every component that needs it.
    All settings are validated on load to fail fast if misconfigured.
    """

    # Telegram Bot
    bot_token: str

    # Storage
    database_url: str = ""

    # Static bot admins (always approved)
    admin_ids: tuple[int, ...] = field(default_factory=tuple)

    # Webhook (for production)
    webhook_path: str = "/webhook"
    webhook_url: str = ""
    webhook_secret: str = ""

    # Platform calls
    api_timeout: float = 10.0

    # Moderation
    warn_limit: int = 3
    spam_max_length: int = 1000
    command_delete_delay: float = 5.0

    # Startup supervision
    max_start_attempts: int = 5
    max_backoff: int = 30

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.bot_token:
            raise ValueError("bot_token must not be empty")

        if not self.webhook_path.startswith("/"):
            raise ValueError("webhook_path must start with '/'")

        if self.api_timeout <= 0:
            raise ValueError("api_timeout must be positive")

        if self.warn_limit < 1:
            raise ValueError("warn_limit must be at least 1")

        if self.spam_max_length < 1:
            raise ValueError("spam_max_length must be at least 1")

        if self.command_delete_delay < 0:
            raise ValueError("command_delete_delay must not be negative")

        if self.max_start_attempts < 1 or self.max_backoff < 1:
            raise ValueError("max_start_attempts and max_backoff must be at least 1")

        self.admin_ids = tuple(self.admin_ids)

    @classmethod
    def from_env(cls) -> "Config":
        """
        Load configuration from environment variables.

        Raises:
            RuntimeError: If required environment variables are missing
            ValueError: If configuration values are invalid
        """
        bot_token = os.getenv("BOT_TOKEN")
        if not bot_token:
            raise RuntimeError("BOT_TOKEN environment variable is required")

        return cls(
            bot_token=bot_token,
            database_url=os.getenv("DATABASE_URL", ""),
            admin_ids=_parse_admin_ids(os.getenv("ADMIN_IDS", "")),
            webhook_path=os.getenv("WEBHOOK_PATH", "/webhook"),
            webhook_url=os.getenv("WEBHOOK_URL", ""),
            webhook_secret=os.getenv("WEBHOOK_SECRET", ""),
            api_timeout=float(os.getenv("API_TIMEOUT", "10")),
            warn_limit=int(os.getenv("WARN_LIMIT", "3")),
            spam_max_length=int(os.getenv("SPAM_MAX_LENGTH", "1000")),
            command_delete_delay=float(os.getenv("COMMAND_DELETE_DELAY", "5")),
            max_start_attempts=int(os.getenv("MAX_START_ATTEMPTS", "5")),
            max_backoff=int(os.getenv("MAX_BACKOFF", "30")),
        )

    def is_bot_admin(self, user_id: int) -> bool:
        """Check the static admin allowlist."""
        return int(user_id) in self.admin_ids

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return bool(self.webhook_url)
