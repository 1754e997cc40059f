"""
Configuration for the tgram bot.

Values come from the environment only (a `.env` file in the working
directory is loaded first). The bot token is never logged in full; use
`mask_token()` when displaying it.

Environment:
    TGRAM_BOT_TOKEN / TELEGRAM_BOT_TOKEN  Bot token
    TGRAM_TOKEN_FILE                      File holding the token (default token.txt)
    TGRAM_API_BASE                        Bot API base URL
    TGRAM_POLL_INTERVAL                   Seconds between fetches
    TGRAM_REQUEST_TIMEOUT                 Deadline for one API call
    TGRAM_LONG_POLL_TIMEOUT               getUpdates server-side wait
    TGRAM_QUEUE_SIZE                      Bound of both pipeline queues
    TGRAM_MAX_CONCURRENCY                 Max routines running at once
    TGRAM_LOG_LEVEL                       Logging level name
    TGRAM_LOG_DIR                         Directory for JSON log files
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from dotenv import load_dotenv

from tgram.api.client import DEFAULT_REQUEST_TIMEOUT, TELEGRAM_API_BASE, load_api_key
from tgram.dispatch.pipeline import DispatcherConfig

logger = logging.getLogger(__name__)

T = TypeVar("T", int, float)

DEFAULT_TOKEN_FILE = "token.txt"

# Load .env from the working directory; real environment variables win
_env_path = Path.cwd() / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


def _env_number(name: str, default: T, cast: Callable[[str], T]) -> T:
    """Read a numeric variable, falling back to `default` when unset or invalid."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    if value < 0:
        logger.warning(f"Negative {name}={raw!r}, using default {default}")
        return default
    return value


def _get_token_file() -> Path:
    return Path(os.getenv("TGRAM_TOKEN_FILE", "").strip() or DEFAULT_TOKEN_FILE)


def _get_bot_token() -> str:
    """
    Resolve the bot token.

    Priority:
    1) TGRAM_BOT_TOKEN env var
    2) TELEGRAM_BOT_TOKEN env var
    3) contents of the token file
    """
    for name in ("TGRAM_BOT_TOKEN", "TELEGRAM_BOT_TOKEN"):
        value = os.getenv(name, "").strip()
        if value:
            return value

    token_file = _get_token_file()
    if token_file.is_file():
        try:
            return load_api_key(token_file)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read token file {token_file}: {e}")
    return ""


@dataclass
class BotConfig:
    """Bot configuration."""

    # === REQUIRED ===
    bot_token: str = field(default_factory=_get_bot_token)
    token_file: Path = field(default_factory=_get_token_file)

    # === API ===
    api_base: str = field(
        default_factory=lambda: os.getenv("TGRAM_API_BASE", "").strip() or TELEGRAM_API_BASE
    )
    request_timeout: float = field(
        default_factory=lambda: _env_number("TGRAM_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float)
    )
    long_poll_timeout: int = field(
        default_factory=lambda: _env_number("TGRAM_LONG_POLL_TIMEOUT", 0, int)
    )

    # === PIPELINE ===
    poll_interval: float = field(
        default_factory=lambda: _env_number("TGRAM_POLL_INTERVAL", 4.0, float)
    )
    queue_size: int = field(default_factory=lambda: _env_number("TGRAM_QUEUE_SIZE", 10, int))
    max_concurrency: int = field(
        default_factory=lambda: _env_number("TGRAM_MAX_CONCURRENCY", 32, int)
    )

    # === LOGGING ===
    log_level: str = field(
        default_factory=lambda: os.getenv("TGRAM_LOG_LEVEL", "").strip().upper() or "INFO"
    )
    log_dir: Optional[Path] = field(
        default_factory=lambda: Path(os.environ["TGRAM_LOG_DIR"]) if os.getenv("TGRAM_LOG_DIR") else None
    )

    def is_valid(self) -> bool:
        """Check if minimum required config is set."""
        return not self.get_missing()

    def get_missing(self) -> List[str]:
        """Get list of missing required config."""
        missing = []
        if not self.bot_token:
            missing.append(f"TGRAM_BOT_TOKEN (or {self.token_file})")
        return missing

    def mask_token(self) -> str:
        """Mask the bot token for safe display."""
        key = self.bot_token
        if not key or len(key) < 8:
            return "***"
        return f"{key[:4]}...{key[-4:]}"

    def dispatcher_config(self) -> DispatcherConfig:
        """Build the pipeline tuning from this configuration."""
        # Queues and concurrency need at least one slot
        return DispatcherConfig(
            poll_interval=self.poll_interval,
            fetch_timeout=self.request_timeout,
            send_timeout=self.request_timeout,
            updates_queue_size=max(1, self.queue_size),
            jobs_queue_size=max(1, self.queue_size),
            max_concurrency=max(1, self.max_concurrency),
            long_poll_timeout=self.long_poll_timeout,
        )


_config: Optional[BotConfig] = None


def get_config() -> BotConfig:
    """Get singleton config instance."""
    global _config
    if _config is None:
        _config = BotConfig()
    return _config


def reload_config() -> BotConfig:
    """Reload config from the environment and reset the singleton."""
    global _config
    if _env_path.exists():
        load_dotenv(_env_path)
    _config = BotConfig()
    return _config
