"""
tgram Bot CLI

Run and inspect the bot from the command line.

Usage:
    python -m tgram run                  # Poll and dispatch until Ctrl+C
    python -m tgram status               # Show configuration
    python -m tgram getme                # Validate the token
    python -m tgram send <chat_id> <msg> # Send a message to a chat
"""

import argparse
import asyncio
import logging
import signal
from typing import List, Optional

from tgram.api.client import TelegramGateway
from tgram.commands.builtin import register_builtin_routines
from tgram.commands.registry import RoutineRegistry
from tgram.config import BotConfig, get_config
from tgram.dispatch.pipeline import Dispatcher
from tgram.errors import GatewayError
from tgram.logging_utils import setup_logger

logger = logging.getLogger(__name__)


def _make_gateway(config: BotConfig) -> TelegramGateway:
    return TelegramGateway(
        token=config.bot_token,
        base_url=config.api_base,
        request_timeout=config.request_timeout,
        long_poll_timeout=config.long_poll_timeout,
    )


def _require_token(config: BotConfig) -> bool:
    missing = config.get_missing()
    if missing:
        print(f"ERROR: missing configuration: {', '.join(missing)}")
        return False
    return True


async def _run_bot(config: BotConfig) -> None:
    registry = RoutineRegistry()
    register_builtin_routines(registry)

    async with _make_gateway(config) as gateway:
        dispatcher = Dispatcher(gateway, registry, config.dispatcher_config())

        loop = asyncio.get_running_loop()
        stop_requested = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_requested.set)
            except NotImplementedError:
                # Windows event loops have no signal handlers; Ctrl+C raises instead
                pass

        await dispatcher.start()
        try:
            await stop_requested.wait()
            logger.info("Shutdown signal received")
        finally:
            await dispatcher.stop()


def cmd_run(args, config: BotConfig) -> int:
    """Start polling and dispatching."""
    if not _require_token(config):
        return 1

    print("\n" + "=" * 50)
    print(f"Starting tgram bot (token {config.mask_token()})...")
    print("=" * 50)

    try:
        asyncio.run(_run_bot(config))
    except KeyboardInterrupt:
        pass
    return 0


def cmd_status(args, config: BotConfig) -> int:
    """Show configuration."""
    print("\n" + "=" * 50)
    print("TGRAM BOT STATUS")
    print("=" * 50)

    print(f"\nBot Token: {'[OK] ' + config.mask_token() if config.bot_token else '[X] Missing'}")
    print(f"Token File: {config.token_file}")
    print(f"API Base: {config.api_base}")
    print(f"Poll Interval: {config.poll_interval}s")
    print(f"Request Timeout: {config.request_timeout}s")
    print(f"Long Poll Timeout: {config.long_poll_timeout}s")
    print(f"Queue Size: {config.queue_size}")
    print(f"Max Concurrency: {config.max_concurrency}")
    print(f"Log Level: {config.log_level}")
    print(f"Log Dir: {config.log_dir or '[-] Console only'}")

    missing = config.get_missing()
    if missing:
        print(f"\nMissing: {', '.join(missing)}")
    print()
    return 0 if not missing else 1


async def _get_me(config: BotConfig) -> str:
    async with _make_gateway(config) as gateway:
        me = await gateway.get_me()
    return f"@{me.username}" if me.username else me.first_name


def cmd_getme(args, config: BotConfig) -> int:
    """Validate the token against the Bot API."""
    if not _require_token(config):
        return 1

    try:
        name = asyncio.run(_get_me(config))
    except GatewayError as e:
        print(f"[X] Token check failed: {e}")
        return 1

    print(f"[OK] Authorized as {name}")
    return 0


async def _send(config: BotConfig, chat_id: int, text: str) -> None:
    async with _make_gateway(config) as gateway:
        await gateway.send_text(chat_id, text)


def cmd_send(args, config: BotConfig) -> int:
    """Send a message to a chat."""
    if not _require_token(config):
        return 1

    try:
        asyncio.run(_send(config, args.chat_id, args.message))
    except GatewayError as e:
        print(f"[X] Failed: {e}")
        if "chat not found" in str(e).lower():
            print("\nThe chat must message the bot first (send /start to it).")
        return 1

    print(f"[OK] Message sent to {args.chat_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tgram",
        description="tgram Telegram bot CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tgram run                   Start the bot
  tgram status                Show configuration
  tgram getme                 Check the bot token
  tgram send 123456 "Hello"   Send a message to chat 123456
        """
    )
    parser.add_argument("--log-level", help="Override TGRAM_LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # run
    subparsers.add_parser("run", help="Poll for updates and dispatch routines")

    # status
    subparsers.add_parser("status", help="Show configuration")

    # getme
    subparsers.add_parser("getme", help="Validate the bot token")

    # send
    send_parser = subparsers.add_parser("send", help="Send a message to a chat")
    send_parser.add_argument("chat_id", type=int, help="Destination chat id")
    send_parser.add_argument("message", help="Message text")

    return parser


COMMANDS = {
    "run": cmd_run,
    "status": cmd_status,
    "getme": cmd_getme,
    "send": cmd_send,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    config = get_config()
    setup_logger("tgram", level=args.log_level or config.log_level, log_dir=config.log_dir)

    return COMMANDS[args.command](args, config)
