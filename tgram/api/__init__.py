"""Telegram Bot API gateway and records."""

from tgram.api.client import (
    TELEGRAM_API_BASE,
    Gateway,
    TelegramGateway,
    load_api_key,
    make_endpoint,
)
from tgram.api.types import APIResponse, Chat, Message, Update, User

__all__ = [
    "APIResponse",
    "Chat",
    "Gateway",
    "Message",
    "TELEGRAM_API_BASE",
    "TelegramGateway",
    "Update",
    "User",
    "load_api_key",
    "make_endpoint",
]
