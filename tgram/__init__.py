"""
tgram - a long-polling Telegram bot framework.

Register plain functions as routines, and the dispatcher polls the Bot API,
casts each message's arguments to the routine's parameter types and replies
with the result.

Usage:
    from tgram import Dispatcher, RoutineRegistry, TelegramGateway

    registry = RoutineRegistry()

    @registry.routine()
    def add(a: int, b: int) -> int:
        return a + b

    async with TelegramGateway(token) as gateway:
        dispatcher = Dispatcher(gateway, registry)
        await dispatcher.start()
"""

__version__ = "0.1.0"

from tgram.api import TelegramGateway
from tgram.commands import Float32, ParamKind, Routine, RoutineRegistry
from tgram.dispatch import Dispatcher, DispatcherConfig

__all__ = [
    "Dispatcher",
    "DispatcherConfig",
    "Float32",
    "ParamKind",
    "Routine",
    "RoutineRegistry",
    "TelegramGateway",
    "__version__",
]
