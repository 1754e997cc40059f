"""
tgram Test Configuration

Shared fixtures: an in-memory gateway standing in for the Bot API and a
registry preloaded with a few routines.
"""

import asyncio
import os
import sys
from typing import List, Optional, Tuple

# Add project root to path FIRST
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from tgram.api.types import Chat, Message, Update
from tgram.commands.caster import Float32
from tgram.commands.registry import RoutineRegistry
from tgram.dispatch.pipeline import DispatcherConfig
from tgram.errors import GatewayError


def make_update(update_id: int, text: Optional[str] = "", chat_id: int = 42) -> Update:
    """Build an update; text=None gives an update without a message."""
    if text is None:
        return Update(update_id=update_id)
    message = Message(message_id=update_id, chat=Chat(id=chat_id, type="private"), text=text)
    return Update(update_id=update_id, message=message)


class FakeGateway:
    """
    In-memory Bot API.

    Holds a backlog of updates and, like the real getUpdates, returns every
    update whose id is >= the requested offset.
    """

    def __init__(self, updates: Optional[List[Update]] = None, ignore_offset: bool = False):
        self.updates: List[Update] = list(updates or [])
        self.ignore_offset = ignore_offset
        self.offsets_requested: List[int] = []
        self.sent: List[Tuple[int, str]] = []
        self.fetch_failures_left = 0
        self.fetch_delay = 0.0
        self.send_failures_left = 0
        self.send_delay = 0.0

    def push(self, *updates: Update) -> None:
        self.updates.extend(updates)

    async def fetch_updates(self, offset: int) -> List[Update]:
        self.offsets_requested.append(offset)
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fetch_failures_left:
            self.fetch_failures_left -= 1
            raise GatewayError("getUpdates: connection refused")
        if self.ignore_offset:
            return list(self.updates)
        return [u for u in self.updates if u.update_id >= offset]

    async def send_text(self, destination: int, text: str) -> None:
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.send_failures_left:
            self.send_failures_left -= 1
            raise GatewayError("sendMessage: Bad Request: chat not found")
        self.sent.append((destination, text))

    def replies(self) -> List[str]:
        return [text for _, text in self.sent]


async def wait_until(predicate, timeout: float = 2.0) -> bool:
    """Poll `predicate` until it holds or `timeout` passes."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def fast_config():
    """Dispatcher tuning that keeps tests quick."""
    return DispatcherConfig(
        poll_interval=0.01,
        fetch_timeout=1.0,
        send_timeout=1.0,
        drain_timeout=1.0,
    )


@pytest.fixture
def registry():
    """Registry with echo, add, scale and fail routines."""
    registry = RoutineRegistry()

    @registry.routine()
    def echo(msg: str) -> str:
        """Repeat the message back"""
        return msg

    @registry.routine()
    def add(a: int, b: int) -> int:
        """Add two integers"""
        return a + b

    @registry.routine()
    def scale(x: Float32, factor: float) -> str:
        return f"{x * factor:.2f}"

    @registry.routine()
    def fail(reason: str) -> str:
        raise ValueError(reason)

    return registry
