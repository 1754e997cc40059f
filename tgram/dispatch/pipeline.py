"""
Dispatcher - Long-polling update pipeline.

Turns the stream of Bot API updates into routine executions and replies:

    poll task ──► updates queue ──► acknowledge task ──► jobs queue ──► job task
       ▲                               │ (offset = update_id + 1)          │
       └──── waits for ack ────────────┘                       one task per message
                                                         (route → execute → reply)

- The poll task reads the committed offset, fetches with a deadline and hands
  the batch over, then waits until the batch is acknowledged before polling
  again, so it never re-requests an update it has already seen.
- The acknowledge task is the only writer of the offset. It advances the
  offset before a message is handed off, so an update is never fetched twice
  even if its routine later fails or the process stops.
- Both queues are bounded; a full queue blocks its producer.
- Each message runs as its own task, bounded by a semaphore, so a slow
  routine only delays its own reply. Plain (blocking) routines run in a
  thread pool owned by the dispatcher with one worker per concurrency slot.

Failures never stop the loop: fetch and send errors are logged, command
errors are sent back to the chat as text.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tgram.api.client import Gateway
from tgram.api.types import Message, Update
from tgram.async_utils import TaskTracker
from tgram.commands.parser import split_command, tokenize_args
from tgram.commands.registry import RoutineRegistry
from tgram.errors import CommandError, GatewayError, RoutineNotFoundError
from tgram.logging_utils import set_request_id

logger = logging.getLogger(__name__)

TELEGRAM_MAX_MESSAGE_LENGTH = 4096


@dataclass
class DispatcherConfig:
    """
    Tuning knobs for the dispatcher.

    Attributes:
        poll_interval: Pause between fetches (seconds)
        fetch_timeout: Deadline for one fetch (seconds)
        send_timeout: Deadline for one reply (seconds)
        updates_queue_size: Bound of the raw update batch queue
        jobs_queue_size: Bound of the routable message queue
        max_concurrency: Max routines executing at once
        long_poll_timeout: Server-side getUpdates wait, added to fetch_timeout
        drain_timeout: How long stop() waits for in-flight work (seconds)
        max_reply_length: Replies are truncated to this many characters
        send_receipts: Send "Received request: ..." before executing
    """
    poll_interval: float = 4.0
    fetch_timeout: float = 5.0
    send_timeout: float = 5.0
    updates_queue_size: int = 10
    jobs_queue_size: int = 10
    max_concurrency: int = 32
    long_poll_timeout: int = 0
    drain_timeout: float = 10.0
    max_reply_length: int = TELEGRAM_MAX_MESSAGE_LENGTH
    send_receipts: bool = False


def truncate_reply(text: str, max_length: int) -> str:
    """Fit a reply into one Telegram message."""
    if len(text) <= max_length:
        return text
    if max_length <= 3:
        return text[:max_length]
    return text[: max_length - 3] + "..."


class Dispatcher:
    """
    Polls a gateway and dispatches messages to registered routines.

    Usage:
        dispatcher = Dispatcher(gateway, registry)
        await dispatcher.start()
        ...
        await dispatcher.stop()
    """

    def __init__(
        self,
        gateway: Gateway,
        registry: RoutineRegistry,
        config: Optional[DispatcherConfig] = None,
        initial_offset: int = 0,
    ):
        self.gateway = gateway
        self.registry = registry
        self.config = config or DispatcherConfig()

        self._offset = initial_offset
        self._tracker = TaskTracker("dispatch")

        self._updates_queue: Optional[asyncio.Queue] = None
        self._jobs_queue: Optional[asyncio.Queue] = None
        self._slots: Optional[asyncio.Semaphore] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._stopped = asyncio.Event()

        self._poll_task: Optional[asyncio.Task] = None
        self._ack_task: Optional[asyncio.Task] = None
        self._job_task: Optional[asyncio.Task] = None
        self._running = False

        self._stats = {
            "fetches": 0,
            "fetch_failures": 0,
            "updates_acknowledged": 0,
            "duplicates_skipped": 0,
            "updates_without_message": 0,
            "dispatched": 0,
            "command_errors": 0,
            "replies_sent": 0,
            "send_failures": 0,
        }

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def offset(self) -> int:
        """Next update id to request."""
        return self._offset

    @property
    def is_running(self) -> bool:
        return self._running

    def _acknowledge(self, update: Update) -> bool:
        """Advance the offset past `update`. False if it was already seen."""
        if update.update_id < self._offset:
            self._stats["duplicates_skipped"] += 1
            logger.debug(
                f"Skipping already acknowledged update {update.update_id} (offset {self._offset})"
            )
            return False

        self._offset = update.update_id + 1
        self._stats["updates_acknowledged"] += 1
        return True

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def handle_text(self, text: str) -> str:
        """
        Route one message text to its routine and return the reply.

        Unknown commands, bad arguments and routine failures all come back
        as reply text; this never raises for user input.
        """
        command, remainder = split_command(text)
        routine = self.registry.lookup(command) if command else None

        try:
            if routine is None:
                raise RoutineNotFoundError(command)
            tokens = tokenize_args(remainder, routine.kinds)
            return await routine.execute(tokens, self._executor)
        except CommandError as e:
            self._stats["command_errors"] += 1
            logger.info(f"Command '{command}' rejected: {e}")
            return str(e)
        except Exception as e:
            self._stats["command_errors"] += 1
            logger.exception(f"Unexpected error running '{command}': {e}")
            return "routine failed"

    async def _send(self, destination: int, text: str) -> bool:
        """Send one reply. Failures are logged, never retried."""
        text = truncate_reply(text, self.config.max_reply_length)
        try:
            await asyncio.wait_for(
                self.gateway.send_text(destination, text),
                timeout=self.config.send_timeout,
            )
        except asyncio.TimeoutError:
            self._stats["send_failures"] += 1
            logger.warning(f"Reply to chat {destination} timed out after {self.config.send_timeout}s")
            return False
        except GatewayError as e:
            self._stats["send_failures"] += 1
            logger.warning(f"Unable to send message to chat {destination}: {e}")
            return False
        except Exception as e:
            self._stats["send_failures"] += 1
            logger.exception(f"Unexpected error sending to chat {destination}: {e}")
            return False

        self._stats["replies_sent"] += 1
        return True

    async def _run_job(self, update_id: int, message: Message) -> None:
        set_request_id(f"u{update_id}")
        try:
            self._stats["dispatched"] += 1
            logger.debug(f"Dispatching '{message.text[:50]}' from chat {message.destination}")

            if self.config.send_receipts:
                await self._send(message.destination, f"Received request: {message.text}")

            reply = await self.handle_text(message.text)
            if reply:
                await self._send(message.destination, reply)
        finally:
            self._slots.release()

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early when stop() is called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _fetch(self, offset: int) -> Sequence[Update]:
        self._stats["fetches"] += 1
        deadline = self.config.fetch_timeout + self.config.long_poll_timeout
        try:
            return await asyncio.wait_for(
                self.gateway.fetch_updates(offset),
                timeout=deadline,
            )
        except asyncio.TimeoutError:
            self._stats["fetch_failures"] += 1
            logger.warning(f"Fetching updates timed out after {deadline}s")
        except GatewayError as e:
            self._stats["fetch_failures"] += 1
            logger.warning(f"Error getting updates: {e}")
        except Exception as e:
            self._stats["fetch_failures"] += 1
            logger.exception(f"Unexpected error getting updates: {e}")
        return []

    async def _poll_loop(self) -> None:
        logger.info("Poller started")
        while not self._stop_event.is_set():
            updates = await self._fetch(self._offset)
            if updates:
                logger.debug(f"Fetched {len(updates)} update(s) at offset {self._offset}")
                await self._updates_queue.put(list(updates))
                # Next fetch must see the offset this batch advances to
                await self._updates_queue.join()
            await self._sleep(self.config.poll_interval)
        logger.info("Poller stopped")

    async def _acknowledge_loop(self) -> None:
        while True:
            batch: List[Update] = await self._updates_queue.get()
            try:
                for update in batch:
                    if not self._acknowledge(update):
                        continue

                    message = update.message
                    if message is None or not message.text:
                        self._stats["updates_without_message"] += 1
                        continue

                    await self._jobs_queue.put((update.update_id, message))
            except Exception as e:
                logger.exception(f"Error acknowledging updates: {e}")
            finally:
                self._updates_queue.task_done()

    async def _job_loop(self) -> None:
        while True:
            job: Tuple[int, Message] = await self._jobs_queue.get()
            try:
                await self._slots.acquire()
                update_id, message = job
                self._tracker.create_task(
                    self._run_job(update_id, message),
                    name=f"update_{update_id}",
                )
            finally:
                self._jobs_queue.task_done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start polling and dispatching in the background."""
        if self._running:
            logger.warning("Dispatcher already running")
            return

        self._running = True
        self._stopped.clear()
        self._stop_event = asyncio.Event()
        self._updates_queue = asyncio.Queue(maxsize=self.config.updates_queue_size)
        self._jobs_queue = asyncio.Queue(maxsize=self.config.jobs_queue_size)
        self._slots = asyncio.Semaphore(self.config.max_concurrency)
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_concurrency,
            thread_name_prefix="tgram-routine",
        )

        self._ack_task = asyncio.create_task(self._acknowledge_loop(), name="tgram.acknowledge")
        self._job_task = asyncio.create_task(self._job_loop(), name="tgram.jobs")
        self._poll_task = asyncio.create_task(self._poll_loop(), name="tgram.poll")

        logger.info(
            f"Dispatcher started (offset {self._offset}, {len(self.registry)} routines, "
            f"poll every {self.config.poll_interval}s)"
        )

    async def _drain_queues(self) -> None:
        await self._updates_queue.join()
        await self._jobs_queue.join()

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop polling, then wait for queued and in-flight messages.

        Work still running after `timeout` (default: config.drain_timeout)
        is cancelled.
        """
        if not self._running:
            return

        drain_timeout = self.config.drain_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + drain_timeout

        logger.info(f"Stopping dispatcher, {self._tracker.running_count} routine(s) in flight")
        self._stop_event.set()
        self._poll_task.cancel()
        await asyncio.gather(self._poll_task, return_exceptions=True)

        try:
            await asyncio.wait_for(self._drain_queues(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Queues not drained within {drain_timeout}s")

        remaining = max(0.0, deadline - loop.time())
        if not await self._tracker.wait_all(timeout=remaining):
            cancelled = await self._tracker.cancel_all()
            logger.warning(f"Cancelled {cancelled} routine(s) still running after {drain_timeout}s")

        for task in (self._ack_task, self._job_task):
            task.cancel()
        await asyncio.gather(self._ack_task, self._job_task, return_exceptions=True)

        # Threads still blocked in a routine are abandoned, not joined
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._executor = None

        self._running = False
        self._stopped.set()
        logger.info(f"Dispatcher stopped at offset {self._offset}")

    async def wait_stopped(self) -> None:
        """Block until stop() has completed."""
        await self._stopped.wait()

    async def run_until_stopped(self) -> None:
        """Start and block until stop() is called from elsewhere."""
        await self.start()
        await self.wait_stopped()

    def get_stats(self) -> Dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            **self._stats,
            "offset": self._offset,
            "running": self._running,
            "in_flight": self._tracker.running_count,
            "updates_queue_size": self._updates_queue.qsize() if self._updates_queue else 0,
            "jobs_queue_size": self._jobs_queue.qsize() if self._jobs_queue else 0,
            "tasks": self._tracker.get_stats(),
        }
