"""
Telegram Bot API gateway.

Provides the two calls the dispatcher consumes (fetch_updates, send_text)
plus get_me for token validation, over a shared aiohttp session.

Example:
    async with TelegramGateway(token=load_api_key("token.txt")) as gateway:
        me = await gateway.get_me()
        updates = await gateway.fetch_updates(offset=0)
        await gateway.send_text(updates[0].message.destination, "hi")
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import aiohttp

from tgram.api.types import APIResponse, Update, User
from tgram.errors import APIResponseError, GatewayError
from tgram.logging_utils import log_api_call

logger = logging.getLogger(__name__)

# Telegram API base URL
TELEGRAM_API_BASE = "https://api.telegram.org"

# Deadline for a single outbound call (seconds)
DEFAULT_REQUEST_TIMEOUT = 5.0


class Gateway(Protocol):
    """What the dispatcher needs from the remote messaging service."""

    async def fetch_updates(self, offset: int) -> Sequence[Update]:
        ...

    async def send_text(self, destination: int, text: str) -> None:
        ...


def load_api_key(path: Union[str, Path]) -> str:
    """
    Read a bot token from a file.

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: if the file is empty
    """
    key = Path(path).read_text(encoding="utf-8").strip()
    if not key:
        raise ValueError(f"Token file is empty: {path}")
    return key


def make_endpoint(base_url: str, token: str, method: str) -> str:
    """Build the URL for a Bot API method."""
    return f"{base_url.rstrip('/')}/bot{token}/{method}"


class TelegramGateway:
    """
    Bot API client.

    Every call carries an explicit deadline. Transport failures, timeouts
    and malformed bodies surface as GatewayError; a well-formed envelope with
    ok=false surfaces as APIResponseError.
    """

    def __init__(
        self,
        token: str,
        base_url: str = TELEGRAM_API_BASE,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        long_poll_timeout: int = 0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            token: Bot token from BotFather
            base_url: Bot API base URL
            request_timeout: Default deadline for one call (seconds)
            long_poll_timeout: getUpdates server-side wait (seconds, 0 = short poll)
            session: Optional shared session; the gateway closes only its own
        """
        if not token:
            raise ValueError("Bot token is required")

        self._token = token
        self.base_url = base_url
        self.request_timeout = request_timeout
        self.long_poll_timeout = long_poll_timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "TelegramGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this gateway created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _mask(self, text: str) -> str:
        return text.replace(self._token, "***")

    async def api_request(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Call a Bot API method and return the unwrapped result.

        Raises:
            GatewayError: network failure, timeout or undecodable body
            APIResponseError: the API answered ok=false
        """
        url = make_endpoint(self.base_url, self._token, method)
        deadline = timeout if timeout is not None else self.request_timeout
        start = time.monotonic()

        try:
            session = self._get_session()
            async with session.post(
                url,
                json=params or {},
                timeout=aiohttp.ClientTimeout(total=deadline),
            ) as resp:
                try:
                    body = await resp.json(content_type=None)
                except ValueError as e:
                    raise GatewayError(f"{method}: invalid JSON body (HTTP {resp.status})") from e
        except asyncio.TimeoutError as e:
            log_api_call(logger, "telegram", method, time.monotonic() - start, False, "timeout")
            raise GatewayError(f"{method}: timed out after {deadline}s") from e
        except aiohttp.ClientError as e:
            error = self._mask(str(e))
            log_api_call(logger, "telegram", method, time.monotonic() - start, False, error)
            raise GatewayError(f"{method}: {error}") from e

        if not isinstance(body, dict):
            raise GatewayError(f"{method}: unexpected response body")

        latency = time.monotonic() - start
        response = APIResponse.from_dict(body)
        try:
            result = response.unwrap(method)
        except APIResponseError as e:
            log_api_call(logger, "telegram", method, latency, False, e.description)
            raise

        log_api_call(logger, "telegram", method, latency, True)
        return result

    async def get_me(self) -> User:
        """Fetch the bot's own user record; validates the token."""
        return User.from_dict(await self.api_request("getMe"))

    async def fetch_updates(self, offset: int, timeout: Optional[float] = None) -> List[Update]:
        """
        Get updates with update_id >= offset, ascending.

        An empty list means nothing new arrived; it is not an error.
        """
        params: Dict[str, Any] = {"offset": offset, "timeout": self.long_poll_timeout}
        deadline = timeout if timeout is not None else self.request_timeout
        result = await self.api_request(
            "getUpdates",
            params,
            timeout=deadline + self.long_poll_timeout,
        )

        if not isinstance(result, list):
            raise GatewayError("getUpdates: result is not a list")

        updates = []
        for raw in result:
            try:
                updates.append(Update.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed update: {e}")
        return updates

    async def send_text(self, destination: int, text: str, timeout: Optional[float] = None) -> None:
        """Send a plain text message to a chat."""
        await self.api_request(
            "sendMessage",
            {"chat_id": destination, "text": text},
            timeout=timeout,
        )
