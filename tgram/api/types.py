"""
Bot API records consumed by the dispatcher.

Only the records the pipeline reads are modelled. Unknown JSON fields are
ignored.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from tgram.errors import APIResponseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    """A Telegram user or bot."""
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    language_code: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=int(data.get("id", 0)),
            is_bot=bool(data.get("is_bot", False)),
            first_name=data.get("first_name", "") or "",
            last_name=data.get("last_name", "") or "",
            username=data.get("username", "") or "",
            language_code=data.get("language_code", "") or "",
        )


@dataclass(frozen=True)
class Chat:
    """The chat a message belongs to; `id` is the reply destination."""
    id: int
    type: str = ""
    title: str = ""
    username: str = ""
    first_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chat":
        return cls(
            id=int(data.get("id", 0)),
            type=data.get("type", "") or "",
            title=data.get("title", "") or "",
            username=data.get("username", "") or "",
            first_name=data.get("first_name", "") or "",
        )


@dataclass(frozen=True)
class Message:
    """An inbound message."""
    message_id: int
    chat: Chat
    date: int = 0
    text: str = ""
    sender: Optional[User] = None

    @property
    def destination(self) -> int:
        return self.chat.id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        sender = data.get("from")
        text = data.get("text") or ""
        if not isinstance(text, str):
            raise TypeError(f"text is {type(text).__name__}, not str")
        return cls(
            message_id=int(data.get("message_id", 0)),
            chat=Chat.from_dict(data.get("chat") or {}),
            date=int(data.get("date", 0)),
            text=text,
            sender=User.from_dict(sender) if sender else None,
        )


def _optional_message(data: Dict[str, Any], key: str) -> Optional[Message]:
    raw = data.get(key)
    return Message.from_dict(raw) if raw else None


@dataclass(frozen=True)
class Update:
    """
    One unit of incoming activity.

    `update_id` is the monotonically increasing sequence id the offset is
    derived from. Only `message` is dispatched; edits and channel posts are
    acknowledged and dropped.
    """
    update_id: int
    message: Optional[Message] = None
    edited_message: Optional[Message] = None
    channel_post: Optional[Message] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Update":
        """
        Build an update from its JSON object.

        Only a missing or malformed `update_id` raises. A message body that
        can't be read leaves the update without messages, so it is still
        acknowledged and never fetched again.

        Raises:
            KeyError, TypeError, ValueError: if update_id is unusable
        """
        update_id = int(data["update_id"])

        try:
            return cls(
                update_id=update_id,
                message=_optional_message(data, "message"),
                edited_message=_optional_message(data, "edited_message"),
                channel_post=_optional_message(data, "channel_post"),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Update {update_id} has an unreadable message: {type(e).__name__}: {e}")
            return cls(update_id=update_id)


@dataclass(frozen=True)
class APIResponse:
    """The {ok, result} envelope every Bot API call answers with."""
    ok: bool
    result: Any = None
    description: Optional[str] = None
    error_code: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "APIResponse":
        return cls(
            ok=bool(data.get("ok", False)),
            result=data.get("result"),
            description=data.get("description"),
            error_code=data.get("error_code"),
        )

    def unwrap(self, method: str = "") -> Any:
        """
        Return `result`, or raise when the call was not ok.

        Raises:
            APIResponseError: if ok is false
        """
        if self.ok:
            return self.result
        raise APIResponseError(method, self.description, self.error_code)
