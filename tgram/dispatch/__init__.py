"""Update polling and dispatch."""

from tgram.dispatch.pipeline import Dispatcher, DispatcherConfig, truncate_reply

__all__ = ["Dispatcher", "DispatcherConfig", "truncate_reply"]
