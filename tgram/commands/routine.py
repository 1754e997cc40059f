"""
Routine - A named unit of bot logic with a declared signature.

A Routine pairs the handler function (used once, at build time, to discover
its parameter kinds) with a uniform adapter taking the casted ArgValue
sequence and returning the reply text.

Usage:
    def echo(msg: str) -> str:
        return msg

    routine = Routine.from_function(echo)
    reply = await routine.execute(["hello world"])
"""

import asyncio
import contextvars
import functools
import inspect
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from tgram.commands.caster import ArgValue, Signature, cast_args, signature_of
from tgram.errors import CommandError, HandlerError

logger = logging.getLogger(__name__)

Adapter = Callable[[Sequence[ArgValue], Optional[Executor]], Awaitable[str]]


def _reply_text(result: Any) -> str:
    if result is None:
        return ""
    return str(result)


def make_adapter(func: Callable) -> Adapter:
    """
    Build the uniform call adapter for `func`.

    Coroutine functions are awaited on the event loop. Plain functions run in
    `executor` (the loop's default pool when None) so a blocking handler only
    delays its own reply. The caller's context, request id included, is
    carried into the worker thread.
    """
    if inspect.iscoroutinefunction(func):
        async def adapter(args: Sequence[ArgValue], executor: Optional[Executor] = None) -> str:
            return _reply_text(await func(*(arg.value for arg in args)))
    else:
        async def adapter(args: Sequence[ArgValue], executor: Optional[Executor] = None) -> str:
            loop = asyncio.get_running_loop()
            call = functools.partial(
                contextvars.copy_context().run, func, *(arg.value for arg in args)
            )
            return _reply_text(await loop.run_in_executor(executor, call))

    return adapter


@dataclass(frozen=True)
class Routine:
    """
    A registered handler.

    Attributes:
        name: Command name the routine is invoked by
        func: The underlying handler function
        kinds: Declared parameter kinds, built once
        adapter: Uniform (ArgValue...) -> reply text invocation
        description: Human-readable description for help output
    """
    name: str
    func: Callable
    kinds: Signature
    adapter: Adapter
    description: str = ""

    @classmethod
    def from_function(
        cls,
        func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> "Routine":
        """
        Build a Routine from a type-annotated function.

        Raises:
            UnsupportedParamKindError: if a parameter type is not supported
        """
        kinds = signature_of(func)
        doc = inspect.getdoc(func) or ""
        return cls(
            name=name or func.__name__,
            func=func,
            kinds=kinds,
            adapter=make_adapter(func),
            description=description if description is not None else doc.split("\n", 1)[0],
        )

    @property
    def arity(self) -> int:
        return len(self.kinds)

    @property
    def usage(self) -> str:
        """Usage line, e.g. "add <int> <int>"."""
        return " ".join([self.name] + [f"<{kind.label}>" for kind in self.kinds])

    async def execute(self, tokens: Sequence[str], executor: Optional[Executor] = None) -> str:
        """
        Cast `tokens` and run the handler.

        Plain handlers run in `executor`; None means the loop's default pool.

        Raises:
            ArityMismatchError, TypeMismatchError: before the handler runs
            HandlerError: when the handler itself raises
        """
        args = cast_args(self.kinds, tokens)

        try:
            return await self.adapter(args, executor)
        except CommandError:
            raise
        except Exception as e:
            logger.debug(f"Routine '{self.name}' failed: {type(e).__name__}: {e}")
            raise HandlerError(str(e) or type(e).__name__) from e
