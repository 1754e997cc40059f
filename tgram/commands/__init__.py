"""
tgram command system.

Routines are registered by name, their parameter kinds are read once from
the handler's annotations, and string tokens from chat messages are cast to
those kinds at call time.

Usage:
    from tgram.commands import RoutineRegistry

    def echo(msg: str) -> str:
        return msg

    registry = RoutineRegistry()
    registry.register("echo", echo)
"""

from tgram.commands.caster import (
    ArgValue,
    Float32,
    ParamKind,
    cast_args,
    signature_of,
)
from tgram.commands.parser import split_command, tokenize_args
from tgram.commands.registry import RoutineRegistry
from tgram.commands.routine import Routine

__all__ = [
    "ArgValue",
    "Float32",
    "ParamKind",
    "Routine",
    "RoutineRegistry",
    "cast_args",
    "signature_of",
    "split_command",
    "tokenize_args",
]
