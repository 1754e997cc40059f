"""
Argument Caster - Convert string tokens into typed routine arguments.

A routine's declared signature is an ordered tuple of ParamKind values built
once, when the routine is registered. At call time the caster checks arity and
parses each token as its declared kind, producing ArgValue records.

Usage:
    from tgram.commands.caster import ParamKind, cast_args, signature_of

    def add(a: int, b: float) -> str: ...

    kinds = signature_of(add)          # (ParamKind.INT, ParamKind.FLOAT64)
    values = cast_args(kinds, ["2", "3.5"])
"""

import inspect
import math
import struct
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence, Tuple, Union

from tgram.errors import (
    ArityMismatchError,
    TypeMismatchError,
    UnsupportedParamKindError,
)


class Float32(float):
    """Annotation marker for a single-precision float parameter."""
    pass


class ParamKind(Enum):
    """Closed set of parameter kinds a routine may declare."""
    STRING = "string"
    INT = "int"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ParamKind.STRING: "str",
    ParamKind.INT: "int",
    ParamKind.FLOAT32: "float32",
    ParamKind.FLOAT64: "float",
}

# Looked up by identity, so bool (an int subclass) is unsupported
_ANNOTATION_KINDS = {
    str: ParamKind.STRING,
    int: ParamKind.INT,
    Float32: ParamKind.FLOAT32,
    float: ParamKind.FLOAT64,
}


@dataclass(frozen=True)
class ArgValue:
    """A casted argument tagged with the kind it was parsed as."""
    kind: ParamKind
    value: Union[str, int, float]


Signature = Tuple[ParamKind, ...]


def kind_for_annotation(parameter: str, annotation: Any) -> ParamKind:
    """
    Map a parameter annotation to its ParamKind.

    Raises:
        UnsupportedParamKindError: for anything outside str/int/float/Float32
    """
    if isinstance(annotation, ParamKind):
        return annotation

    kind = None
    try:
        kind = _ANNOTATION_KINDS.get(annotation)
    except TypeError:
        # unhashable annotation objects
        pass

    if kind is None:
        raise UnsupportedParamKindError(parameter, annotation)
    return kind


def signature_of(func: Callable) -> Signature:
    """
    Build the declared signature of a handler from its annotations.

    Only positional parameters are supported. *args, **kwargs, keyword-only
    and unannotated parameters raise UnsupportedParamKindError.
    """
    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError):
        hints = {}

    kinds = []
    for param in inspect.signature(func).parameters.values():
        if param.kind not in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            raise UnsupportedParamKindError(param.name, param.kind.description)

        annotation = hints.get(param.name, param.annotation)
        if annotation is inspect.Parameter.empty:
            raise UnsupportedParamKindError(param.name, "no annotation")

        kinds.append(kind_for_annotation(param.name, annotation))

    return tuple(kinds)


def _to_float32(value: float) -> float:
    if math.isnan(value) or math.isinf(value):
        return value
    return struct.unpack("f", struct.pack("f", value))[0]


def cast_token(position: int, token: str, kind: ParamKind) -> ArgValue:
    """Parse a single token as `kind`."""
    if kind is ParamKind.STRING:
        return ArgValue(kind, token)

    try:
        if kind is ParamKind.INT:
            return ArgValue(kind, int(token))
        if kind is ParamKind.FLOAT64:
            return ArgValue(kind, float(token))
        if kind is ParamKind.FLOAT32:
            return ArgValue(kind, _to_float32(float(token)))
    except (ValueError, OverflowError):
        raise TypeMismatchError(position, token, kind)

    raise UnsupportedParamKindError(f"#{position + 1}", kind)


def cast_args(kinds: Sequence[ParamKind], tokens: Sequence[str]) -> Tuple[ArgValue, ...]:
    """
    Convert tokens into typed arguments.

    Args:
        kinds: Declared parameter kinds, in order
        tokens: Input tokens, one per parameter

    Returns:
        Tuple of ArgValue, same length as kinds

    Raises:
        ArityMismatchError: if len(tokens) != len(kinds)
        TypeMismatchError: at the first token that fails to parse
    """
    if len(tokens) != len(kinds):
        raise ArityMismatchError(given=len(tokens), takes=len(kinds))

    return tuple(
        cast_token(position, token, kind)
        for position, (token, kind) in enumerate(zip(tokens, kinds))
    )
