"""
Error taxonomy for tgram.

Two families matter at runtime:
- GatewayError: infrastructure failures (fetch/send). Logged, never fatal.
- CommandError: user-input-shaped failures. str(err) is sent back as the reply.

RegistrationError and its subclasses only surface while routines are being
registered, never on the dispatch path.
"""

from typing import Any, Optional


class TgramError(Exception):
    """Base exception for tgram errors."""
    pass


# ============================================================================
# Gateway
# ============================================================================

class GatewayError(TgramError):
    """Raised when the Bot API cannot be reached or times out."""
    pass


class APIResponseError(GatewayError):
    """Raised when the Bot API answers with ok=false."""

    def __init__(
        self,
        method: str,
        description: Optional[str] = None,
        error_code: Optional[int] = None,
    ):
        self.method = method
        self.description = description or "response was not Ok"
        self.error_code = error_code
        detail = f"{method}: {self.description}"
        if error_code is not None:
            detail += f" (code {error_code})"
        super().__init__(detail)


# ============================================================================
# Registration
# ============================================================================

class RegistrationError(TgramError):
    """Base exception for routine registration errors."""
    pass


class NameTakenError(RegistrationError):
    """Raised when registering a routine under a name that already exists."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"couldn't register routine '{name}': name taken")


class UnsupportedParamKindError(RegistrationError):
    """Raised when a handler declares a parameter type the caster can't produce."""

    def __init__(self, parameter: str, annotation: Any):
        self.parameter = parameter
        self.annotation = annotation
        shown = getattr(annotation, "__name__", repr(annotation))
        super().__init__(
            f"function has unsupported param type: '{parameter}' is {shown}"
        )


# ============================================================================
# Command (user visible)
# ============================================================================

class CommandError(TgramError):
    """Base exception for errors that are reported back to the chat."""
    pass


class RoutineNotFoundError(CommandError):
    """Raised when no routine is registered for the command."""

    def __init__(self, command: str = ""):
        self.command = command
        super().__init__("routine not found")


class ArityMismatchError(CommandError):
    """Raised when the token count differs from the declared parameter count."""

    def __init__(self, given: int, takes: int):
        self.given = given
        self.takes = takes
        super().__init__(f"wrong number of args. Given: {given}, Takes: {takes}")


class TypeMismatchError(CommandError):
    """Raised when a token can't be parsed as its declared kind."""

    def __init__(self, position: int, token: str, kind: Any):
        self.position = position
        self.token = token
        self.kind = kind
        label = getattr(kind, "label", str(kind))
        super().__init__(
            f"wrong type of args: argument {position + 1} '{token}' is not a valid {label}"
        )


class HandlerError(CommandError):
    """Raised when a routine's own logic fails. The message is the handler's."""
    pass
