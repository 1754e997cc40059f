"""Stock routines shipped with tgram."""

from tgram.commands.registry import RoutineRegistry


def echo(msg: str) -> str:
    """Repeat the message back"""
    return msg


def register_builtin_routines(registry: RoutineRegistry) -> None:
    """Register echo and a help routine describing `registry`."""
    registry.register("echo", echo)

    def list_routines() -> str:
        """List available routines"""
        return registry.help_text()

    registry.register("help", list_routines)
