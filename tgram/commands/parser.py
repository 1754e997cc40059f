"""
Command Parser - Split message text into a command name and argument tokens.
"""

from typing import List, Sequence, Tuple

from tgram.commands.caster import ParamKind


def split_command(text: str) -> Tuple[str, str]:
    """
    Split a message into its command word and the remaining text.

    An "@botname" suffix on the command word is dropped, so "echo@my_bot hi"
    routes like "echo hi".

    Returns:
        (command, remainder); ("", "") for blank text
    """
    if not text or not text.strip():
        return "", ""

    parts = text.strip().split(None, 1)
    command = parts[0]
    if "@" in command:
        command = command.split("@", 1)[0]

    remainder = parts[1].strip() if len(parts) > 1 else ""
    return command, remainder


def tokenize_args(remainder: str, kinds: Sequence[ParamKind]) -> List[str]:
    """
    Split the argument text into tokens for a routine with `kinds`.

    When the last declared kind is a string and the text holds more words than
    the routine takes, everything past the leading arguments is kept together
    as the final argument ("echo hello world" -> ["hello world"]).
    """
    tokens = remainder.split()
    if not kinds or len(tokens) <= len(kinds):
        return tokens

    if kinds[-1] is ParamKind.STRING:
        return remainder.split(None, len(kinds) - 1)

    return tokens
