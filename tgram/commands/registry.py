"""
Routine Registry - Map command names to routines.

Features:
- Register-once semantics (a taken name is rejected, never overwritten)
- Decorator-based registration
- Help text generation
- Safe to register while the dispatcher is looking routines up

Usage:
    registry = RoutineRegistry()

    @registry.routine(description="Repeat the message")
    def echo(msg: str) -> str:
        return msg

    routine = registry.lookup("echo")
"""

import dataclasses
import logging
import threading
from typing import Callable, Dict, List, Optional, Union

from tgram.commands.routine import Routine
from tgram.errors import NameTakenError

logger = logging.getLogger(__name__)


class RoutineRegistry:
    """
    Name -> Routine mapping.

    Registration is expected once during setup and lookups continuously
    during dispatch; both go through the same lock so they never interleave.
    """

    def __init__(self):
        self._routines: Dict[str, Routine] = {}
        self._lock = threading.RLock()

    def register(
        self,
        name: str,
        handler: Union[Routine, Callable],
        description: Optional[str] = None,
    ) -> Routine:
        """
        Register a routine under `name`.

        Args:
            name: Command name (first word of the message)
            handler: A Routine, or a type-annotated function to wrap
            description: Optional description (defaults to the docstring)

        Returns:
            The registered Routine

        Raises:
            NameTakenError: if `name` is already registered
            UnsupportedParamKindError: if the handler's signature can't be cast
        """
        if isinstance(handler, Routine):
            routine = handler
            if routine.name != name:
                routine = dataclasses.replace(routine, name=name)
            if description is not None and description != routine.description:
                routine = dataclasses.replace(routine, description=description)
        else:
            # Built outside the lock; a bad signature fails before any state changes
            routine = Routine.from_function(handler, name=name, description=description)

        with self._lock:
            if name in self._routines:
                raise NameTakenError(name)
            self._routines[name] = routine

        logger.info(f"Registered routine: {routine.usage}")
        return routine

    def routine(self, name: Optional[str] = None, description: Optional[str] = None):
        """
        Decorator to register a function as a routine.

        Usage:
            @registry.routine("add", description="Add two numbers")
            def add(a: int, b: int) -> str:
                return str(a + b)
        """
        def decorator(func: Callable) -> Callable:
            self.register(name or func.__name__, func, description=description)
            return func
        return decorator

    def lookup(self, name: str) -> Optional[Routine]:
        """Get the routine registered under `name`, or None."""
        with self._lock:
            return self._routines.get(name)

    def names(self) -> List[str]:
        """Registered names, sorted."""
        with self._lock:
            return sorted(self._routines)

    def list_routines(self) -> List[Routine]:
        """Registered routines, sorted by name."""
        with self._lock:
            return [self._routines[name] for name in sorted(self._routines)]

    def help_text(self) -> str:
        """Generate help text for all routines."""
        routines = self.list_routines()
        if not routines:
            return "No routines registered"

        lines = ["Available routines:", ""]
        for routine in routines:
            line = f"  {routine.usage}"
            if routine.description:
                line += f" - {routine.description}"
            lines.append(line)
        return "\n".join(lines)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._routines

    def __len__(self) -> int:
        with self._lock:
            return len(self._routines)
