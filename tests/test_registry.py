"""
Unit tests for Routine and RoutineRegistry.

Tests:
- Routine construction and execution (sync and async handlers)
- Register-once semantics
- Decorator registration and help text
- Built-in routines
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from tgram.commands.builtin import echo, register_builtin_routines
from tgram.commands.caster import ParamKind
from tgram.commands.registry import RoutineRegistry
from tgram.commands.routine import Routine
from tgram.errors import (
    ArityMismatchError,
    HandlerError,
    NameTakenError,
    TypeMismatchError,
    UnsupportedParamKindError,
)
from tgram.logging_utils import get_request_id, set_request_id


class TestRoutine:
    """Tests for Routine."""

    def test_from_function(self):
        def add(a: int, b: int) -> int:
            """Add two integers.

            Longer explanation.
            """
            return a + b

        routine = Routine.from_function(add)
        assert routine.name == "add"
        assert routine.kinds == (ParamKind.INT, ParamKind.INT)
        assert routine.arity == 2
        assert routine.description == "Add two integers."
        assert routine.usage == "add <int> <int>"

    def test_explicit_name_and_description(self):
        routine = Routine.from_function(echo, name="say", description="Say it")
        assert routine.name == "say"
        assert routine.description == "Say it"

    @pytest.mark.asyncio
    async def test_execute_sync_handler(self):
        routine = Routine.from_function(echo)
        assert await routine.execute(["hello world"]) == "hello world"

    @pytest.mark.asyncio
    async def test_execute_async_handler(self):
        async def double(x: float) -> float:
            await asyncio.sleep(0)
            return x * 2

        routine = Routine.from_function(double)
        assert await routine.execute(["1.5"]) == "3.0"

    @pytest.mark.asyncio
    async def test_none_result_is_empty_reply(self):
        def quiet() -> None:
            return None

        assert await Routine.from_function(quiet).execute([]) == ""

    @pytest.mark.asyncio
    async def test_sync_handler_runs_off_loop(self):
        """Plain handlers run in a worker thread."""
        def where() -> str:
            return threading.current_thread().name

        name = await Routine.from_function(where).execute([])
        assert name != threading.main_thread().name

    @pytest.mark.asyncio
    async def test_sync_handler_uses_given_executor(self):
        def where() -> str:
            return threading.current_thread().name

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="routine-pool")
        try:
            name = await Routine.from_function(where).execute([], executor)
        finally:
            executor.shutdown(wait=True)
        assert name.startswith("routine-pool")

    @pytest.mark.asyncio
    async def test_request_id_reaches_worker_thread(self):
        """The caller's context is visible inside a plain handler."""
        def current() -> str:
            return get_request_id() or "none"

        set_request_id("u5")
        try:
            assert await Routine.from_function(current).execute([]) == "u5"
        finally:
            set_request_id(None)

    @pytest.mark.asyncio
    async def test_arity_error_before_handler(self):
        calls = []

        def record(a: int) -> str:
            calls.append(a)
            return "ok"

        routine = Routine.from_function(record)
        with pytest.raises(ArityMismatchError):
            await routine.execute([])
        with pytest.raises(TypeMismatchError):
            await routine.execute(["nope"])
        assert calls == []

    @pytest.mark.asyncio
    async def test_handler_exception_wrapped(self):
        """Handler failures surface as HandlerError carrying the message."""
        def boom(reason: str) -> str:
            raise ValueError(reason)

        with pytest.raises(HandlerError) as exc_info:
            await Routine.from_function(boom).execute(["bad input"])
        assert str(exc_info.value) == "bad input"
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_handler_exception_without_message(self):
        def boom() -> str:
            raise RuntimeError()

        with pytest.raises(HandlerError) as exc_info:
            await Routine.from_function(boom).execute([])
        assert str(exc_info.value) == "RuntimeError"


class TestRoutineRegistry:
    """Tests for RoutineRegistry."""

    def test_register_and_lookup(self):
        registry = RoutineRegistry()
        routine = registry.register("echo", echo)

        assert registry.lookup("echo") is routine
        assert "echo" in registry
        assert len(registry) == 1

    def test_lookup_missing(self):
        assert RoutineRegistry().lookup("nothing") is None

    def test_name_taken(self):
        """A second registration under the same name fails and keeps the first."""
        registry = RoutineRegistry()
        first = registry.register("echo", echo)

        def other(msg: str) -> str:
            return "other"

        with pytest.raises(NameTakenError) as exc_info:
            registry.register("echo", other)
        assert "name taken" in str(exc_info.value)
        assert registry.lookup("echo") is first

    def test_unsupported_signature_leaves_registry_unchanged(self):
        registry = RoutineRegistry()

        def bad(flag: bool) -> str:
            return ""

        with pytest.raises(UnsupportedParamKindError):
            registry.register("bad", bad)
        assert "bad" not in registry

    def test_register_routine_under_new_name(self):
        registry = RoutineRegistry()
        routine = registry.register("repeat", Routine.from_function(echo))
        assert routine.name == "repeat"
        assert routine.kinds == (ParamKind.STRING,)

    def test_register_routine_with_new_description(self):
        """An explicit description wins even when the name is unchanged."""
        registry = RoutineRegistry()
        routine = registry.register(
            "echo", Routine.from_function(echo), description="Say it again"
        )
        assert routine.description == "Say it again"
        assert registry.lookup("echo").description == "Say it again"

    def test_decorator(self):
        registry = RoutineRegistry()

        @registry.routine(description="Add two numbers")
        def add(a: int, b: int) -> int:
            return a + b

        assert add(1, 2) == 3
        assert registry.lookup("add").description == "Add two numbers"

    def test_decorator_custom_name(self):
        registry = RoutineRegistry()

        @registry.routine("plus")
        def add(a: int, b: int) -> int:
            return a + b

        assert registry.names() == ["plus"]

    def test_help_text(self, registry):
        text = registry.help_text()
        assert text.startswith("Available routines:")
        assert "add <int> <int> - Add two integers" in text
        assert "scale <float32> <float>" in text

    def test_help_text_empty(self):
        assert RoutineRegistry().help_text() == "No routines registered"

    def test_list_routines_sorted(self, registry):
        assert [r.name for r in registry.list_routines()] == ["add", "echo", "fail", "scale"]


class TestBuiltinRoutines:
    """Tests for the stock routines."""

    @pytest.mark.asyncio
    async def test_echo_and_help(self):
        registry = RoutineRegistry()
        register_builtin_routines(registry)

        assert registry.names() == ["echo", "help"]
        assert await registry.lookup("echo").execute(["hi there"]) == "hi there"

        help_reply = await registry.lookup("help").execute([])
        assert "echo <str> - Repeat the message back" in help_reply
        assert "help - List available routines" in help_reply
