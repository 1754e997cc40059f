"""Tests for TaskTracker."""

import asyncio

import pytest

from tgram.async_utils import TaskTracker


async def succeed():
    await asyncio.sleep(0)
    return "ok"


async def explode():
    await asyncio.sleep(0)
    raise RuntimeError("boom")


async def hang():
    await asyncio.sleep(10)


class TestTaskTracker:
    """Test tracked task lifecycle."""

    @pytest.mark.asyncio
    async def test_success_counted_and_forgotten(self):
        tracker = TaskTracker("test")
        task = tracker.create_task(succeed(), name="work")

        assert task.get_name() == "test.work#1"
        assert await task == "ok"
        await asyncio.sleep(0)

        stats = tracker.get_stats()
        assert stats["total_succeeded"] == 1
        assert stats["currently_running"] == 0

    @pytest.mark.asyncio
    async def test_failure_counted_and_reported(self):
        errors = []
        tracker = TaskTracker("test")
        tracker.create_task(explode(), on_error=errors.append)

        assert await tracker.wait_all(timeout=1.0)
        await asyncio.sleep(0)

        assert tracker.get_stats()["total_failed"] == 1
        assert isinstance(errors[0], RuntimeError)

    @pytest.mark.asyncio
    async def test_wait_all_timeout(self):
        tracker = TaskTracker("test")
        tracker.create_task(hang())

        assert await tracker.wait_all(timeout=0.01) is False
        assert tracker.running_count == 1

        assert await tracker.cancel_all() == 1
        assert tracker.running_count == 0
        assert tracker.get_stats()["total_cancelled"] == 1

    @pytest.mark.asyncio
    async def test_wait_all_empty(self):
        assert await TaskTracker("test").wait_all(timeout=0) is True

    @pytest.mark.asyncio
    async def test_cancel_all_empty(self):
        assert await TaskTracker("test").cancel_all() == 0
