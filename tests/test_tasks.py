"""
Tests for the fire-and-forget TaskRunner.
"""

import asyncio
import logging

import pytest

from media_cache.core.tasks import TaskRunner


@pytest.mark.asyncio
async def test_drain_waits_for_submitted_work():
    runner = TaskRunner()
    done = []

    async def work(n):
        await asyncio.sleep(0)
        done.append(n)

    for n in range(3):
        runner.submit(work(n))
    await runner.drain()

    assert sorted(done) == [0, 1, 2]
    assert len(runner) == 0


@pytest.mark.asyncio
async def test_failures_are_logged_not_raised(caplog):
    runner = TaskRunner()

    async def broken():
        raise ValueError("nope")

    with caplog.at_level(logging.ERROR, logger="media_cache.core.tasks"):
        runner.submit(broken(), name="broken-task")
        await runner.drain()

    assert "broken-task" in caplog.text
    assert "nope" in caplog.text


@pytest.mark.asyncio
async def test_drain_includes_tasks_submitted_while_draining():
    runner = TaskRunner()
    done = []

    async def child():
        done.append("child")

    async def parent():
        runner.submit(child())
        done.append("parent")

    runner.submit(parent())
    await runner.drain()

    assert done == ["parent", "child"]
