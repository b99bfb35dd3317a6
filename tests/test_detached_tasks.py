"""Tests for DetachedTaskRunner."""

import asyncio
import logging

import pytest

from common.tasks import DetachedTaskRunner


class TestDetachedTaskRunner:
    @pytest.mark.asyncio
    async def test_spawn_returns_before_work_runs(self):
        runner = DetachedTaskRunner()
        ran = []

        async def work():
            ran.append(True)

        runner.spawn(work(), name="work")

        assert ran == []
        assert runner.pending == 1

        await runner.drain()

        assert ran == [True]
        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        runner = DetachedTaskRunner()

        async def boom():
            raise RuntimeError("smtp unavailable")

        with caplog.at_level(logging.ERROR, logger="common.tasks.detached"):
            runner.spawn(boom(), name="welcome-email")
            await runner.drain()

        assert "welcome-email" in caplog.text
        assert "smtp unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_drain_cancels_after_timeout(self):
        runner = DetachedTaskRunner()
        task = runner.spawn(asyncio.sleep(60), name="slow")

        await runner.drain(timeout=0.01)

        assert task.cancelled()
        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self):
        await DetachedTaskRunner().drain()
