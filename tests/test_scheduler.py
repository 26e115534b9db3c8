"""Tests for RegisterScheduler."""

from unittest.mock import AsyncMock

import pytest

from haccp.registers.config import HaccpConfig
from haccp.registers.errors import NotConnectedError, RemoteIOError
from haccp.registers.scheduler import RegisterScheduler, parse_time


@pytest.mark.parametrize(
    "expr, expected",
    [("20:00", (20, 0)), (" 7:05 ", (7, 5)), ("00:00", (0, 0)), ("23:59", (23, 59))],
)
def test_parse_time(expr, expected):
    assert parse_time(expr) == expected


@pytest.mark.parametrize("expr", ["", "20", "20:", "ab:cd", "24:00", "12:60", "-1:30"])
def test_parse_time_invalid(expr):
    with pytest.raises(ValueError):
        parse_time(expr)


def test_scheduler_import_error():
    """RegisterScheduler raises ImportError if apscheduler is missing."""
    try:
        scheduler = RegisterScheduler(HaccpConfig(), AsyncMock())
        assert scheduler.running is False
    except ImportError:
        pass


def test_scheduler_setup_jobs():
    """The daily update is registered once, at the configured time."""
    try:
        config = HaccpConfig()
        config.scheduler.time = "21:30"
        scheduler = RegisterScheduler(config, AsyncMock())
        scheduler.setup_jobs()
        scheduler.setup_jobs()

        jobs = scheduler.get_jobs()
        assert [j["id"] for j in jobs] == ["update_registers"]
        (job,) = scheduler._scheduler.get_jobs()
        assert str(job.trigger.fields[job.trigger.FIELD_NAMES.index("hour")]) == "21"
        assert str(job.trigger.fields[job.trigger.FIELD_NAMES.index("minute")]) == "30"
    except ImportError:
        pytest.skip("apscheduler not installed")


def test_scheduler_rejects_bad_time():
    try:
        config = HaccpConfig()
        config.scheduler.time = "25:00"
        scheduler = RegisterScheduler(config, AsyncMock())
    except ImportError:
        pytest.skip("apscheduler not installed")
    with pytest.raises(ValueError):
        scheduler.setup_jobs()


def test_stop_when_not_running():
    try:
        scheduler = RegisterScheduler(HaccpConfig(), AsyncMock())
    except ImportError:
        pytest.skip("apscheduler not installed")
    scheduler.stop()
    assert scheduler.running is False


class TestJob:
    def _scheduler(self, job):
        try:
            return RegisterScheduler(HaccpConfig(), job)
        except ImportError:
            pytest.skip("apscheduler not installed")

    @pytest.mark.asyncio
    async def test_success(self):
        job = AsyncMock()
        assert await self._scheduler(job)._job_update_registers() is True
        job.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_connected_is_skipped(self, caplog):
        job = AsyncMock(side_effect=NotConnectedError("token scaduto"))
        assert await self._scheduler(job)._job_update_registers() is False
        assert "not connected" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, caplog):
        job = AsyncMock(side_effect=RemoteIOError("quota"))
        assert await self._scheduler(job)._job_update_registers() is False
        assert "Scheduled register update failed" in caplog.text
