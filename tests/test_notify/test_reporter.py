"""Tests for message composition from telemetry and the outage schedule."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from grid_watch.errors import AuthenticationError
from grid_watch.monitor.power_state import GridEvent
from grid_watch.notify.formatting import STATUS_ERROR_TEXT
from grid_watch.notify.reporter import StatusReporter


@pytest.fixture
def outage() -> AsyncMock:
    mock = AsyncMock()
    mock.shutdown_line = AsyncMock(return_value="📋 ДТЕК: відключень немає")
    return mock


def _reporter(status_or_error, outage) -> StatusReporter:
    telemetry = AsyncMock()
    if isinstance(status_or_error, Exception):
        telemetry.get_power_status = AsyncMock(side_effect=status_or_error)
    else:
        telemetry.get_power_status = AsyncMock(return_value=status_or_error)
    return StatusReporter(telemetry, outage, 42, "SN-1", tz_name="Europe/Kyiv")


class TestEventMessage:
    async def test_restored(self, grid_up_status, outage) -> None:
        text = await _reporter(grid_up_status, outage).event_message(GridEvent.RESTORED, grid_up_status)
        assert text.startswith("<b>⚡ Світло З'ЯВИЛОСЬ!</b>")
        assert "📋 ДТЕК: відключень немає" in text

    async def test_lost(self, grid_down_status, outage) -> None:
        text = await _reporter(grid_down_status, outage).event_message(GridEvent.LOST, grid_down_status)
        assert text.startswith("<b>❌ Світло ЗНИКЛО!</b>")

    async def test_initial_is_plain_status(self, grid_down_status, outage) -> None:
        text = await _reporter(grid_down_status, outage).event_message(GridEvent.INITIAL, grid_down_status)
        assert text.startswith("<b>❌ Світла НЕМАЄ, але є добро</b>")

    async def test_outage_disabled(self, grid_up_status) -> None:
        reporter = StatusReporter(AsyncMock(), None, 42, "SN-1")
        text = await reporter.event_message(GridEvent.RESTORED, grid_up_status)
        assert "ДТЕК" not in text


class TestStatusMessage:
    async def test_fresh_status(self, grid_up_status, outage) -> None:
        reporter = _reporter(grid_up_status, outage)
        text = await reporter.status_message()
        assert "📡 Пристрій: Онлайн" in text
        reporter._telemetry.get_power_status.assert_awaited_once_with(42, "SN-1")
        outage.shutdown_line.assert_awaited_once()

    async def test_failure_returns_error_text(self, outage) -> None:
        reporter = _reporter(AuthenticationError("bad password"), outage)
        assert await reporter.status_message() == STATUS_ERROR_TEXT
        outage.shutdown_line.assert_not_awaited()
